#!/usr/bin/env python3
"""
otp_cli.py — CLI cho OTP verification engine (users file).

Cung cấp các subcommand:
- verify   : xác minh OTP (PIN + OTP) cho user, cập nhật users file
- digest   : in ra HTTP Digest hash cho user + realm
- show     : in ra dòng users file của user (key ẩn)
- generate : sinh các mã OTP kế tiếp của user (không ghi file)
- check    : liệt kê các dòng không hợp lệ trong users file

eg..:
    otp-cli --users-file users.txt verify --user alice --otp 1234755224
    otp-cli --users-file users.txt generate --user alice --count 3
    OTP_AUTH_USERS_FILE=users.txt otp-cli check
"""

import argparse
import dataclasses
import logging
import os
import sys
import time

from otp_store import StoreError, lookup_user, scan_users_file

from .codec import InvalidLine, encode_record
from .config import DEFAULT_MAX_LINGER, DEFAULT_MAX_OFFSET, ENV_PREFIX, OTPConfig
from .generators import expected_counter, generate_candidates
from .verifier import AuthStatus, compute_digest_hash, verify_password

EXIT_OK = 0
EXIT_DENIED = 1
EXIT_ERROR = 2

_EXIT_CODES = {
    AuthStatus.GRANTED: EXIT_OK,
    AuthStatus.DENIED: EXIT_DENIED,
    AuthStatus.USER_NOT_FOUND: EXIT_DENIED,
    AuthStatus.GENERAL_ERROR: EXIT_ERROR,
}


def _config(args) -> OTPConfig:
    return OTPConfig(users_file=args.users_file, max_offset=args.max_offset, max_linger=args.max_linger)


def _require_user(args):
    """Lookup helper for the read-only commands; prints the problem and returns None."""
    if not args.users_file:
        print("[!] No users file given (--users-file or $OTP_AUTH_USERS_FILE)", file=sys.stderr)
        return None
    try:
        user = lookup_user(args.users_file, args.user)
    except StoreError as e:
        print(f"[!] {e}", file=sys.stderr)
        return None
    if user is None:
        print(f"[-] user '{args.user}' not found", file=sys.stderr)
    return user


# --- CLI command handlers ---
def cmd_verify(args) -> int:
    status = verify_password(_config(args), args.user, args.otp)
    print(f"[user={args.user}] {status.name}")
    return _EXIT_CODES[status]


def cmd_digest(args) -> int:
    digest_hash, status = compute_digest_hash(_config(args), args.user, args.realm)
    if digest_hash is None:
        print(f"[user={args.user}] {status.name}", file=sys.stderr)
        return _EXIT_CODES[status]
    print(digest_hash)
    return EXIT_OK


def cmd_show(args) -> int:
    user = _require_user(args)
    if user is None:
        return EXIT_ERROR
    shown = dataclasses.replace(user, pin="****") if user.pin else user
    print(encode_record(shown).replace(user.key.hex(), "<key>", 1))
    print(f"key: {len(user.key)} bytes, {'time' if user.is_time_based else 'event'} based")
    return EXIT_OK


def cmd_generate(args) -> int:
    user = _require_user(args)
    if user is None:
        return EXIT_ERROR
    start = args.counter if args.counter is not None else expected_counter(user, int(time.time()))
    for counter in range(start, start + args.count):
        decimal, hexa = generate_candidates(user, counter)
        print(f"{counter:>10d}  {decimal or '-':>10}  {hexa}")
    return EXIT_OK


def cmd_check(args) -> int:
    if not args.users_file:
        print("[!] No users file given (--users-file or $OTP_AUTH_USERS_FILE)", file=sys.stderr)
        return EXIT_ERROR
    try:
        lines = scan_users_file(args.users_file)
    except StoreError as e:
        print(f"[!] {e}", file=sys.stderr)
        return EXIT_ERROR

    bad = 0
    users = 0
    for linenum, _line, result in lines:
        if isinstance(result, InvalidLine):
            bad += 1
            print(f"line {linenum}: {result.reason}")
        elif result is not None:
            users += 1
    print(f"[*] {users} user(s), {bad} invalid line(s)")
    return EXIT_ERROR if bad else EXIT_OK


def cmd_help(args) -> int:
    print("'otp-cli -h' for help.")
    return EXIT_OK


# --- Argparse builder ---
def build_parser() -> argparse.ArgumentParser:
    p = argparse.ArgumentParser(description="One-time password users file tool (HOTP / mOTP)")
    p.add_argument("--users-file", default=os.environ.get(ENV_PREFIX + "USERS_FILE"),
                   help="Path of the OTP users file (default: $OTP_AUTH_USERS_FILE)")
    p.add_argument("--max-offset", type=int, default=DEFAULT_MAX_OFFSET,
                   help="Maximum counter offset accepted from the expected value")
    p.add_argument("--max-linger", type=int, default=DEFAULT_MAX_LINGER,
                   help="Seconds during which the last OTP may be used again")
    p.add_argument("--verbose", action="store_true", help="Verbose output")
    sub = p.add_subparsers(dest="cmd")
    p.set_defaults(func=cmd_help)

    # verify
    pv = sub.add_parser("verify", help="Verify PIN+OTP for a user and record it")
    pv.add_argument("--user", required=True, help="Username")
    pv.add_argument("--otp", required=True, help="PIN followed by OTP (mOTP: OTP only)")
    pv.set_defaults(func=cmd_verify)

    # digest
    pd = sub.add_parser("digest", help="Print the HTTP Digest hash for a user")
    pd.add_argument("--user", required=True, help="Username")
    pd.add_argument("--realm", required=True, help="HTTP authentication realm")
    pd.set_defaults(func=cmd_digest)

    # show
    ps = sub.add_parser("show", help="Show a user's entry (key hidden)")
    ps.add_argument("--user", required=True, help="Username")
    ps.set_defaults(func=cmd_show)

    # generate
    pg = sub.add_parser("generate", help="Print upcoming OTPs without updating the file")
    pg.add_argument("--user", required=True, help="Username")
    pg.add_argument("--counter", type=int, help="Start counter (default: expected counter)")
    pg.add_argument("--count", type=int, default=1, help="How many OTPs to print")
    pg.set_defaults(func=cmd_generate)

    # check
    pc = sub.add_parser("check", help="Report invalid lines in the users file")
    pc.set_defaults(func=cmd_check)

    return p


def main(argv=None) -> int:
    parser = build_parser()
    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="[%(levelname)s] %(name)s: %(message)s",
    )
    return args.func(args)


if __name__ == "__main__":
    sys.exit(main())
