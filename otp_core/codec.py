"""
codec.py — read and write lines of the OTP users file.

Mỗi dòng (one line per user):

    <token-type> <username> <pin|-> <hex-key> [<offset> [<last_otp> <last_auth>]]

Ví dụ:

    HOTP        alice   1234    3132333435363738393031323334353637383930  12
    HOTP/T30/8  bob     -       3132333435363738393031323334353637383930  -1  12345678 2009-06-12T17:52:32L
    MOTP        carol   5678    c0ffee                                    0

Lines starting with '#' and blank lines are not records; the store copies them
through untouched. A malformed line is reported as InvalidLine(reason) and is
also copied through, so an operator can repair it by hand.
"""

import enum
import re
import time
from dataclasses import dataclass
from typing import Optional, Tuple, Union

# --- Constants -------------------------------------------------------------
DEFAULT_NUM_DIGITS = 6
MOTP_TIME_INTERVAL = 10         # mOTP tokens tick every 10 seconds
MAX_NUM_DIGITS = 10             # largest decimal truncation supported
MAX_KEY_BYTES = 256
TIME_FORMAT = "%Y-%m-%dT%H:%M:%SL"
NO_PIN = "-"

# Legacy single-letter token types
_TOKEN_TYPE_ALIASES = {"E": "HOTP/E", "T": "HOTP/T30"}

_FIELD_SEPARATOR = re.compile(r"[ \t\r\n\v]+")
_TIME_BASED = re.compile(r"T([0-9]+)")
_DIGITS = re.compile(r"[0-9]+")
_HEX_PAIRS = re.compile(r"(?:[0-9a-fA-F]{2})+")
_INTEGER = re.compile(r"[-+]?[0-9]+")


class Algorithm(enum.Enum):
    HOTP = "HOTP"
    MOTP = "MOTP"


# Interval used when the token type omits the E/T sub-field
_DEFAULT_INTERVAL = {
    Algorithm.HOTP: 0,
    Algorithm.MOTP: MOTP_TIME_INTERVAL,
}


class TokenTypeError(ValueError):
    """Raised when a token type string such as "HOTP/T30/6" cannot be parsed."""


@dataclass
class UserRecord:
    """One user's authentication state, as stored on a single line."""

    algorithm: Algorithm
    username: str
    key: bytes
    time_interval: int = 0
    num_digits: int = DEFAULT_NUM_DIGITS
    pin: str = ""
    offset: int = 0
    last_otp: str = ""
    last_auth: int = 0

    @property
    def is_time_based(self) -> bool:
        return self.time_interval != 0


@dataclass(frozen=True)
class InvalidLine:
    reason: str


DecodedLine = Optional[Union[UserRecord, InvalidLine]]


# --- Token type ------------------------------------------------------------
def parse_token_type(text: str) -> Tuple[Algorithm, int, int]:
    """
    Parse a token type such as "HOTP", "HOTP/T30", "MOTP/E/8" or legacy "E".

    Trả về:
        (algorithm, time_interval, num_digits)

    Raises:
        TokenTypeError: unknown algorithm, bad E/T sub-field, bad digit count
    """
    text = _TOKEN_TYPE_ALIASES.get(text, text)
    parts = [p for p in text.split("/") if p]
    if not parts:
        raise TokenTypeError("empty token type")

    try:
        algorithm = Algorithm(parts[0].upper())
    except ValueError:
        raise TokenTypeError(f"unknown algorithm {parts[0]!r}") from None
    time_interval = _DEFAULT_INTERVAL[algorithm]
    num_digits = DEFAULT_NUM_DIGITS

    if len(parts) > 1:
        kind = parts[1]
        if kind == "E":
            time_interval = 0
        else:
            m = _TIME_BASED.fullmatch(kind)
            if m is None or int(m.group(1)) <= 0:
                raise TokenTypeError(f"invalid counter type {kind!r}")
            time_interval = int(m.group(1))

    if len(parts) > 2:
        if _DIGITS.fullmatch(parts[2]) is None:
            raise TokenTypeError(f"invalid number of digits {parts[2]!r}")
        num_digits = int(parts[2])
        if not 1 <= num_digits <= MAX_NUM_DIGITS:
            raise TokenTypeError(f"number of digits out of range: {num_digits}")

    if len(parts) > 3:
        raise TokenTypeError(f"unexpected sub-field {parts[3]!r}")

    return algorithm, time_interval, num_digits


def format_token_type(record: UserRecord) -> str:
    """Inverse of parse_token_type; sub-fields equal to the defaults are dropped."""
    counter_part = "/E" if record.time_interval == 0 else f"/T{record.time_interval}"
    digits_part = f"/{record.num_digits}"
    if record.num_digits == DEFAULT_NUM_DIGITS:
        digits_part = ""
        if record.time_interval == _DEFAULT_INTERVAL[record.algorithm]:
            counter_part = ""
    return record.algorithm.value + counter_part + digits_part


# --- Timestamps ------------------------------------------------------------
def parse_timestamp(text: str) -> int:
    """Local-time "YYYY-MM-DDThh:mm:ssL" -> epoch seconds. Raises ValueError."""
    return int(time.mktime(time.strptime(text, TIME_FORMAT)))


def format_timestamp(epoch: int) -> str:
    return time.strftime(TIME_FORMAT, time.localtime(epoch))


# --- Lines -----------------------------------------------------------------
def split_fields(line: str):
    return [f for f in _FIELD_SEPARATOR.split(line) if f]


def is_skippable(line: str) -> bool:
    """Comment lines and whitespace-only lines carry no record."""
    return line.startswith("#") or not split_fields(line)


def peek_username(line: str) -> Optional[str]:
    """
    Return the username of a line whose token type parses, even if later
    fields are broken. None for comments, blank lines and bad token types.
    """
    if line.startswith("#"):
        return None
    fields = split_fields(line)
    if len(fields) < 2:
        return None
    try:
        parse_token_type(fields[0])
    except TokenTypeError:
        return None
    return fields[1]


def decode_line(line: str) -> DecodedLine:
    """
    Decode one users-file line.

    Trả về:
        - None cho comment / dòng trống (pass through on rewrite)
        - InvalidLine(reason) nếu dòng sai cú pháp
        - UserRecord nếu hợp lệ

    Optional trailing fields (offset, then last_otp + timestamp) may be
    omitted; a last_otp without its timestamp is invalid.
    """
    if is_skippable(line):
        return None
    fields = split_fields(line)

    try:
        algorithm, time_interval, num_digits = parse_token_type(fields[0])
    except TokenTypeError:
        return InvalidLine(f'invalid token type "{fields[0]}"')

    if len(fields) < 2:
        return InvalidLine("missing username field")
    username = fields[1]

    if len(fields) < 3:
        return InvalidLine("missing PIN field")
    pin = "" if fields[2] == NO_PIN else fields[2]

    if len(fields) < 4:
        return InvalidLine("missing token key field")
    key_text = fields[3]
    if _HEX_PAIRS.fullmatch(key_text) is None:
        return InvalidLine(f'invalid key starting with "{_first_bad_hex(key_text)}"')
    key = bytes.fromhex(key_text)
    if len(key) > MAX_KEY_BYTES:
        return InvalidLine(f"key longer than {MAX_KEY_BYTES} bytes")

    record = UserRecord(
        algorithm=algorithm,
        username=username,
        key=key,
        time_interval=time_interval,
        num_digits=num_digits,
        pin=pin,
    )

    if len(fields) < 5:
        return record
    if _INTEGER.fullmatch(fields[4]) is None:
        return InvalidLine(f'invalid offset "{fields[4]}"')
    record.offset = int(fields[4])

    if len(fields) < 6:
        return record
    record.last_otp = fields[5]

    if len(fields) < 7:
        return InvalidLine("missing last auth timestamp field")
    try:
        record.last_auth = parse_timestamp(fields[6])
    except (ValueError, OverflowError):
        return InvalidLine(f'invalid auth timestamp "{fields[6]}"')

    return record


def encode_record(record: UserRecord) -> str:
    """
    Canonical line for a record (no trailing newline).

    The timestamp is written only together with a non-empty last_otp.
    """
    pin = record.pin or NO_PIN
    line = (
        f"{format_token_type(record):<7} {record.username:<13} {pin:<7} "
        f"{record.key.hex()} {record.offset:<7d}"
    )
    if record.last_otp:
        line += f" {record.last_otp:<7} {format_timestamp(record.last_auth)}"
    return line.rstrip()


def _first_bad_hex(text: str) -> str:
    # Remainder of the key starting at the first pair that is not hex
    for i in range(0, len(text), 2):
        pair = text[i:i + 2]
        if len(pair) < 2 or any(c not in "0123456789abcdefABCDEF" for c in pair):
            return text[i:]
    return text
