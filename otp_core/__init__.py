"""
otp_core package
================

OTP verification engine cho users file kiểu mod_authn_otp:
HOTP (RFC 4226, event hoặc time based) và mOTP tokens.

──────────────────────────────────────────────
Giải thuật cốt lõi
──────────────────────────────────────────────
- HOTP: code = Truncate(HMAC-SHA1(key, counter)) mod 10^digits
  (hoặc low 4*digits bits in hex).
- Time based HOTP: counter = floor(now / interval) + slew.
- mOTP: code = MD5("<counter><hex key><pin>")[:digits], interval 10s.

──────────────────────────────────────────────
Ví dụ sử dụng nhanh
──────────────────────────────────────────────
>>> from otp_core import OTPConfig
>>> from otp_core.verifier import AuthStatus, verify_password
>>> config = OTPConfig(users_file="/etc/otp/users.txt")
>>> verify_password(config, "alice", "1234" + "755224") is AuthStatus.GRANTED

The verifier lives in otp_core.verifier (it depends on otp_store, which in
turn depends on otp_core.codec), so it is not re-exported here.
"""

from .codec import (
    Algorithm,
    InvalidLine,
    UserRecord,
    decode_line,
    encode_record,
    format_token_type,
    parse_token_type,
)
from .config import OTPConfig
from .generators import hotp, motp

__all__ = [
    "Algorithm",
    "InvalidLine",
    "OTPConfig",
    "UserRecord",
    "decode_line",
    "encode_record",
    "format_token_type",
    "hotp",
    "motp",
    "parse_token_type",
]
