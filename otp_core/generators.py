"""
generators.py — pure OTP code generators (HOTP / mOTP).

Giải thuật:
- HOTP (RFC 4226):
  value = Truncate(HMAC-SHA1(key, counter)) -> 31-bit integer
  decimal = value mod 10^digits, hex = low 4*digits bits of value
- mOTP (http://motp.sourceforge.net/):
  hex = MD5("<counter><hex key><pin>")[:digits]

The users file does not say whether a client types the decimal or the hex
form, so HOTP always produces both and the verifier accepts either one.
"""

import hashlib
import hmac
import struct
from typing import Tuple

from .codec import Algorithm, UserRecord

MAX_DECIMAL_DIGITS = 10
MAX_HEX_DIGITS = 8

_COUNTER_MASK = 0xFFFFFFFFFFFFFFFF


# --- RFC helpers -----------------------------------------------------------
def int_to_bytes(i: int) -> bytes:
    """
    Counter -> 8-byte big-endian message, như RFC4226 yêu cầu.

    Negative counters (a time-based token with a large negative slew) wrap
    around like an unsigned 64-bit value.

    Ví dụ: int_to_bytes(1) -> b'\\x00\\x00\\x00\\x00\\x00\\x00\\x00\\x01'
    """
    return struct.pack(">Q", i & _COUNTER_MASK)


def dynamic_truncate(hmac_digest: bytes) -> int:
    """
    Dynamic truncation theo RFC4226.

    - offset = last_byte & 0x0F
    - lấy 4 bytes từ offset, clear MSB (0x7F) của byte đầu
    - trả về integer 31-bit (unsigned)
    """
    offset = hmac_digest[-1] & 0x0F
    code = (
        ((hmac_digest[offset] & 0x7F) << 24)
        | ((hmac_digest[offset + 1] & 0xFF) << 16)
        | ((hmac_digest[offset + 2] & 0xFF) << 8)
        | (hmac_digest[offset + 3] & 0xFF)
    )
    return code


# --- Generators ------------------------------------------------------------
def hotp(key: bytes, counter: int, num_digits: int) -> Tuple[str, str]:
    """
    Sinh mã HOTP theo RFC4226, in both decimal and hex form.

    Arguments:
        key: raw secret bytes
        counter: event counter or time step
        num_digits: requested OTP length (decimal capped at 10, hex at 8)

    Trả về:
        (decimal, hex) — both zero-padded, hex in lowercase
    """
    num_digits = max(num_digits, 1)
    digest = hmac.new(key, int_to_bytes(counter), hashlib.sha1).digest()
    value = dynamic_truncate(digest)

    dec_digits = min(num_digits, MAX_DECIMAL_DIGITS)
    decimal = str(value % 10 ** dec_digits).zfill(dec_digits)

    hex_digits = min(num_digits, MAX_HEX_DIGITS)
    hexa = format(value & ((1 << (4 * hex_digits)) - 1), f"0{hex_digits}x")
    return decimal, hexa


def motp(key: bytes, pin: str, counter: int, num_digits: int) -> str:
    """mOTP: first num_digits hex characters of MD5("<counter><hex key><pin>")."""
    material = f"{counter & _COUNTER_MASK}{key.hex()}{pin}"
    return hashlib.md5(material.encode("utf-8")).hexdigest()[:num_digits]


def generate_candidates(record: UserRecord, counter: int) -> Tuple[str, str]:
    """
    OTP candidates for a record at a counter value.

    Trả về:
        (decimal, hex); mOTP has no decimal form so decimal is ""
    """
    if record.algorithm is Algorithm.HOTP:
        return hotp(record.key, counter, record.num_digits)
    if record.algorithm is Algorithm.MOTP:
        return "", motp(record.key, record.pin, counter, record.num_digits)
    raise ValueError(f"unsupported algorithm {record.algorithm!r}")


def predict_otp(record: UserRecord, counter: int) -> str:
    """The single OTP a client is assumed to type: decimal for HOTP, hex for mOTP."""
    decimal, hexa = generate_candidates(record, counter)
    return decimal if record.algorithm is Algorithm.HOTP else hexa


def otp_matches(submitted: str, candidates: Tuple[str, str]) -> bool:
    """Decimal compared exactly, hex case-insensitively (constant time)."""
    decimal, hexa = candidates
    if decimal and hmac.compare_digest(submitted.encode("utf-8"), decimal.encode("utf-8")):
        return True
    return bool(hexa) and hmac.compare_digest(submitted.lower().encode("utf-8"), hexa.encode("utf-8"))


def expected_counter(record: UserRecord, now: int) -> int:
    """Event tokens: the stored next counter. Time tokens: now / interval + slew."""
    if record.is_time_based:
        return now // record.time_interval + record.offset
    return record.offset
