import pytest

from otp_core.codec import (
    MAX_KEY_BYTES,
    Algorithm,
    InvalidLine,
    TokenTypeError,
    UserRecord,
    decode_line,
    encode_record,
    format_timestamp,
    format_token_type,
    parse_token_type,
    peek_username,
)

from .conftest import NOW, RFC_KEY, RFC_KEY_HEX


@pytest.mark.parametrize(
    "text, expected",
    [
        ("HOTP", (Algorithm.HOTP, 0, 6)),
        ("hotp", (Algorithm.HOTP, 0, 6)),
        ("HOTP/E", (Algorithm.HOTP, 0, 6)),
        ("HOTP/T30", (Algorithm.HOTP, 30, 6)),
        ("HOTP/T60/8", (Algorithm.HOTP, 60, 8)),
        ("HOTP/E/10", (Algorithm.HOTP, 0, 10)),
        ("MOTP", (Algorithm.MOTP, 10, 6)),
        ("Motp/E/4", (Algorithm.MOTP, 0, 4)),
        ("E", (Algorithm.HOTP, 0, 6)),
        ("T", (Algorithm.HOTP, 30, 6)),
    ],
)
def test_parse_token_type(text, expected):
    assert parse_token_type(text) == expected


@pytest.mark.parametrize(
    "text",
    ["XOTP", "e", "HOTP/e", "HOTP/T0", "HOTP/T", "HOTP/T-5", "HOTP/Tx", "HOTP/X",
     "HOTP/E/0", "HOTP/E/11", "HOTP/E/6x", "HOTP/E/6/1", "/"],
)
def test_parse_token_type_rejects(text):
    with pytest.raises(TokenTypeError):
        parse_token_type(text)


@pytest.mark.parametrize(
    "algorithm, interval, digits, expected",
    [
        (Algorithm.HOTP, 0, 6, "HOTP"),
        (Algorithm.HOTP, 30, 6, "HOTP/T30"),
        (Algorithm.HOTP, 0, 8, "HOTP/E/8"),
        (Algorithm.MOTP, 10, 6, "MOTP"),
        (Algorithm.MOTP, 0, 6, "MOTP/E"),
        (Algorithm.MOTP, 10, 8, "MOTP/T10/8"),
    ],
)
def test_format_token_type_abbreviates_defaults(algorithm, interval, digits, expected):
    record = UserRecord(algorithm=algorithm, username="u", key=b"k", time_interval=interval, num_digits=digits)
    assert format_token_type(record) == expected
    assert parse_token_type(expected) == (algorithm, interval, digits)


@pytest.mark.parametrize("line", ["", "\n", "   \t \n", "# comment\n", "#HOTP alice - 00\n"])
def test_comments_and_blank_lines_are_skipped(line):
    assert decode_line(line) is None


def test_decode_minimal_line_uses_defaults():
    record = decode_line(f"HOTP alice - {RFC_KEY_HEX}\n")
    assert record == UserRecord(algorithm=Algorithm.HOTP, username="alice", key=RFC_KEY)
    assert record.pin == ""
    assert record.offset == 0
    assert record.last_otp == ""
    assert record.last_auth == 0


def test_decode_full_line():
    stamp = format_timestamp(NOW)
    record = decode_line(f"HOTP/T30/8\tbob\v1234  {RFC_KEY_HEX.upper()} -3 12345678 {stamp}\r\n")
    assert record == UserRecord(
        algorithm=Algorithm.HOTP,
        username="bob",
        key=RFC_KEY,
        time_interval=30,
        num_digits=8,
        pin="1234",
        offset=-3,
        last_otp="12345678",
        last_auth=NOW,
    )
    assert record.is_time_based


def test_decode_legacy_alias():
    record = decode_line("T carol - c0ffee 7")
    assert record.algorithm is Algorithm.HOTP
    assert record.time_interval == 30
    assert encode_record(record).startswith("HOTP/T30 carol")


@pytest.mark.parametrize(
    "line, reason",
    [
        ("XOTP alice - 00", 'invalid token type "XOTP"'),
        ("HOTP", "missing username field"),
        ("HOTP alice", "missing PIN field"),
        ("HOTP alice 1234", "missing token key field"),
        ("HOTP alice 1234 0g12", 'invalid key starting with "0g12"'),
        ("HOTP alice 1234 abc", 'invalid key starting with "c"'),
        ("HOTP alice 1234 00 ten", 'invalid offset "ten"'),
        ("HOTP alice 1234 00 3 123456", "missing last auth timestamp field"),
        ("HOTP alice 1234 00 3 123456 yesterday", 'invalid auth timestamp "yesterday"'),
        ("HOTP alice 1234 00 3 123456 2009-06-12T17:52:32", 'invalid auth timestamp "2009-06-12T17:52:32"'),
    ],
)
def test_invalid_lines_carry_reason(line, reason):
    assert decode_line(line) == InvalidLine(reason)


def test_key_length_is_capped():
    assert isinstance(decode_line(f"HOTP alice - {'ab' * MAX_KEY_BYTES}"), UserRecord)
    assert decode_line(f"HOTP alice - {'ab' * (MAX_KEY_BYTES + 1)}") == InvalidLine(
        f"key longer than {MAX_KEY_BYTES} bytes"
    )


@pytest.mark.parametrize(
    "record",
    [
        UserRecord(algorithm=Algorithm.HOTP, username="alice", key=RFC_KEY),
        UserRecord(algorithm=Algorithm.HOTP, username="bob", key=b"\x00\x01\xff", time_interval=30,
                   num_digits=8, pin="4321", offset=-2, last_otp="12345678", last_auth=NOW),
        UserRecord(algorithm=Algorithm.MOTP, username="carol", key=bytes.fromhex("c0ffee"),
                   time_interval=10, pin="5678", offset=17),
        UserRecord(algorithm=Algorithm.MOTP, username="dave", key=b"\x42", time_interval=0,
                   num_digits=10, last_otp="abcdef0123", last_auth=NOW + 3600),
    ],
)
def test_round_trip(record):
    assert decode_line(encode_record(record)) == record


def test_encode_layout():
    record = UserRecord(algorithm=Algorithm.HOTP, username="alice", key=b"\xab\xcd", pin="", offset=12)
    assert encode_record(record) == "HOTP    alice         -       abcd 12"

    record.last_otp = "755224"
    record.last_auth = NOW
    assert encode_record(record) == f"HOTP    alice         -       abcd 12      755224  {format_timestamp(NOW)}"


def test_timestamp_only_written_with_last_otp():
    record = UserRecord(algorithm=Algorithm.HOTP, username="alice", key=b"\x01", last_auth=NOW)
    assert format_timestamp(NOW) not in encode_record(record)


def test_peek_username():
    assert peek_username("HOTP alice 1234 zz") == "alice"
    assert peek_username("XOTP alice 1234 00") is None
    assert peek_username("# HOTP alice") is None
    assert peek_username("HOTP") is None
