import pytest

from otp_core.config import OTPConfig

# RFC 4226 Appendix D test key and its HOTP values for counters 0..9
RFC_KEY = b"12345678901234567890"
RFC_KEY_HEX = RFC_KEY.hex()
RFC_CODES = [
    "755224", "287082", "359152", "969429", "338314",
    "254676", "287922", "162583", "399871", "520489",
]

NOW = 1_700_000_000


@pytest.fixture
def write_users(tmp_path):
    """Write the given lines as a users file and return its path."""

    def _write(*lines):
        path = tmp_path / "users.txt"
        path.write_text("".join(line + "\n" for line in lines), encoding="utf-8")
        return str(path)

    return _write


@pytest.fixture
def make_config():
    def _make(path, **kwargs):
        return OTPConfig(users_file=path, **kwargs)

    return _make
