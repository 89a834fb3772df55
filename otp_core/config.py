"""
config.py — runtime settings for the OTP verification engine.

The caller builds one OTPConfig (from Flask's app.config, os.environ or CLI
flags) and hands it to every verifier call. Nothing here is mutated after
construction.
"""

from dataclasses import dataclass
from typing import Any, Mapping, Optional

# --- Defaults --------------------------------------------------------------
DEFAULT_MAX_OFFSET = 4          # window half-width (counter steps)
DEFAULT_MAX_LINGER = 10 * 60    # seconds an accepted OTP may be reused
DEFAULT_LOCK_TIMEOUT = 10.0     # seconds to wait for the users file lock

ENV_PREFIX = "OTP_AUTH_"


@dataclass(frozen=True)
class OTPConfig:
    """
    Settings consumed by the verifier.

    - users_file: path of the users file; None means "not configured" and
      every verification ends in GENERAL_ERROR.
    - max_offset: how far from the expected counter a token may drift.
    - max_linger: seconds during which the last accepted OTP is accepted again.
    - lock_timeout: upper bound on waiting for the update lock.
    """

    users_file: Optional[str] = None
    max_offset: int = DEFAULT_MAX_OFFSET
    max_linger: int = DEFAULT_MAX_LINGER
    lock_timeout: float = DEFAULT_LOCK_TIMEOUT

    def __post_init__(self) -> None:
        if self.max_offset < 0:
            raise ValueError("max_offset must not be negative")
        if self.max_linger < 0:
            raise ValueError("max_linger must not be negative")
        if self.lock_timeout < 0:
            raise ValueError("lock_timeout must not be negative")

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, Any], prefix: str = ENV_PREFIX) -> "OTPConfig":
        """
        Build a config from any mapping holding prefixed keys.

        Works with Flask's app.config as well as os.environ, so values may be
        strings ("4") or already-typed values (4). Missing keys keep defaults.

        Raises:
            ValueError: if a value cannot be converted or is out of range
        """
        users_file = mapping.get(prefix + "USERS_FILE") or None
        return cls(
            users_file=str(users_file) if users_file is not None else None,
            max_offset=_coerce(mapping, prefix + "MAX_OFFSET", int, DEFAULT_MAX_OFFSET),
            max_linger=_coerce(mapping, prefix + "MAX_LINGER", int, DEFAULT_MAX_LINGER),
            lock_timeout=_coerce(mapping, prefix + "LOCK_TIMEOUT", float, DEFAULT_LOCK_TIMEOUT),
        )


def _coerce(mapping: Mapping[str, Any], key: str, kind, default):
    raw = mapping.get(key)
    if raw is None or raw == "":
        return default
    try:
        return kind(raw)
    except (TypeError, ValueError) as e:
        raise ValueError(f"Invalid value for {key}: {raw!r}") from e
