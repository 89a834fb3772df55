"""
otp_store package
=================

Line-oriented OTP users file: lock-free lookup and locked atomic rewrite.
"""

from .errors import StoreError, StoreLockTimeout
from .locking import locked, lock_path_for
from .users_file import lookup_user, scan_users_file, update_user

__all__ = [
    "StoreError",
    "StoreLockTimeout",
    "locked",
    "lock_path_for",
    "lookup_user",
    "scan_users_file",
    "update_user",
]
