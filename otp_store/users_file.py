"""
users_file.py — lookup and locked rewrite of the OTP users file.

- lookup_user(): lock-free read-only scan, returns the user's record.
- update_user(): under the ".lock" file lock, copies every line to a ".new"
  file, swapping in the freshly encoded record, then renames it over the
  original. Readers therefore see either the old or the new file, never a
  half-written one.

Comments, blank lines and invalid lines are copied byte for byte.
"""

import logging
import os
import stat
from typing import List, Optional, Tuple

from otp_core.codec import DecodedLine, InvalidLine, UserRecord, decode_line, encode_record, peek_username

from .errors import StoreError
from .locking import lock_path_for, locked

logger = logging.getLogger(__name__)

NEWFILE_SUFFIX = ".new"
DEFAULT_LOCK_TIMEOUT = 10.0

# Undecodable bytes survive a rewrite unchanged
_OPEN_KWARGS = {"encoding": "utf-8", "errors": "surrogateescape", "newline": ""}


def _log_invalid(path: str, linenum: int, invalid: InvalidLine) -> None:
    logger.warning('ignoring invalid entry in OTP users file "%s" on line %d: %s', path, linenum, invalid.reason)


def _concerns(line: str, username: str) -> bool:
    """Invalid lines are worth reporting if they are about this user or unreadable."""
    owner = peek_username(line)
    return owner is None or owner == username


def lookup_user(path: str, username: str) -> Optional[UserRecord]:
    """
    Tìm user trong users file (read-only, không lock).

    Trả về:
        UserRecord của dòng hợp lệ đầu tiên có username trùng khớp, hoặc None.

    Raises:
        StoreError: nếu không đọc được file
    """
    try:
        with open(path, "r", **_OPEN_KWARGS) as f:
            for linenum, line in enumerate(f, 1):
                result = decode_line(line)
                if isinstance(result, InvalidLine):
                    if _concerns(line, username):
                        _log_invalid(path, linenum, result)
                    continue
                if result is not None and result.username == username:
                    return result
    except OSError as e:
        logger.error('can\'t open OTP users file "%s": %s', path, e.strerror or e)
        raise StoreError(f"cannot read users file {path}") from e

    logger.info('user "%s" not found in OTP users file "%s"', username, path)
    return None


def update_user(path: str, record: UserRecord, lock_timeout: float = DEFAULT_LOCK_TIMEOUT) -> bool:
    """
    Ghi lại users file với record mới của user (atomic replace).

    Every valid line for record.username is replaced by encode_record(record);
    all other lines are written back unchanged. Users are never added: if the
    username is absent, the file is rewritten with identical content.

    Arguments:
        path: users file
        record: updated state of one user
        lock_timeout: seconds to wait for other writers

    Trả về:
        True nếu tìm thấy user, False nếu không.

    Raises:
        StoreLockTimeout: the lock stayed busy (file untouched)
        StoreError: any other I/O failure (file untouched)
    """
    new_path = path + NEWFILE_SUFFIX
    with locked(lock_path_for(path), lock_timeout):
        found = False
        try:
            with open(path, "r", **_OPEN_KWARGS) as src:
                fd = os.open(new_path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
                with open(fd, "w", **_OPEN_KWARGS) as dst:
                    os.fchmod(dst.fileno(), stat.S_IMODE(os.fstat(src.fileno()).st_mode))
                    for linenum, line in enumerate(src, 1):
                        result = decode_line(line)
                        if isinstance(result, UserRecord) and result.username == record.username:
                            dst.write(encode_record(record) + "\n")
                            found = True
                            continue
                        if isinstance(result, InvalidLine) and _concerns(line, record.username):
                            _log_invalid(path, linenum, result)
                        dst.write(line)
                    dst.flush()
                    os.fsync(dst.fileno())
            os.replace(new_path, path)
        except OSError as e:
            logger.error('error rewriting OTP users file "%s": %s', path, e.strerror or e)
            _discard(new_path)
            raise StoreError(f"cannot update users file {path}") from e

    if not found:
        logger.info('user "%s" not found in OTP users file "%s"; nothing updated', record.username, path)
    return found


def scan_users_file(path: str) -> List[Tuple[int, str, DecodedLine]]:
    """
    Decode every line of a users file.

    Trả về:
        list of (line number, raw line, decode_line() result)

    Raises:
        StoreError: nếu không đọc được file
    """
    try:
        with open(path, "r", **_OPEN_KWARGS) as f:
            return [(linenum, line, decode_line(line)) for linenum, line in enumerate(f, 1)]
    except OSError as e:
        raise StoreError(f"cannot read users file {path}") from e


def _discard(path: str) -> None:
    try:
        os.remove(path)
    except FileNotFoundError:
        pass
    except OSError as e:
        logger.error('can\'t remove temporary OTP users file "%s": %s', path, e.strerror or e)
