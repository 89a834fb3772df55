"""
locking.py — exclusive advisory lock on a sibling ".lock" file.

Every writer of a users file takes this lock for the whole
read-scan-rewrite-rename sequence, so concurrent updates from any number of
threads or processes are serialized. Readers never lock.
"""

import fcntl
import logging
import os
import time
from contextlib import contextmanager

from .errors import StoreError, StoreLockTimeout

logger = logging.getLogger(__name__)

LOCK_SUFFIX = ".lock"
_POLL_INTERVAL = 0.05   # seconds between non-blocking attempts


def lock_path_for(users_file: str) -> str:
    return users_file + LOCK_SUFFIX


@contextmanager
def locked(path: str, timeout: float):
    """
    Hold an exclusive flock() on path (created 0600 if absent).

    Waits at most `timeout` seconds, then raises StoreLockTimeout. The lock is
    released when the block exits, on errors too.

    Raises:
        StoreError: the lock file cannot be opened
        StoreLockTimeout: the lock stayed busy for longer than timeout
    """
    try:
        fd = os.open(path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
    except OSError as e:
        logger.error('can\'t open OTP users lock file "%s": %s', path, e.strerror)
        raise StoreError(f"cannot open lock file {path}") from e

    try:
        deadline = time.monotonic() + timeout
        while True:
            try:
                fcntl.flock(fd, fcntl.LOCK_EX | fcntl.LOCK_NB)
                break
            except BlockingIOError:
                if time.monotonic() >= deadline:
                    logger.error('timed out after %.1fs waiting for OTP users lock file "%s"', timeout, path)
                    raise StoreLockTimeout(f"lock on {path} is busy") from None
                time.sleep(_POLL_INTERVAL)
            except OSError as e:
                logger.error('can\'t lock OTP users lock file "%s": %s', path, e.strerror)
                raise StoreError(f"cannot lock {path}") from e
        yield
    finally:
        # Closing the descriptor drops the flock
        os.close(fd)
