"""
verifier.py — OTP verification engine.

Two entry points, both called synchronously once per request:

- verify_password(config, username, otp)
    Lookup -> PIN prefix (HOTP only) -> length -> reuse/linger ->
    counter window search -> persist new counter state on success.

- compute_digest_hash(config, username, realm)
    Predicts the OTP the client will type and returns
    md5("username:realm:" + pin + otp) for an HTTP Digest layer to check.

Mọi lần gọi đều đọc lại users file (no cache), so several processes can
share one file safely; writes are serialized by otp_store.
"""

import copy
import enum
import hashlib
import logging
import time
from typing import Optional, Tuple

from otp_store import users_file as store
from otp_store.errors import StoreError

from .codec import Algorithm, UserRecord
from .config import OTPConfig
from .generators import expected_counter, generate_candidates, otp_matches, predict_otp

logger = logging.getLogger(__name__)


class AuthStatus(enum.Enum):
    GRANTED = "granted"
    DENIED = "denied"
    USER_NOT_FOUND = "user_not_found"
    GENERAL_ERROR = "general_error"


def _load_user(config: OTPConfig, username: str) -> Tuple[Optional[UserRecord], AuthStatus]:
    if not config.users_file:
        logger.error("No OTP users file has been configured")
        return None, AuthStatus.GENERAL_ERROR
    try:
        user = store.lookup_user(config.users_file, username)
    except StoreError:
        return None, AuthStatus.GENERAL_ERROR
    if user is None:
        return None, AuthStatus.USER_NOT_FOUND
    return user, AuthStatus.GRANTED


def _save_user(config: OTPConfig, user: UserRecord) -> bool:
    try:
        store.update_user(config.users_file, user, lock_timeout=config.lock_timeout)
    except StoreError:
        logger.error('could not record authentication state for user "%s"', user.username)
        return False
    return True


def counter_window(user: UserRecord, max_offset: int) -> range:
    """
    Offset adjustments tried after the expected counter (adjustment 0).

    Event tokens only move forward: 1..max_offset.
    Time tokens tolerate clock skew both ways: -max_offset..max_offset.
    """
    if user.is_time_based:
        return range(-max_offset, max_offset + 1)
    return range(1, max_offset + 1)


def find_matching_adjustment(user: UserRecord, otp: str, counter: int, max_offset: int) -> Optional[int]:
    """
    Search the window around `counter` for `otp`.

    Trả về:
        the adjustment (0 for the expected counter) of the first match, or None
    """
    if otp_matches(otp, generate_candidates(user, counter)):
        return 0
    for adjustment in counter_window(user, max_offset):
        if adjustment == 0:
            continue
        if otp_matches(otp, generate_candidates(user, counter + adjustment)):
            return adjustment
    return None


def within_linger(user: UserRecord, now: int, max_linger: int) -> bool:
    return user.last_auth <= now < user.last_auth + max_linger


def verify_password(
    config: OTPConfig,
    username: str,
    submitted_otp: str,
    timestamp: Optional[int] = None,
) -> AuthStatus:
    """
    Xác minh OTP (HTTP Basic style: username + password string).

    For HOTP users the password is "<pin><otp>"; mOTP users type only the
    OTP since their PIN is hashed into it.

    Arguments:
        config: engine settings (users file, max_offset, max_linger)
        username: user name as typed by the client
        submitted_otp: password string as typed by the client
        timestamp: epoch seconds used as "now" (None -> time.time())

    Trả về:
        AuthStatus.GRANTED / DENIED / USER_NOT_FOUND / GENERAL_ERROR
    """
    user, status = _load_user(config, username)
    if user is None:
        return status
    now = int(time.time()) if timestamp is None else timestamp

    otp = submitted_otp
    if user.algorithm is not Algorithm.MOTP:
        if not otp.startswith(user.pin):
            logger.info('user "%s" PIN does not match', username)
            return AuthStatus.DENIED
        otp = otp[len(user.pin):]

    if len(otp) != user.num_digits:
        logger.info('user "%s" OTP has the wrong length %d != %d', username, len(otp), user.num_digits)
        return AuthStatus.DENIED

    # Reuse of the previous OTP never moves the counter
    if user.last_otp and otp == user.last_otp:
        if within_linger(user, now, config.max_linger):
            logger.info('accepting reuse of OTP for "%s" within %d sec. linger time', username, config.max_linger)
            return AuthStatus.GRANTED
        logger.info(
            'user "%s" provided the previous OTP but it has expired (max linger is %d sec.)',
            username, config.max_linger,
        )
        return AuthStatus.DENIED

    counter = expected_counter(user, now)
    adjustment = find_matching_adjustment(user, otp, counter, config.max_offset)
    if adjustment is None:
        logger.info('user "%s" provided the wrong OTP', username)
        return AuthStatus.DENIED

    if adjustment == 0:
        logger.info('accepting OTP for "%s" at counter %d', username, counter)
    else:
        logger.info('accepting OTP for "%s" at counter %d (offset adjust %d)', username, counter + adjustment, adjustment)

    updated = copy.copy(user)
    if user.is_time_based:
        updated.offset = user.offset + adjustment
    else:
        updated.offset = counter + adjustment + 1
    updated.last_otp = otp
    updated.last_auth = now

    if not _save_user(config, updated):
        return AuthStatus.GENERAL_ERROR
    return AuthStatus.GRANTED


def compute_digest_hash(
    config: OTPConfig,
    username: str,
    realm: str,
    timestamp: Optional[int] = None,
) -> Tuple[Optional[str], AuthStatus]:
    """
    HTTP Digest support: hash of "username:realm:password" for the expected OTP.

    Inside the linger window the previous OTP is assumed; otherwise the OTP at
    the expected counter is assumed and the user's state is advanced right
    away, before the client's digest response has been checked.

    Trả về:
        (hex md5 hash, AuthStatus.GRANTED) or (None, USER_NOT_FOUND / GENERAL_ERROR)
    """
    user, status = _load_user(config, username)
    if user is None:
        return None, status
    now = int(time.time()) if timestamp is None else timestamp

    if within_linger(user, now, config.max_linger):
        logger.info(
            'generating digest hash for "%s" assuming reuse of OTP within %d sec. linger time',
            username, config.max_linger,
        )
        otp = user.last_otp
        counter = None
    else:
        if user.last_auth and user.last_otp:
            logger.info(
                'not using previous expired OTP for user "%s" (max linger is %d sec.)',
                username, config.max_linger,
            )
        counter = expected_counter(user, now)
        logger.info('generating digest hash for "%s" assuming OTP counter %d', username, counter)
        otp = predict_otp(user, counter)

    pin = "" if user.algorithm is Algorithm.MOTP else user.pin
    digest_hash = hashlib.md5(f"{user.username}:{realm}:{pin}{otp}".encode("utf-8")).hexdigest()

    if counter is not None:
        # TODO: defer this until the outer layer confirms the digest response;
        # a client that never answers the challenge still consumes an OTP.
        updated = copy.copy(user)
        if not user.is_time_based:
            updated.offset = counter + 1
        updated.last_otp = otp
        updated.last_auth = now
        if not _save_user(config, updated):
            return None, AuthStatus.GENERAL_ERROR

    return digest_hash, AuthStatus.GRANTED
