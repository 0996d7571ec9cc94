# crosspost/UAA/oauth_state.py
"""
Signed OAuth ``state`` values.

The state round-trips through a third-party authorization server, so it has to
survive URL encoding, name the user who started the flow, resist tampering and
expire. It is a compact HS256 JWT (``sub`` = user id, ``iat``/``exp`` ten
minutes apart) signed with ``OAUTH_STATE_SECRET``.
"""
import time
from dataclasses import dataclass
from typing import Optional

import structlog
from jose import jwt, JWTError
from jose.utils import base64url_decode, base64url_encode

from crosspost import config

logger = structlog.get_logger(__name__)

STATE_MAX_AGE_SECONDS = 10 * 60


@dataclass(frozen=True)
class OAuthStateCheck:
    valid: bool
    user_id: Optional[str] = None


def _now_ts() -> int:
    return int(time.time())


def _canonical_signature(state: str) -> bool:
    # base64url leaves spare bits in the last character; only the canonical spelling is accepted
    signature = state.rsplit(".", 1)[-1].encode()
    try:
        return base64url_encode(base64url_decode(signature)) == signature
    except (ValueError, TypeError):
        return False


def create_oauth_state(user_id: str, now: Optional[int] = None, secret: Optional[str] = None) -> str:
    issued = _now_ts() if now is None else now
    payload = {"sub": str(user_id), "iat": issued, "exp": issued + STATE_MAX_AGE_SECONDS}
    return jwt.encode(payload, secret or config.OAUTH_STATE_SECRET, algorithm=config.ALGORITHM)


def verify_oauth_state(state: Optional[str], now: Optional[int] = None, secret: Optional[str] = None) -> OAuthStateCheck:
    """Never raises; anything unexpected is an invalid state."""
    if not state or not _canonical_signature(state):
        return OAuthStateCheck(valid=False)
    try:
        claims = jwt.decode(
            state,
            secret or config.OAUTH_STATE_SECRET,
            algorithms=[config.ALGORITHM],
            # a pinned clock is checked below instead of against the wall clock
            options={"verify_exp": now is None, "verify_iat": now is None},
        )
    except JWTError as e:
        logger.info("oauth_state_rejected", error=str(e))
        return OAuthStateCheck(valid=False)

    user_id = claims.get("sub")
    exp = claims.get("exp")
    if not user_id or not isinstance(exp, int):
        return OAuthStateCheck(valid=False)
    if now is not None and now > exp:
        logger.info("oauth_state_expired", user_id=user_id)
        return OAuthStateCheck(valid=False)
    return OAuthStateCheck(valid=True, user_id=user_id)
