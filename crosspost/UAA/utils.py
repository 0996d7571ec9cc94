# crosspost/UAA/utils.py
from datetime import datetime, timezone
from typing import Dict, Any, Optional

import structlog
from jose import jwt, JWTError
from cryptography.fernet import Fernet, InvalidToken

from crosspost import config

logger = structlog.get_logger(__name__)

OAUTH_TOKEN_KEY = config.OAUTH_TOKEN_KEY
if not OAUTH_TOKEN_KEY:
    # dev fallback (not for production): tokens stored with it are unreadable after restart
    OAUTH_TOKEN_KEY = Fernet.generate_key().decode()

fernet = Fernet(OAUTH_TOKEN_KEY.encode())


# --- time and JWT helpers ---
def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Backends without timezone support hand back naive UTC values."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def decode_token(token: str) -> Dict[str, Any]:
    try:
        return jwt.decode(token, config.SECRET_KEY, algorithms=[config.ALGORITHM])
    except JWTError as e:
        logger.warning("token_decode_failed", error=str(e))
        raise


# --- platform token encryption ---
def encrypt_token(plaintext: Optional[str]) -> Optional[str]:
    if plaintext is None:
        return None
    return fernet.encrypt(plaintext.encode()).decode()


def decrypt_token(ciphertext: Optional[str]) -> Optional[str]:
    if not ciphertext:
        return None
    try:
        return fernet.decrypt(ciphertext.encode()).decode()
    except InvalidToken:
        logger.warning("platform_token_decrypt_failed")
        return None
