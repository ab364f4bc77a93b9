"""
Session token helpers.

Tokens are JWTs issued by the identity provider; `sub` carries the provider's
user id. create_access_token mints compatible tokens for local development
and tests.
"""
import logging
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional

from jose import jwt, JWTError

from resumeforge.core import config

logger = logging.getLogger(__name__)


def create_access_token(data: dict, expires_delta: timedelta = None) -> str:
    if not config.AUTH_JWT_KEY:
        raise ValueError("AUTH_JWT_KEY not configured")
    to_encode = data.copy()
    expire = datetime.now(timezone.utc) + (expires_delta or timedelta(minutes=60))
    to_encode.update({"exp": expire})
    if config.AUTH_JWT_AUDIENCE:
        to_encode.setdefault("aud", config.AUTH_JWT_AUDIENCE)
    return jwt.encode(to_encode, config.AUTH_JWT_KEY, algorithm=config.AUTH_JWT_ALGORITHM)


def decode_token(token: str) -> Optional[Dict[str, Any]]:
    """
    Verify and decode a session token.
    
    Returns:
        Claims dict, or None if the token is invalid, expired, or auth is not configured
    """
    if not config.AUTH_JWT_KEY:
        logger.error("AUTH_JWT_KEY not configured - rejecting all tokens")
        return None
    
    options = {"verify_aud": bool(config.AUTH_JWT_AUDIENCE)}
    try:
        return jwt.decode(
            token,
            config.AUTH_JWT_KEY,
            algorithms=[config.AUTH_JWT_ALGORITHM],
            audience=config.AUTH_JWT_AUDIENCE,
            options=options,
        )
    except JWTError as e:
        logger.debug(f"Token rejected: {e}")
        return None
