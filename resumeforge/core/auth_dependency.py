import logging
from typing import Any, Dict, Optional

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.orm import Session

from resumeforge.core.security import decode_token
from resumeforge.db.session import SessionLocal
from resumeforge.db.models.user import User

logger = logging.getLogger(__name__)

bearer_scheme = HTTPBearer(auto_error=False)


def get_db():
    """Database session dependency."""
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


def get_token_claims(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme)
) -> Dict[str, Any]:
    """Verified claims of the bearer token, or 401."""
    if credentials is None or not credentials.credentials:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Authentication required"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    
    claims = decode_token(credentials.credentials)
    if not claims or not claims.get("sub"):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail={"error": "Invalid token"},
            headers={"WWW-Authenticate": "Bearer"},
        )
    return claims


def get_current_user(claims: Dict[str, Any] = Depends(get_token_claims)) -> str:
    """Get the identity-provider user id from the token."""
    return claims["sub"]


def get_current_user_obj(
    claims: Dict[str, Any] = Depends(get_token_claims),
    db: Session = Depends(get_db)
) -> User:
    """
    Get the User row for the token, creating it on first sight.
    
    The identity provider owns sign-up, so an authenticated user without a row
    is simply new.
    """
    auth_user_id = claims["sub"]
    user = db.query(User).filter(User.auth_user_id == auth_user_id).first()
    
    if user is None:
        user = User(
            auth_user_id=auth_user_id,
            email=claims.get("email"),
            full_name=claims.get("name"),
        )
        db.add(user)
        db.commit()
        db.refresh(user)
        logger.info(f"User created on first request: user_id={user.id}, auth_user_id={auth_user_id}")
    elif claims.get("email") and user.email != claims.get("email"):
        user.email = claims.get("email")
        db.commit()
    
    return user
