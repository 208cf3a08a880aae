# app/core/auth.py
"""
Bearer-token identity for the storefront.

Tokens are issued elsewhere; this module only checks the signature, maps the
"sub" claim onto a `User` row (creating one on first sight) and exposes the
role guards used by the routers.
"""
import logging
import uuid
from typing import Any

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
from jose import jwt, JWTError
from sqlmodel import Session, select

from app.core.config import get_settings
from app.database import get_session
from app.models.user import User

logger = logging.getLogger(__name__)

settings = get_settings()

# Missing header resolves to an anonymous caller; the guards decide.
bearer_scheme = HTTPBearer(auto_error=False)


def _unauthorized(detail: str) -> HTTPException:
    return HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail=detail)


def decode_access_token(token: str) -> dict[str, Any]:
    """
    Verify the token signature (and `exp` when the token carries one).

    Audience is not checked.
    """
    try:
        return jwt.decode(
            token,
            settings.AUTH_JWT_SECRET,
            algorithms=[settings.AUTH_JWT_ALG],
            options={"verify_aud": False},
        )
    except JWTError:
        raise _unauthorized("Invalid or expired token")


def _identity_from_claims(claims: dict[str, Any]) -> tuple[uuid.UUID, str]:
    sub = claims.get("sub")
    email = claims.get("email")
    if not sub or not email:
        raise _unauthorized("Token missing sub/email")

    try:
        return uuid.UUID(sub), email
    except ValueError:
        raise _unauthorized("Invalid sub in token")


def _provision_user(session: Session, user_id: uuid.UUID, email: str) -> User:
    # New accounts are always customers; admins are promoted in the database.
    local_part = email.split("@", 1)[0]
    user = User(id=user_id, email=email, name=local_part[:50], role="user")
    session.add(user)
    session.commit()
    session.refresh(user)
    logger.info("Provisioned customer %s", user_id)
    return user


def get_current_user(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
    session: Session = Depends(get_session),
) -> User | None:
    """
    Resolve the caller, or None when no bearer token was sent.
    """
    if credentials is None:
        return None

    user_id, email = _identity_from_claims(decode_access_token(credentials.credentials))

    user = session.exec(select(User).where(User.id == user_id)).first()
    if user is None:
        user = _provision_user(session, user_id, email)
    return user


def require_auth(user: User | None = Depends(get_current_user)) -> User:
    if user is None:
        raise _unauthorized("Authentication required")
    return user


def require_admin(user: User = Depends(require_auth)) -> User:
    """Catalog and order management."""
    if user.role != "admin":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Admin access required",
        )
    return user


def require_user(user: User = Depends(require_auth)) -> User:
    """Cart, checkout and payment; admins get 403."""
    if user.role != "user":
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail="Customer access required",
        )
    return user
