"""Auth helpers for FastAPI endpoints.

Provides:
- `User` Pydantic model for the JWT subject issued by the hosted auth provider
- `verify_jwt` to decode/validate access tokens
- `get_current_user` FastAPI dependency using HTTP Bearer auth
- `get_optional_user` for endpoints that also serve anonymous callers
"""

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBearer, HTTPAuthorizationCredentials
import jwt
from pydantic import BaseModel
from .config import get_settings

security = HTTPBearer(auto_error=False)


class User(BaseModel):
    """Authenticated user extracted from a validated JWT."""
    sub: str
    email: str | None = None
    full_name: str | None = None


def verify_jwt(token: str) -> User:
    """Decode and validate a JWT and return a `User`.

    Validates signature, audience, and expiration using settings.
    Raises HTTP 401 on any validation failure.

    Args:
        token: Bearer token string (JWT).

    Returns:
        User: Parsed user info from token claims.
    """
    s = get_settings()
    try:
        payload = jwt.decode(
            token,
            s.JWT_SECRET,
            algorithms=[s.JWT_ALGORITHM],
            audience=s.JWT_AUDIENCE,
            options={"verify_exp": True, "require": ["sub"]},
        )
    except jwt.PyJWTError:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid token",
        )
    metadata = payload.get("user_metadata") or {}
    return User(
        sub=payload["sub"],
        email=payload.get("email"),
        full_name=metadata.get("full_name"),
    )


def get_current_user(creds: HTTPAuthorizationCredentials = Depends(security)) -> User:
    """FastAPI dependency to extract the current user from Authorization header.

    Raises:
        HTTPException: 401 if credentials are missing or token is invalid.
    """
    if not creds:
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing credentials",
        )
    return verify_jwt(creds.credentials)


def get_optional_user(creds: HTTPAuthorizationCredentials = Depends(security)) -> User | None:
    """Like `get_current_user`, but anonymous callers yield None."""
    if not creds:
        return None
    return verify_jwt(creds.credentials)
