"""RBAC utilities for FastAPI dependencies.

Roles live on the caller's `profiles` row (admin | instructor | student), not in
the token, so role changes take effect on the next request. Row-level policies
in the backing store remain the final authority; these checks only decide which
operations are offered.
"""

from typing import Awaitable, Callable
from fastapi import Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession
from .auth import get_current_user, User
from .db import get_session
from services.members.models import Profile
from services.members.repo import ensure_profile

CONTENT_MANAGERS = ("admin", "instructor")


async def get_current_profile(
    user: User = Depends(get_current_user),
    session: AsyncSession = Depends(get_session),
) -> Profile:
    """Return the caller's profile, creating it on first sight."""
    return await ensure_profile(session, user)


def require_roles(*allowed: str) -> Callable[..., Awaitable[Profile]]:
    """Create a dependency that admits callers holding one of `allowed`.

    Args:
        allowed: Role names that may use the endpoint.

    Returns:
        A FastAPI dependency callable that:
          - receives the current `Profile` (via `Depends(get_current_profile)`)
          - raises 403 if the profile's role is not in `allowed`
          - otherwise returns the `Profile`
    """
    async def wrapper(profile: Profile = Depends(get_current_profile)) -> Profile:
        """Validate the current profile's role against the allowed set."""
        if profile.role not in allowed:
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail="Insufficient role",
            )
        return profile

    return wrapper
