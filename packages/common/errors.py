"""Error types shared by all campus services.

Two families exist:
- validation errors, raised before any call to the backing store, storage or webhook;
- remote errors, raised after such a call failed. Two Postgres SQLSTATEs are
  recognised and given specific messages (unique violation, insufficient privilege).

`remote_call` wraps a unit of database work and translates driver errors;
`install_error_handlers` renders every `CampusError` as `{"detail": ...}`.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncIterator

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import DBAPIError, IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

log = logging.getLogger(__name__)

UNIQUE_VIOLATION = "23505"
INSUFFICIENT_PRIVILEGE = "42501"


class CampusError(Exception):
    """Base class for errors surfaced to the caller as a notification."""

    status_code = 500

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class ValidationFailed(CampusError):
    """Input rejected before any remote call was made."""

    status_code = 422


class NotAuthenticated(CampusError):
    status_code = 401


class NotFound(CampusError):
    status_code = 404


class RemoteError(CampusError):
    """A backing store, storage or HTTP call failed."""

    status_code = 502

    def __init__(self, message: str, code: str | None = None) -> None:
        super().__init__(message)
        self.code = code


class DuplicateTitle(RemoteError):
    status_code = 409


class PermissionDenied(RemoteError):
    status_code = 403


class TutorUnavailable(RemoteError):
    status_code = 503


def pg_code(exc: DBAPIError) -> str | None:
    """Return the SQLSTATE carried by a wrapped driver error, when known."""
    orig = getattr(exc, "orig", None)
    code = getattr(orig, "pgcode", None) or getattr(orig, "sqlstate", None)
    if code:
        return str(code)
    # sqlite (dev/test) reports uniqueness without a SQLSTATE
    if isinstance(exc, IntegrityError) and "unique" in str(orig).lower():
        return UNIQUE_VIOLATION
    return None


def translate_db_error(exc: DBAPIError, action: str) -> RemoteError:
    """Map a database error to the message shown to the user."""
    code = pg_code(exc)
    if code == UNIQUE_VIOLATION:
        return DuplicateTitle("An item with this title already exists", code)
    if code == INSUFFICIENT_PRIVILEGE:
        return PermissionDenied("You do not have permission to perform this action", code)
    return RemoteError(f"Could not {action}", code)


@asynccontextmanager
async def remote_call(session: AsyncSession, action: str) -> AsyncIterator[None]:
    """Run database work, rolling back and translating driver errors.

    Args:
        session: The session the work runs in.
        action: Human-readable verb phrase used in the generic message.
    """
    try:
        yield
    except DBAPIError as exc:
        await session.rollback()
        log.warning("database error during %s: %s", action, exc.__class__.__name__)
        raise translate_db_error(exc, action) from exc


async def _campus_error_handler(request: Request, exc: CampusError) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})


def install_error_handlers(app: FastAPI) -> None:
    """Register the `CampusError` handler on an application."""
    app.add_exception_handler(CampusError, _campus_error_handler)
