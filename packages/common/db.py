"""Async database wiring shared by every service.

One declarative `Base` holds all tables (profiles are referenced by content
progress and forum rows), one engine/sessionmaker pair is built from settings.
"""

from typing import AsyncIterator

from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from sqlalchemy.orm import declarative_base

from .config import get_settings

Base = declarative_base()

s = get_settings()
engine = create_async_engine(s.DATABASE_DSN, echo=False)
Session = async_sessionmaker(engine, expire_on_commit=False)


async def init_db() -> None:
    """Create database schema if it doesn't exist."""
    # Table modules register themselves on Base at import time.
    import services.members.models  # noqa: F401
    import services.content.models  # noqa: F401
    import services.community.models  # noqa: F401

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def get_session() -> AsyncIterator[AsyncSession]:
    """FastAPI dependency yielding a session bound to the shared engine."""
    async with Session() as session:
        yield session
