"""SQLAlchemy model for member profiles.

A profile row shares its id with the auth provider's user (token `sub`) and
carries the role used for capability checks plus the gamification points.
"""

from datetime import datetime, timezone

from sqlalchemy import DateTime, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from packages.common.db import Base


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Profile(Base):
    """Member profile.

    Attributes:
        id: Auth subject id.
        full_name: Display name, may be empty until the member sets it.
        email: Contact email copied from the token on first sight.
        avatar_url: Optional avatar image URL.
        role: One of admin / instructor / student.
        points: Monotonically increasing score from awarded actions.
    """

    __tablename__ = "profiles"
    id: Mapped[str] = mapped_column(String(36), primary_key=True)
    full_name: Mapped[str | None] = mapped_column(String(200), nullable=True)
    email: Mapped[str | None] = mapped_column(String(320), nullable=True)
    avatar_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    role: Mapped[str] = mapped_column(String(16), default="student")
    points: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
