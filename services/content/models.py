"""SQLAlchemy models for the Content service.

Defines the course tree and learner progress:
- Module: top-level course section, owns ordered topics.
- Topic: belongs to a module, owns ordered lessons.
- Lesson: belongs to a topic, may reference an external video.
- UserProgress: one row per (member, completed lesson).
"""

from datetime import datetime, timezone
from uuid import uuid4

from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from packages.common.db import Base


def _uuid() -> str:
    return str(uuid4())


def _now() -> datetime:
    return datetime.now(timezone.utc)


class Module(Base):
    """Course module grouping topics under a single title.

    Attributes:
        id: Primary key (UUID string).
        title: Human-readable module title, unique across modules.
        description: Optional long description.
        order_index: Position among modules (1-based, appended on create).
        is_published: Visible to learners in the classroom.
        cover_image_url: Public URL of the cover image, if any.
        topics: Relationship to child Topic rows, ordered by order_index.
    """

    __tablename__ = "modules"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    title: Mapped[str] = mapped_column(String(200), unique=True)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, default=1)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False)
    cover_image_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    topics = relationship(
        "Topic",
        back_populates="module",
        order_by="Topic.order_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Topic(Base):
    """Topic entity that belongs to a Module."""

    __tablename__ = "topics"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    module_id: Mapped[str] = mapped_column(ForeignKey("modules.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, default=1)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    module = relationship("Module", back_populates="topics")
    lessons = relationship(
        "Lesson",
        back_populates="topic",
        order_by="Lesson.order_index",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class Lesson(Base):
    """Lesson entity that belongs to a Topic.

    Attributes:
        youtube_url: Optional link to the lesson video (any YouTube URL shape).
    """

    __tablename__ = "lessons"
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    topic_id: Mapped[str] = mapped_column(ForeignKey("topics.id", ondelete="CASCADE"), index=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    order_index: Mapped[int] = mapped_column(Integer, default=1)
    is_published: Mapped[bool] = mapped_column(Boolean, default=False)
    youtube_url: Mapped[str | None] = mapped_column(String(1024), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
    topic = relationship("Topic", back_populates="lessons")


class UserProgress(Base):
    """Completion marker; at most one per (member, lesson)."""

    __tablename__ = "user_progress"
    __table_args__ = (UniqueConstraint("user_id", "lesson_id", name="uq_user_progress_user_lesson"),)
    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_uuid)
    user_id: Mapped[str] = mapped_column(ForeignKey("profiles.id", ondelete="CASCADE"), index=True)
    lesson_id: Mapped[str] = mapped_column(ForeignKey("lessons.id", ondelete="CASCADE"), index=True)
    completed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_now)
