"""Repository layer for Content service.

CRUD for the module → topic → lesson tree, the learner classroom view and
lesson completion.
"""

from typing import Any

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from packages.common.config import get_settings
from packages.common.errors import DuplicateTitle, NotFound, remote_call
from packages.schemas.content import (
    ClassroomLesson, ClassroomModule, ClassroomTopic, CreateContent, UpdateContent,
)
from services.members.repo import award_points
from .models import Lesson, Module, Topic, UserProgress
from .video import embed_url

KINDS: dict[str, Any] = {"modules": Module, "topics": Topic, "lessons": Lesson}
LABELS = {"modules": "module", "topics": "topic", "lessons": "lesson"}


def _tree_query(published_only: bool = False):
    q = select(Module).options(selectinload(Module.topics).selectinload(Topic.lessons)).order_by(Module.order_index)
    if published_only:
        q = q.where(Module.is_published.is_(True))
    return q


async def list_tree(session: AsyncSession) -> list[Module]:
    """Return every module with its topics and lessons, in order."""
    res = await session.execute(_tree_query())
    return list(res.scalars().unique())


async def _next_index(session: AsyncSession, column, parent_column=None, parent_id: str | None = None) -> int:
    q = select(func.count(column))
    if parent_column is not None:
        q = q.where(parent_column == parent_id)
    return (await session.scalar(q) or 0) + 1


async def _require(session: AsyncSession, model, item_id: str, label: str):
    item = await session.get(model, item_id)
    if item is None:
        raise NotFound(f"{label.capitalize()} not found")
    return item


async def create_module(session: AsyncSession, payload: CreateContent) -> Module:
    """Append a module after the existing ones."""
    module = Module(
        title=payload.title,
        description=payload.description,
        is_published=payload.is_published,
        order_index=await _next_index(session, Module.id),
    )
    async with remote_call(session, "create the module"):
        session.add(module)
        await session.commit()
    return module


async def create_topic(session: AsyncSession, module_id: str, payload: CreateContent) -> Topic:
    """Append a topic to `module_id`.

    Raises:
        NotFound: when the parent module does not exist.
    """
    await _require(session, Module, module_id, "module")
    topic = Topic(
        module_id=module_id,
        title=payload.title,
        description=payload.description,
        is_published=payload.is_published,
        order_index=await _next_index(session, Topic.id, Topic.module_id, module_id),
    )
    async with remote_call(session, "create the topic"):
        session.add(topic)
        await session.commit()
    return topic


async def create_lesson(session: AsyncSession, topic_id: str, payload: CreateContent) -> Lesson:
    """Append a lesson to `topic_id`.

    Raises:
        NotFound: when the parent topic does not exist.
    """
    await _require(session, Topic, topic_id, "topic")
    lesson = Lesson(
        topic_id=topic_id,
        title=payload.title,
        description=payload.description,
        is_published=payload.is_published,
        youtube_url=payload.youtube_url or None,
        order_index=await _next_index(session, Lesson.id, Lesson.topic_id, topic_id),
    )
    async with remote_call(session, "create the lesson"):
        session.add(lesson)
        await session.commit()
    return lesson


async def update_item(session: AsyncSession, kind: str, item_id: str, changes: UpdateContent):
    """Apply a partial update to a module, topic or lesson."""
    model = KINDS[kind]
    item = await _require(session, model, item_id, LABELS[kind])
    fields = changes.model_dump(exclude_unset=True)
    if kind != "lessons":
        fields.pop("youtube_url", None)
    async with remote_call(session, f"update the {LABELS[kind]}"):
        for name, value in fields.items():
            setattr(item, name, value)
        await session.commit()
    return item


async def delete_item(session: AsyncSession, kind: str, item_id: str) -> None:
    """Delete immediately and permanently; children go with their parent."""
    model = KINDS[kind]
    item = await _require(session, model, item_id, LABELS[kind])
    async with remote_call(session, f"delete the {LABELS[kind]}"):
        await session.delete(item)
        await session.commit()


async def get_item(session: AsyncSession, kind: str, item_id: str):
    """Fetch one module, topic or lesson.

    Raises:
        NotFound: when it does not exist.
    """
    return await _require(session, KINDS[kind], item_id, LABELS[kind])


async def set_cover_image(session: AsyncSession, module_id: str, url: str) -> Module:
    module = await _require(session, Module, module_id, "module")
    async with remote_call(session, "update the module cover"):
        module.cover_image_url = url
        await session.commit()
    return module


async def completed_lessons(session: AsyncSession, user_id: str) -> set[str]:
    res = await session.execute(select(UserProgress.lesson_id).where(UserProgress.user_id == user_id))
    return set(res.scalars())


async def classroom(session: AsyncSession, user_id: str) -> list[ClassroomModule]:
    """Published content with the caller's completion state per lesson."""
    res = await session.execute(_tree_query(published_only=True))
    done = await completed_lessons(session, user_id)
    modules = []
    for m in res.scalars().unique():
        topics = []
        for t in m.topics:
            if not t.is_published:
                continue
            lessons = [
                ClassroomLesson.model_validate(lesson).model_copy(update={
                    "completed": lesson.id in done,
                    "embed_url": embed_url(lesson.youtube_url),
                })
                for lesson in t.lessons
                if lesson.is_published
            ]
            topics.append(ClassroomTopic(
                id=t.id,
                title=t.title,
                description=t.description,
                order_index=t.order_index,
                is_published=t.is_published,
                lessons=lessons,
            ))
        modules.append(ClassroomModule(
            id=m.id,
            title=m.title,
            description=m.description,
            order_index=m.order_index,
            is_published=m.is_published,
            cover_image_url=m.cover_image_url,
            topics=topics,
        ))
    return modules


async def mark_lesson_complete(session: AsyncSession, user_id: str, lesson_id: str) -> int:
    """Record completion and award points the first time.

    Returns:
        Points awarded: the configured amount on first completion, 0 when the
        lesson was already complete.
    """
    await _require(session, Lesson, lesson_id, "lesson")
    exists = await session.scalar(
        select(UserProgress.id).where(UserProgress.user_id == user_id, UserProgress.lesson_id == lesson_id)
    )
    if exists:
        return 0
    try:
        async with remote_call(session, "mark the lesson as completed"):
            session.add(UserProgress(user_id=user_id, lesson_id=lesson_id))
            await session.flush()
    except DuplicateTitle:
        # completed concurrently by another request
        return 0
    points = get_settings().POINTS_PER_LESSON
    await award_points(session, user_id, points, verb="completed", obj=f"lesson:{lesson_id}", commit=False)
    async with remote_call(session, "mark the lesson as completed"):
        await session.commit()
    return points
