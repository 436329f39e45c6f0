"""Repository layer for the Members service.

Profiles, points, the leaderboard and the members directory. Per-member post and
completion counts are aggregated by the database (grouped subqueries joined onto
profiles) rather than by scanning whole tables in application memory.
"""

from datetime import datetime, timedelta, timezone

from prometheus_client import Counter
from sqlalchemy import distinct, func, select, union, update
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.auth import User
from packages.common.errors import DuplicateTitle, NotFound, remote_call
from packages.common.tracing import xapi_event
from packages.schemas.members import LeaderboardEntry, Member, MemberStats
from services.community.models import ForumComment, ForumPost
from services.content.models import UserProgress
from .models import Profile

points_awarded_total = Counter(
    "campus_points_awarded_total",
    "Total points awarded to members",
    ["verb"],
)


async def get_profile(session: AsyncSession, profile_id: str) -> Profile | None:
    """Fetch a single profile by id."""
    return await session.get(Profile, profile_id)


async def ensure_profile(session: AsyncSession, user: User) -> Profile:
    """Return the profile for `user`, inserting a student profile on first sight."""
    profile = await session.get(Profile, user.sub)
    if profile is not None:
        return profile
    profile = Profile(id=user.sub, email=user.email, full_name=user.full_name, role="student", points=0)
    try:
        async with remote_call(session, "create profile"):
            session.add(profile)
            await session.commit()
    except DuplicateTitle:
        # a concurrent first request inserted it
        existing = await session.get(Profile, user.sub)
        if existing is None:
            raise
        return existing
    return profile


async def update_role(session: AsyncSession, profile_id: str, role: str) -> Profile:
    """Change a member's role.

    Raises:
        NotFound: when no profile has `profile_id`.
    """
    profile = await session.get(Profile, profile_id)
    if profile is None:
        raise NotFound("Member not found")
    async with remote_call(session, "update the member role"):
        profile.role = role
        await session.commit()
    return profile


async def award_points(
    session: AsyncSession,
    user_id: str,
    points: int,
    *,
    verb: str,
    obj: str,
    commit: bool = True,
) -> None:
    """Add `points` to a member's score.

    Points only ever grow, so non-positive amounts are rejected.

    Args:
        session: Active AsyncSession.
        user_id: Profile receiving the points.
        points: Amount to add (> 0).
        verb: What the member did, for telemetry ("posted", "completed").
        obj: What they did it to, for telemetry ("forum_post:<id>").
        commit: Commit immediately; pass False to join the caller's unit of work.
    """
    if points <= 0:
        raise ValueError("points must be positive")
    async with remote_call(session, "award points"):
        await session.execute(
            update(Profile).where(Profile.id == user_id).values(points=Profile.points + points)
        )
        if commit:
            await session.commit()
    points_awarded_total.labels(verb=verb).inc(points)
    xapi_event(user_id, verb, obj, points=points)


def rank_badge(rank: int) -> str:
    if rank == 1:
        return "champion"
    if rank == 2:
        return "runner-up"
    if rank == 3:
        return "third"
    if rank <= 10:
        return "top-10"
    return f"#{rank}"


def _counts():
    posts = (
        select(ForumPost.user_id.label("user_id"), func.count().label("n"))
        .group_by(ForumPost.user_id)
        .subquery()
    )
    progress = (
        select(UserProgress.user_id.label("user_id"), func.count().label("n"))
        .group_by(UserProgress.user_id)
        .subquery()
    )
    return posts, progress


async def _ranked(session: AsyncSession, limit: int | None):
    posts, progress = _counts()
    q = (
        select(Profile, func.coalesce(posts.c.n, 0), func.coalesce(progress.c.n, 0))
        .outerjoin(posts, posts.c.user_id == Profile.id)
        .outerjoin(progress, progress.c.user_id == Profile.id)
        .order_by(Profile.points.desc(), Profile.created_at)
    )
    if limit is not None:
        q = q.limit(limit)
    res = await session.execute(q)
    return res.all()


async def leaderboard(session: AsyncSession, limit: int = 50) -> list[LeaderboardEntry]:
    """Top members by points with their post and completed-lesson counts."""
    rows = await _ranked(session, limit)
    return [
        LeaderboardEntry(
            id=p.id,
            full_name=p.full_name,
            email=p.email,
            points=p.points or 0,
            role=p.role or "student",
            post_count=post_count,
            progress_count=progress_count,
            rank=i,
            badge=rank_badge(i),
        )
        for i, (p, post_count, progress_count) in enumerate(rows, start=1)
    ]


async def list_members(session: AsyncSession) -> list[Member]:
    """All members by points, each with post and completion counts."""
    rows = await _ranked(session, None)
    return [
        Member.model_validate(p).model_copy(update={"post_count": pc, "progress_count": pr})
        for p, pc, pr in rows
    ]


async def member_stats(session: AsyncSession, now: datetime | None = None) -> MemberStats:
    """Directory totals; "active" means posted, commented or completed a lesson in 7 days."""
    since = (now or datetime.now(timezone.utc)) - timedelta(days=7)
    active = union(
        select(ForumPost.user_id.label("user_id")).where(ForumPost.created_at >= since),
        select(ForumComment.user_id.label("user_id")).where(ForumComment.created_at >= since),
        select(UserProgress.user_id.label("user_id")).where(UserProgress.completed_at >= since),
    ).subquery()

    total_members = await session.scalar(select(func.count()).select_from(Profile))
    total_posts = await session.scalar(select(func.count()).select_from(ForumPost))
    completed = await session.scalar(select(func.count()).select_from(UserProgress))
    active_count = await session.scalar(select(func.count(distinct(active.c.user_id))))
    return MemberStats(
        total_members=total_members or 0,
        active_this_week=active_count or 0,
        total_posts=total_posts or 0,
        completed_lessons=completed or 0,
    )
