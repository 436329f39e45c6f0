"""Repository layer for the Community service.

Posts are returned already decorated with the author's name and points, the
comment count and the like count; all of it is joined and aggregated in one
query instead of fetching the profiles and comments tables and counting in
memory.
"""

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from packages.common.config import get_settings
from packages.common.errors import DuplicateTitle, NotFound, remote_call
from packages.schemas.community import Comment, CreateComment, CreatePost, LikeState, Post, PostImage
from services.members.models import Profile
from services.members.repo import award_points
from .models import ForumComment, ForumPost, ForumPostImage, ForumPostLike


def _posts_query():
    comments = (
        select(ForumComment.post_id.label("post_id"), func.count().label("n"))
        .group_by(ForumComment.post_id)
        .subquery()
    )
    likes = (
        select(ForumPostLike.post_id.label("post_id"), func.count().label("n"))
        .group_by(ForumPostLike.post_id)
        .subquery()
    )
    return (
        select(
            ForumPost,
            Profile.full_name,
            func.coalesce(Profile.points, 0),
            func.coalesce(comments.c.n, 0),
            func.coalesce(likes.c.n, 0),
        )
        .outerjoin(Profile, Profile.id == ForumPost.user_id)
        .outerjoin(comments, comments.c.post_id == ForumPost.id)
        .outerjoin(likes, likes.c.post_id == ForumPost.id)
        .options(selectinload(ForumPost.images))
        .order_by(ForumPost.created_at.desc())
        .execution_options(populate_existing=True)
    )


async def _liked_by(session: AsyncSession, user_id: str | None) -> set[str]:
    if not user_id:
        return set()
    res = await session.execute(select(ForumPostLike.post_id).where(ForumPostLike.user_id == user_id))
    return set(res.scalars())


def _to_post(row, liked: set[str]) -> Post:
    post, author_name, author_points, comment_count, likes_count = row
    return Post(
        id=post.id,
        user_id=post.user_id,
        title=post.title,
        content=post.content,
        category=post.category,
        image_url=post.image_url,
        created_at=post.created_at,
        author_name=author_name,
        author_points=author_points,
        comment_count=comment_count,
        likes_count=likes_count,
        liked_by_user=post.id in liked,
        images=[PostImage.model_validate(i) for i in post.images],
    )


async def list_posts(
    session: AsyncSession,
    viewer_id: str | None = None,
    search: str | None = None,
    category: str | None = None,
) -> list[Post]:
    """Posts newest first, optionally filtered by text and category.

    Args:
        viewer_id: Profile whose like state is reported; None for anonymous.
        search: Case-insensitive substring of title or content.
        category: Category name; None or "all" disables the filter.
    """
    q = _posts_query()
    if search:
        pattern = f"%{search.strip()}%"
        q = q.where(or_(ForumPost.title.ilike(pattern), ForumPost.content.ilike(pattern)))
    if category and category != "all":
        q = q.where(ForumPost.category == category)
    res = await session.execute(q)
    liked = await _liked_by(session, viewer_id)
    return [_to_post(row, liked) for row in res.all()]


async def get_post(session: AsyncSession, post_id: str, viewer_id: str | None = None) -> Post:
    """One decorated post.

    Raises:
        NotFound: when the post does not exist.
    """
    res = await session.execute(_posts_query().where(ForumPost.id == post_id))
    row = res.first()
    if row is None:
        raise NotFound("Post not found")
    return _to_post(row, await _liked_by(session, viewer_id))


async def _require_post(session: AsyncSession, post_id: str) -> ForumPost:
    post = await session.get(ForumPost, post_id)
    if post is None:
        raise NotFound("Post not found")
    return post


async def create_post(session: AsyncSession, user_id: str, payload: CreatePost) -> Post:
    """Insert a post and award the author's participation points."""
    post = ForumPost(user_id=user_id, title=payload.title, content=payload.content, category=payload.category)
    async with remote_call(session, "create the post"):
        session.add(post)
        await session.flush()
    await award_points(
        session, user_id, get_settings().POINTS_PER_POST, verb="posted", obj=f"forum_post:{post.id}", commit=False
    )
    async with remote_call(session, "create the post"):
        await session.commit()
    return await get_post(session, post.id, viewer_id=user_id)


async def list_comments(session: AsyncSession, post_id: str) -> list[Comment]:
    """Comments of a post, oldest first."""
    res = await session.execute(
        select(ForumComment).where(ForumComment.post_id == post_id).order_by(ForumComment.created_at)
    )
    return [Comment.model_validate(c) for c in res.scalars()]


async def add_comment(session: AsyncSession, post_id: str, user_id: str, payload: CreateComment) -> Comment:
    await _require_post(session, post_id)
    comment = ForumComment(post_id=post_id, user_id=user_id, content=payload.content)
    async with remote_call(session, "add the comment"):
        session.add(comment)
        await session.commit()
    return Comment.model_validate(comment)


async def like_state(session: AsyncSession, post_id: str, user_id: str) -> LikeState:
    count = await session.scalar(select(func.count()).select_from(ForumPostLike).where(ForumPostLike.post_id == post_id))
    liked = await session.scalar(
        select(ForumPostLike.id).where(ForumPostLike.post_id == post_id, ForumPostLike.user_id == user_id)
    )
    return LikeState(post_id=post_id, liked=liked is not None, likes_count=count or 0)


async def like(session: AsyncSession, post_id: str, user_id: str) -> LikeState:
    """Insert the (post, user) like row; liking twice leaves a single row."""
    await _require_post(session, post_id)
    state = await like_state(session, post_id, user_id)
    if not state.liked:
        try:
            async with remote_call(session, "update the like"):
                session.add(ForumPostLike(post_id=post_id, user_id=user_id))
                await session.commit()
        except DuplicateTitle:
            pass  # a concurrent request inserted the same pair
    return await like_state(session, post_id, user_id)


async def unlike(session: AsyncSession, post_id: str, user_id: str) -> LikeState:
    """Delete the (post, user) like row if present."""
    await _require_post(session, post_id)
    row = await session.scalar(
        select(ForumPostLike).where(ForumPostLike.post_id == post_id, ForumPostLike.user_id == user_id)
    )
    if row is not None:
        async with remote_call(session, "update the like"):
            await session.delete(row)
            await session.commit()
    return await like_state(session, post_id, user_id)


async def image_count(session: AsyncSession, post_id: str) -> int:
    return await session.scalar(
        select(func.count()).select_from(ForumPostImage).where(ForumPostImage.post_id == post_id)
    ) or 0


async def attach_image(session: AsyncSession, post_id: str, record: PostImage) -> PostImage:
    """Store an uploaded file record; the first image also becomes the post's cover."""
    post = await _require_post(session, post_id)
    image = ForumPostImage(
        post_id=post_id, path=record.path, name=record.name, size=record.size, mime=record.mime, url=record.url
    )
    async with remote_call(session, "attach the image"):
        session.add(image)
        if not post.image_url:
            post.image_url = record.url
        await session.commit()
    return PostImage.model_validate(image)
