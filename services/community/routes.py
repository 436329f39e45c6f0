# services/community/routes.py
"""Forum endpoints: posts, comments, likes and image attachments."""

from typing import Optional

from fastapi import APIRouter, Depends, File, UploadFile
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.auth import User, get_optional_user
from packages.common.config import get_settings
from packages.common.db import get_session
from packages.common.errors import CampusError, PermissionDenied, ValidationFailed
from packages.common.rbac import get_current_profile
from packages.common.storage import ObjectStorage, discard, ensure_image, forum_images, object_key, store_object
from packages.schemas.community import Comment, CreateComment, CreatePost, LikeState, Post, PostImage
from services.members.models import Profile
from . import repo

router = APIRouter(prefix="/forum", tags=["community"])


@router.get("/posts", response_model=list[Post])
async def list_posts(
    search: Optional[str] = None,
    category: Optional[str] = None,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
) -> list[Post]:
    return await repo.list_posts(session, user.sub if user else None, search, category)


@router.post("/posts", response_model=Post, status_code=201)
async def create_post(
    body: CreatePost,
    profile: Profile = Depends(get_current_profile),
    session: AsyncSession = Depends(get_session),
) -> Post:
    return await repo.create_post(session, profile.id, body)


@router.get("/posts/{post_id}", response_model=Post)
async def read_post(
    post_id: str,
    user: Optional[User] = Depends(get_optional_user),
    session: AsyncSession = Depends(get_session),
) -> Post:
    return await repo.get_post(session, post_id, user.sub if user else None)


@router.get("/posts/{post_id}/comments", response_model=list[Comment])
async def list_comments(post_id: str, session: AsyncSession = Depends(get_session)) -> list[Comment]:
    return await repo.list_comments(session, post_id)


@router.post("/posts/{post_id}/comments", response_model=Comment, status_code=201)
async def add_comment(
    post_id: str,
    body: CreateComment,
    profile: Profile = Depends(get_current_profile),
    session: AsyncSession = Depends(get_session),
) -> Comment:
    return await repo.add_comment(session, post_id, profile.id, body)


@router.put("/posts/{post_id}/like", response_model=LikeState)
async def like(
    post_id: str, profile: Profile = Depends(get_current_profile), session: AsyncSession = Depends(get_session)
) -> LikeState:
    return await repo.like(session, post_id, profile.id)


@router.delete("/posts/{post_id}/like", response_model=LikeState)
async def unlike(
    post_id: str, profile: Profile = Depends(get_current_profile), session: AsyncSession = Depends(get_session)
) -> LikeState:
    return await repo.unlike(session, post_id, profile.id)


@router.post("/posts/{post_id}/images", response_model=PostImage, status_code=201)
async def upload_image(
    post_id: str,
    file: UploadFile = File(...),
    profile: Profile = Depends(get_current_profile),
    storage: ObjectStorage = Depends(forum_images),
    session: AsyncSession = Depends(get_session),
) -> PostImage:
    s = get_settings()
    post = await repo.get_post(session, post_id)
    if post.user_id != profile.id:
        raise PermissionDenied("Only the author can attach images to a post")
    if await repo.image_count(session, post_id) >= s.FORUM_MAX_IMAGES:
        raise ValidationFailed(f"A post can have at most {s.FORUM_MAX_IMAGES} images")
    data = await file.read()
    ensure_image(file.content_type, len(data), s.FORUM_IMAGE_MAX_BYTES)
    filename = file.filename or "image"
    key = object_key(profile.id, filename)
    url = await run_in_threadpool(store_object, storage, key, data, file.content_type, "image")
    record = PostImage(path=key, name=filename, size=len(data), mime=file.content_type, url=url)
    try:
        return await repo.attach_image(session, post_id, record)
    except CampusError:
        await run_in_threadpool(discard, storage, [key])
        raise
