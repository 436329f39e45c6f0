"""Forum interaction model.

`ForumFeed` holds the posts a member is looking at, the comments loaded so far
and per-post like state, and keeps them current after each successful
mutation without refetching everything:

- inputs are validated strictly before the store is contacted;
- local state changes only after the store call succeeded, so a failed call
  leaves it untouched;
- when the store answers with authoritative like counts those replace the
  locally derived ones in the same update.

There is no locking across clients: concurrent edits elsewhere show up on the
next `refresh()`. Forum mutations are never retried.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Protocol, Set

from pydantic import ValidationError

from packages.common.errors import NotAuthenticated, NotFound, ValidationFailed
from packages.common.storage import ensure_image
from packages.schemas.community import Comment, CreateComment, CreatePost, LikeState, Post, PostImage

log = logging.getLogger(__name__)

DEFAULT_MAX_IMAGE_BYTES = 5 * 1024 * 1024
DEFAULT_MAX_IMAGES = 5


@dataclass(frozen=True)
class Attachment:
    """An image the member picked, not yet uploaded."""
    filename: str
    content_type: str
    data: bytes

    @property
    def size(self) -> int:
        return len(self.data)


class ForumStore(Protocol):
    """Remote side of the forum (SQL-backed on the server, HTTP in clients)."""

    async def fetch_posts(self) -> List[Post]: ...

    async def fetch_comments(self, post_id: str) -> List[Comment]: ...

    async def create_post(self, user_id: str, payload: CreatePost) -> Post: ...

    async def add_comment(self, post_id: str, user_id: str, payload: CreateComment) -> Comment: ...

    async def like(self, post_id: str, user_id: str) -> Optional[LikeState]: ...

    async def unlike(self, post_id: str, user_id: str) -> Optional[LikeState]: ...

    async def upload_image(self, post_id: str, user_id: str, attachment: Attachment) -> PostImage: ...


def _validation_message(exc: ValidationError) -> str:
    err = exc.errors()[0]
    ctx_error = (err.get("ctx") or {}).get("error")
    return str(ctx_error) if ctx_error else err["msg"]


class ForumFeed:
    """Local, optimistically updated view of the forum for one member."""

    def __init__(
        self,
        store: ForumStore,
        user_id: Optional[str] = None,
        *,
        max_image_bytes: int = DEFAULT_MAX_IMAGE_BYTES,
        max_images: int = DEFAULT_MAX_IMAGES,
    ) -> None:
        self.store = store
        self.user_id = user_id
        self.max_image_bytes = max_image_bytes
        self.max_images = max_images
        self.posts: List[Post] = []
        self.comments: Dict[str, List[Comment]] = {}
        self.loading = False
        self._liking: Set[str] = set()

    # -- reads ---------------------------------------------------------------

    async def refresh(self) -> List[Post]:
        """Replace local state with the store's current posts."""
        self.loading = True
        try:
            self.posts = await self.store.fetch_posts()
            self.comments = {}
        finally:
            self.loading = False
        return self.posts

    async def load_comments(self, post_id: str) -> List[Comment]:
        self.comments[post_id] = await self.store.fetch_comments(post_id)
        return self.comments[post_id]

    def find(self, post_id: str) -> Post:
        for post in self.posts:
            if post.id == post_id:
                return post
        raise NotFound("Post not found")

    def visible(self, search: str = "", category: str = "all") -> List[Post]:
        """Posts matching `search` (title or content, case-insensitive) and `category`."""
        needle = search.strip().lower()
        return [
            p for p in self.posts
            if (not needle or needle in p.title.lower() or needle in p.content.lower())
            and (category == "all" or p.category == category)
        ]

    # -- mutations -----------------------------------------------------------

    def _require_user(self, action: str) -> str:
        if not self.user_id:
            raise NotAuthenticated(f"Sign in to {action}")
        return self.user_id

    def _replace(self, post_id: str, **changes) -> Post:
        for i, post in enumerate(self.posts):
            if post.id == post_id:
                self.posts[i] = post.model_copy(update=changes)
                return self.posts[i]
        raise NotFound("Post not found")

    def _check_attachments(self, attachments: List[Attachment]) -> None:
        if len(attachments) > self.max_images:
            raise ValidationFailed(f"A post can have at most {self.max_images} images")
        for a in attachments:
            ensure_image(a.content_type, a.size, self.max_image_bytes)

    async def create_post(
        self,
        title: str,
        content: str,
        category: str = "general",
        attachments: Iterable[Attachment] = (),
    ) -> Post:
        """Validate, create the post, then upload its images one by one.

        Raises:
            ValidationFailed: short title/content, unknown category, or a bad
                attachment; nothing was sent to the store.
            NotAuthenticated: no member is signed in.
        """
        attachments = list(attachments)
        try:
            payload = CreatePost(title=title, content=content, category=category)
        except ValidationError as exc:
            raise ValidationFailed(_validation_message(exc)) from exc
        self._check_attachments(attachments)
        user_id = self._require_user("create posts")

        post = await self.store.create_post(user_id, payload)
        self.posts.insert(0, post)
        for attachment in attachments:
            image = await self.store.upload_image(post.id, user_id, attachment)
            current = self.find(post.id)
            post = self._replace(
                post.id,
                images=[*current.images, image],
                image_url=current.image_url or image.url,
            )
        return post

    async def add_comment(self, post_id: str, content: str) -> Comment:
        """Add a comment and bump the post's comment count locally."""
        try:
            payload = CreateComment(content=content)
        except ValidationError as exc:
            raise ValidationFailed(_validation_message(exc)) from exc
        user_id = self._require_user("comment")

        comment = await self.store.add_comment(post_id, user_id, payload)
        self.comments.setdefault(post_id, []).append(comment)
        post = self.find(post_id)
        self._replace(post_id, comment_count=post.comment_count + 1)
        return comment

    async def toggle_like(self, post_id: str) -> LikeState:
        """Like an unliked post or unlike a liked one.

        A toggle already in flight for the same post is ignored and the
        current local state returned.
        """
        user_id = self._require_user("like posts")
        post = self.find(post_id)
        if post_id in self._liking:
            return LikeState(post_id=post_id, liked=post.liked_by_user, likes_count=post.likes_count)

        self._liking.add(post_id)
        try:
            if post.liked_by_user:
                state = await self.store.unlike(post_id, user_id)
                liked, count = False, max(0, post.likes_count - 1)
            else:
                state = await self.store.like(post_id, user_id)
                liked, count = True, post.likes_count + 1
        finally:
            self._liking.discard(post_id)

        if state is not None:
            if state.likes_count != count:
                log.info("like count for %s reconciled %s -> %s", post_id, count, state.likes_count)
            liked, count = state.liked, state.likes_count
        self._replace(post_id, liked_by_user=liked, likes_count=count)
        return LikeState(post_id=post_id, liked=liked, likes_count=count)
