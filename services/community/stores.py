"""`ForumStore` implementations.

- `SqlForumStore`: talks to the database through the repository layer; used
  in-process (server-side jobs, tests).
- `HttpForumStore`: talks to the community HTTP API with the member's bearer
  token; used by Python clients.
"""

from __future__ import annotations

import logging
from typing import Any, List, Optional

import httpx
from fastapi.concurrency import run_in_threadpool
from sqlalchemy.ext.asyncio import AsyncSession

from packages.common.errors import (
    CampusError, DuplicateTitle, NotAuthenticated, NotFound, PermissionDenied, RemoteError, ValidationFailed,
)
from packages.common.storage import ObjectStorage, discard, object_key, store_object
from packages.schemas.community import Comment, CreateComment, CreatePost, LikeState, Post, PostImage
from . import repo
from .feed import Attachment

log = logging.getLogger(__name__)


class SqlForumStore:
    """Repository-backed store bound to one session and one storage bucket."""

    def __init__(self, session: AsyncSession, storage: Optional[ObjectStorage] = None, viewer_id: Optional[str] = None) -> None:
        self.session = session
        self.storage = storage
        self.viewer_id = viewer_id

    async def fetch_posts(self) -> List[Post]:
        return await repo.list_posts(self.session, self.viewer_id)

    async def fetch_comments(self, post_id: str) -> List[Comment]:
        return await repo.list_comments(self.session, post_id)

    async def create_post(self, user_id: str, payload: CreatePost) -> Post:
        return await repo.create_post(self.session, user_id, payload)

    async def add_comment(self, post_id: str, user_id: str, payload: CreateComment) -> Comment:
        return await repo.add_comment(self.session, post_id, user_id, payload)

    async def like(self, post_id: str, user_id: str) -> LikeState:
        return await repo.like(self.session, post_id, user_id)

    async def unlike(self, post_id: str, user_id: str) -> LikeState:
        return await repo.unlike(self.session, post_id, user_id)

    async def upload_image(self, post_id: str, user_id: str, attachment: Attachment) -> PostImage:
        if self.storage is None:
            raise RemoteError("Image storage is not configured")
        key = object_key(user_id, attachment.filename)
        url = await run_in_threadpool(
            store_object, self.storage, key, attachment.data, attachment.content_type, "image"
        )
        record = PostImage(
            path=key, name=attachment.filename, size=attachment.size, mime=attachment.content_type, url=url
        )
        try:
            return await repo.attach_image(self.session, post_id, record)
        except CampusError:
            await run_in_threadpool(discard, self.storage, [key])
            raise


_STATUS_ERRORS: dict[int, type[CampusError]] = {
    401: NotAuthenticated,
    403: PermissionDenied,
    404: NotFound,
    409: DuplicateTitle,
    422: ValidationFailed,
}


def _detail(response: httpx.Response) -> str:
    try:
        detail: Any = response.json().get("detail")
    except ValueError:
        return response.text or response.reason_phrase
    if isinstance(detail, list) and detail:
        detail = detail[0].get("msg", detail[0])
    return str(detail) if detail else response.reason_phrase


class HttpForumStore:
    """Client for the community API.

    Args:
        base_url: Root URL of the API gateway or community service.
        token: Member's access token; omit for anonymous reads.
        transport: Optional httpx transport (tests use `httpx.MockTransport`).
    """

    def __init__(self, base_url: str, token: Optional[str] = None, transport: Optional[httpx.AsyncBaseTransport] = None) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(base_url=base_url, headers=headers, transport=transport)

    async def __aenter__(self) -> "HttpForumStore":
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def _request(self, method: str, path: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.HTTPError as exc:
            log.warning("forum request %s %s failed: %s", method, path, exc.__class__.__name__)
            raise RemoteError("Could not reach the forum") from exc
        if response.status_code >= 400:
            error = _STATUS_ERRORS.get(response.status_code, RemoteError)
            raise error(_detail(response))
        return response

    async def fetch_posts(self) -> List[Post]:
        r = await self._request("GET", "/forum/posts")
        return [Post.model_validate(p) for p in r.json()]

    async def fetch_comments(self, post_id: str) -> List[Comment]:
        r = await self._request("GET", f"/forum/posts/{post_id}/comments")
        return [Comment.model_validate(c) for c in r.json()]

    async def create_post(self, user_id: str, payload: CreatePost) -> Post:
        r = await self._request("POST", "/forum/posts", json=payload.model_dump())
        return Post.model_validate(r.json())

    async def add_comment(self, post_id: str, user_id: str, payload: CreateComment) -> Comment:
        r = await self._request("POST", f"/forum/posts/{post_id}/comments", json=payload.model_dump())
        return Comment.model_validate(r.json())

    async def like(self, post_id: str, user_id: str) -> LikeState:
        r = await self._request("PUT", f"/forum/posts/{post_id}/like")
        return LikeState.model_validate(r.json())

    async def unlike(self, post_id: str, user_id: str) -> LikeState:
        r = await self._request("DELETE", f"/forum/posts/{post_id}/like")
        return LikeState.model_validate(r.json())

    async def upload_image(self, post_id: str, user_id: str, attachment: Attachment) -> PostImage:
        files = {"file": (attachment.filename, attachment.data, attachment.content_type)}
        r = await self._request("POST", f"/forum/posts/{post_id}/images", files=files)
        return PostImage.model_validate(r.json())
