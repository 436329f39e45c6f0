"""Tests for the forum interaction model against an in-memory store."""

from datetime import datetime, timezone
from typing import Optional

import pytest

from packages.common.errors import NotAuthenticated, RemoteError, ValidationFailed
from packages.schemas.community import Comment, LikeState, Post, PostImage
from services.community.feed import Attachment, ForumFeed


def _post(post_id: str, liked: bool = False, likes: int = 0, comments: int = 0, **kw) -> Post:
    return Post(
        id=post_id,
        user_id=kw.pop("user_id", "author"),
        title=kw.pop("title", f"Post {post_id}"),
        content=kw.pop("content", "Some content here"),
        category=kw.pop("category", "general"),
        created_at=datetime(2024, 1, 1, tzinfo=timezone.utc),
        liked_by_user=liked,
        likes_count=likes,
        comment_count=comments,
        **kw,
    )


class FakeStore:
    def __init__(self, posts=(), authoritative: bool = False, fail: Optional[str] = None):
        self.posts = list(posts)
        self.calls: list[tuple] = []
        self.authoritative = authoritative
        self.fail = fail
        self.likes_override: Optional[int] = None

    def _maybe_fail(self, name):
        if self.fail == name:
            raise RemoteError("boom")

    async def fetch_posts(self):
        self.calls.append(("fetch_posts",))
        return list(self.posts)

    async def fetch_comments(self, post_id):
        self.calls.append(("fetch_comments", post_id))
        return []

    async def create_post(self, user_id, payload):
        self.calls.append(("create_post", user_id, payload.title))
        self._maybe_fail("create_post")
        return _post("new", user_id=user_id, title=payload.title, content=payload.content, category=payload.category)

    async def add_comment(self, post_id, user_id, payload):
        self.calls.append(("add_comment", post_id, user_id))
        self._maybe_fail("add_comment")
        return Comment(id="c1", post_id=post_id, user_id=user_id, content=payload.content,
                       created_at=datetime.now(timezone.utc))

    async def like(self, post_id, user_id):
        self.calls.append(("like", post_id, user_id))
        self._maybe_fail("like")
        if self.authoritative:
            return LikeState(post_id=post_id, liked=True, likes_count=self.likes_override)
        return None

    async def unlike(self, post_id, user_id):
        self.calls.append(("unlike", post_id, user_id))
        self._maybe_fail("unlike")
        return None

    async def upload_image(self, post_id, user_id, attachment):
        self.calls.append(("upload_image", post_id, attachment.filename))
        url = f"http://img/{attachment.filename}"
        return PostImage(path=f"{user_id}/{attachment.filename}", name=attachment.filename,
                         size=attachment.size, mime=attachment.content_type, url=url)


def _mutations(store):
    return [c for c in store.calls if c[0] != "fetch_posts"]


@pytest.mark.asyncio
async def test_like_unliked_post_inserts_pair():
    store = FakeStore([_post("p1", liked=False, likes=4)])
    feed = ForumFeed(store, "u1")
    await feed.refresh()

    state = await feed.toggle_like("p1")

    assert store.calls[-1] == ("like", "p1", "u1")
    assert state.liked is True and state.likes_count == 5
    assert feed.find("p1").liked_by_user is True


@pytest.mark.asyncio
@pytest.mark.parametrize("liked,likes", [(False, 0), (False, 3), (True, 1), (True, 9)])
async def test_double_toggle_restores_state(liked, likes):
    feed = ForumFeed(FakeStore([_post("p1", liked=liked, likes=likes)]), "u1")
    await feed.refresh()

    await feed.toggle_like("p1")
    await feed.toggle_like("p1")

    post = feed.find("p1")
    assert (post.liked_by_user, post.likes_count) == (liked, likes)


@pytest.mark.asyncio
async def test_unlike_never_goes_negative():
    feed = ForumFeed(FakeStore([_post("p1", liked=True, likes=0)]), "u1")
    await feed.refresh()
    state = await feed.toggle_like("p1")
    assert state.likes_count == 0


@pytest.mark.asyncio
async def test_authoritative_count_replaces_local_one():
    store = FakeStore([_post("p1", likes=2)], authoritative=True)
    store.likes_override = 7  # others liked it meanwhile
    feed = ForumFeed(store, "u1")
    await feed.refresh()

    state = await feed.toggle_like("p1")

    assert state.likes_count == 7
    assert feed.find("p1").likes_count == 7


@pytest.mark.asyncio
async def test_failed_like_leaves_state_untouched():
    store = FakeStore([_post("p1", likes=2)], fail="like")
    feed = ForumFeed(store, "u1")
    await feed.refresh()

    with pytest.raises(RemoteError):
        await feed.toggle_like("p1")

    post = feed.find("p1")
    assert (post.liked_by_user, post.likes_count) == (False, 2)
    # the in-flight guard was released by the failure
    store.fail = None
    assert (await feed.toggle_like("p1")).liked is True


@pytest.mark.asyncio
async def test_anonymous_cannot_like():
    store = FakeStore([_post("p1")])
    feed = ForumFeed(store)
    await feed.refresh()
    with pytest.raises(NotAuthenticated):
        await feed.toggle_like("p1")
    assert _mutations(store) == []


@pytest.mark.asyncio
@pytest.mark.parametrize("title,content,category", [
    ("ab", "long enough content", "general"),
    ("  ab  ", "long enough content", "general"),
    ("Fine title", "too short", "general"),
    ("Fine title", "long enough content", "memes"),
])
async def test_invalid_post_never_reaches_store(title, content, category):
    store = FakeStore()
    feed = ForumFeed(store, "u1")
    with pytest.raises(ValidationFailed):
        await feed.create_post(title, content, category)
    assert store.calls == []


@pytest.mark.asyncio
async def test_short_title_message():
    feed = ForumFeed(FakeStore(), "u1")
    with pytest.raises(ValidationFailed) as exc:
        await feed.create_post("ab", "long enough content")
    assert exc.value.message == "Title must be at least 3 characters"


@pytest.mark.asyncio
async def test_non_image_attachment_never_reaches_storage():
    store = FakeStore()
    feed = ForumFeed(store, "u1")
    files = [Attachment("a.png", "image/png", b"x"), Attachment("b.pdf", "application/pdf", b"%PDF")]
    with pytest.raises(ValidationFailed):
        await feed.create_post("Title", "Long enough content", attachments=files)
    assert store.calls == []


@pytest.mark.asyncio
async def test_oversized_and_too_many_attachments_rejected():
    feed = ForumFeed(FakeStore(), "u1", max_image_bytes=4, max_images=2)
    with pytest.raises(ValidationFailed):
        await feed.create_post("Title", "Long enough content", attachments=[Attachment("a.png", "image/png", b"12345")])
    many = [Attachment(f"{i}.png", "image/png", b"1") for i in range(3)]
    with pytest.raises(ValidationFailed):
        await feed.create_post("Title", "Long enough content", attachments=many)


@pytest.mark.asyncio
async def test_create_post_then_upload_images_in_order():
    store = FakeStore([_post("old")])
    feed = ForumFeed(store, "u1")
    await feed.refresh()

    post = await feed.create_post(
        "Hello", "Long enough content", "question",
        attachments=[Attachment("one.png", "image/png", b"1"), Attachment("two.jpg", "image/jpeg", b"2")],
    )

    assert _mutations(store) == [
        ("create_post", "u1", "Hello"),
        ("upload_image", "new", "one.png"),
        ("upload_image", "new", "two.jpg"),
    ]
    assert [p.id for p in feed.posts] == ["new", "old"]
    assert post.image_url == "http://img/one.png"
    assert [i.name for i in post.images] == ["one.png", "two.jpg"]


@pytest.mark.asyncio
async def test_anonymous_cannot_post():
    store = FakeStore()
    with pytest.raises(NotAuthenticated):
        await ForumFeed(store).create_post("Title", "Long enough content")
    assert store.calls == []


@pytest.mark.asyncio
async def test_comment_increments_count():
    store = FakeStore([_post("p1", comments=2)])
    feed = ForumFeed(store, "u1")
    await feed.refresh()

    await feed.add_comment("p1", "  nice post  ")

    assert feed.find("p1").comment_count == 3
    assert [c.content for c in feed.comments["p1"]] == ["nice post"]


@pytest.mark.asyncio
async def test_empty_or_failed_comment_changes_nothing():
    store = FakeStore([_post("p1", comments=2)], fail="add_comment")
    feed = ForumFeed(store, "u1")
    await feed.refresh()

    with pytest.raises(ValidationFailed):
        await feed.add_comment("p1", "   ")
    with pytest.raises(RemoteError):
        await feed.add_comment("p1", "hello")

    assert feed.find("p1").comment_count == 2
    assert "p1" not in feed.comments


def test_visible_filters_by_text_and_category():
    feed = ForumFeed(FakeStore())
    feed.posts = [
        _post("a", title="Python tips", category="programming"),
        _post("b", title="Logo ideas", content="Color palettes for design", category="design"),
    ]
    assert [p.id for p in feed.visible("PYTHON")] == ["a"]
    assert [p.id for p in feed.visible("palettes")] == ["b"]
    assert [p.id for p in feed.visible(category="design")] == ["b"]
    assert [p.id for p in feed.visible("python", "design")] == []
    assert len(feed.visible()) == 2
