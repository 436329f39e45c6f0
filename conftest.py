"""Shared pytest fixtures: in-memory database, signed tokens, fake storage, API client."""

import os

os.environ.setdefault("ENV", "dev")
os.environ.setdefault("DATABASE_DSN", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("JWT_SECRET", "test-secret-with-enough-bytes-for-hs256")
os.environ.setdefault("STORAGE_ENDPOINT", "http://storage.test")
os.environ.setdefault("STORAGE_ACCESS_KEY", "test")
os.environ.setdefault("STORAGE_SECRET_KEY", "test")
os.environ.setdefault("STORAGE_PUBLIC_URL", "http://storage.test/public")
os.environ.setdefault("TUTOR_WEBHOOK_URL", "http://webhook.test/chat")
os.environ.setdefault("RAG_UPLOAD_URL", "http://webhook.test/upload-document")
os.environ.setdefault("RAG_UPLOAD_TEST_URL", "http://webhook.test/webhook-test/upload-document")

import time  # noqa: E402

import jwt  # noqa: E402
import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from botocore.exceptions import ClientError  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy import event  # noqa: E402
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import StaticPool  # noqa: E402

from packages.common.db import Base, get_session  # noqa: E402
from packages.common.storage import forum_images, module_covers  # noqa: E402
import services.members.models  # noqa: E402,F401
import services.content.models  # noqa: E402,F401
import services.community.models  # noqa: E402,F401
from services.members.models import Profile  # noqa: E402


class FakeStorage:
    """In-memory stand-in for one public bucket."""

    def __init__(self, bucket: str) -> None:
        self.bucket = bucket
        self.objects: dict[str, tuple[bytes, str]] = {}
        self.uploads: list[str] = []
        self.removed: list[str] = []
        self.fail_uploads = False

    def upload(self, key: str, data: bytes, content_type: str = "application/octet-stream") -> str:
        if self.fail_uploads:
            raise ClientError({"Error": {"Code": "InternalError", "Message": "unavailable"}}, "PutObject")
        self.uploads.append(key)
        self.objects[key] = (data, content_type)
        return key

    def public_url(self, key: str) -> str:
        return f"http://storage.test/public/{self.bucket}/{key}"

    def remove(self, keys) -> None:
        for k in keys:
            self.removed.append(k)
            self.objects.pop(k, None)


@pytest_asyncio.fixture
async def engine():
    eng = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )

    @event.listens_for(eng.sync_engine, "connect")
    def _fk_on(dbapi_conn, _record):
        cur = dbapi_conn.cursor()
        cur.execute("PRAGMA foreign_keys=ON")
        cur.close()

    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False)


@pytest_asyncio.fixture
async def session(session_factory):
    async with session_factory() as s:
        yield s


@pytest.fixture
def make_token():
    def _make(sub: str, email: str | None = None, full_name: str | None = None, **claims) -> str:
        payload = {
            "sub": sub,
            "aud": "authenticated",
            "exp": int(time.time()) + 3600,
            "email": email or f"{sub}@example.com",
            "user_metadata": {"full_name": full_name or sub.title()},
            **claims,
        }
        return jwt.encode(payload, os.environ["JWT_SECRET"], algorithm="HS256")

    return _make


@pytest.fixture
def auth(make_token):
    """Authorization headers for a subject."""
    def _auth(sub: str, **kw) -> dict[str, str]:
        return {"Authorization": f"Bearer {make_token(sub, **kw)}"}

    return _auth


@pytest.fixture
def add_profile(session_factory):
    """Insert a profile with a given role before the API sees the user."""
    async def _add(profile_id: str, role: str = "student", points: int = 0, full_name: str | None = None) -> None:
        async with session_factory() as s:
            s.add(Profile(
                id=profile_id,
                email=f"{profile_id}@example.com",
                full_name=full_name or profile_id.title(),
                role=role,
                points=points,
            ))
            await s.commit()

    return _add


@pytest.fixture
def images_bucket():
    return FakeStorage("forum-images")


@pytest.fixture
def covers_bucket():
    return FakeStorage("module-covers")


@pytest.fixture
def api_app(session_factory, images_bucket, covers_bucket):
    from main import app

    async def _session():
        async with session_factory() as s:
            yield s

    app.dependency_overrides[get_session] = _session
    app.dependency_overrides[forum_images] = lambda: images_bucket
    app.dependency_overrides[module_covers] = lambda: covers_bucket
    yield app
    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(api_app):
    async with AsyncClient(transport=ASGITransport(app=api_app), base_url="http://test") as ac:
        yield ac
