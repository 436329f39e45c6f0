"""Campus gateway entrypoint.

- One FastAPI app serving every service router (content, classroom, forum,
  tutor, members) behind shared CORS, tracing and error handling
- Infra endpoints: /healthz, /metrics, /system/health
"""
from __future__ import annotations

import asyncio
import logging
import socket
import time
from typing import Any, Awaitable, Callable

import uvicorn
from dotenv import load_dotenv
from fastapi import APIRouter, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import PlainTextResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from sqlalchemy import text
from starlette.responses import JSONResponse

load_dotenv(".env", override=False)

from packages.common.config import get_settings  # noqa: E402
from packages.common.db import engine, init_db  # noqa: E402
from packages.common.errors import install_error_handlers  # noqa: E402
from packages.common.storage import forum_images  # noqa: E402
from packages.common.tracing import trace_middleware  # noqa: E402
from services.community.routes import router as community_router  # noqa: E402
from services.content.routes import router as content_router  # noqa: E402
from services.members.routes import router as members_router  # noqa: E402
from services.tutor.routes import router as tutor_router  # noqa: E402
from services.tutor.webhook import get_webhook_client  # noqa: E402

log = logging.getLogger("campus.api")
settings = get_settings()


def allowed_origins(env: str, raw: str) -> list[str]:
    """Parse FRONTEND_ORIGINS; outside dev an explicit list is mandatory."""
    origins = [o.strip() for o in raw.split(",") if o.strip()]
    if env == "dev":
        return origins or ["http://localhost:5173"]
    if not origins:
        raise RuntimeError("FRONTEND_ORIGINS must be set in production (comma-separated).")
    return origins


# ===== App (ASGI) =====
app = FastAPI(
    title="Campus API",
    version="1.0.0",
    description="Course content, classroom, community forum, leaderboard and virtual tutor",
)
app.add_middleware(
    CORSMiddleware,
    allow_origins=allowed_origins(settings.ENV, settings.FRONTEND_ORIGINS),
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
    allow_headers=["Authorization", "Content-Type", "X-Request-ID"],
)
app.middleware("http")(trace_middleware)
install_error_handlers(app)

for r in (content_router, community_router, tutor_router, members_router):
    app.include_router(r)


@app.on_event("startup")
async def _init() -> None:
    await init_db()
    log.info("campus api started (env=%s)", settings.ENV)


# ===== Infra =====
@app.get("/healthz", tags=["infra"])
def healthz() -> dict[str, str]:
    return {"status": "ok", "env": settings.ENV}


@app.head("/healthz", tags=["infra"])
async def healthz_head():
    return PlainTextResponse("", status_code=200)


@app.get("/metrics", tags=["infra"])
def metrics() -> PlainTextResponse:
    data = generate_latest()
    return PlainTextResponse(data.decode("utf-8"), media_type=CONTENT_TYPE_LATEST)


system = APIRouter()
START_TIME = time.time()


async def _check(name: str, probe: Callable[[], Awaitable[Any]], checks: dict[str, str], timeout: float = 2.0) -> None:
    try:
        await asyncio.wait_for(probe(), timeout=timeout)
        checks[name] = "ok"
    except Exception as e:  # reported, not raised
        checks[name] = f"error: {e.__class__.__name__}"


async def _check_database() -> None:
    async with engine.connect() as conn:
        await conn.execute(text("SELECT 1"))


async def _check_storage() -> None:
    storage = forum_images()
    await asyncio.to_thread(storage._client.head_bucket, Bucket=storage.bucket)


async def _check_webhook() -> None:
    if not await get_webhook_client().test_connection():
        raise ConnectionError("webhook unreachable")


@system.get("/system/health", tags=["system"])
async def system_health():
    checks: dict[str, str] = {}
    await _check("database", _check_database, checks)
    await _check("storage", _check_storage, checks)
    await _check("tutor_webhook", _check_webhook, checks, timeout=5.0)

    overall_ok = all(v == "ok" for v in checks.values())
    payload = {
        "status": "ok" if overall_ok else "degraded",
        "env": settings.ENV,
        "uptime_seconds": round(time.time() - START_TIME, 2),
        "hostname": socket.gethostname(),
        "services": checks,
        "version": app.version,
    }
    return JSONResponse(payload)


app.include_router(system)

# Export ASGI for uvicorn/gunicorn
__all__ = ["app"]

if __name__ == "__main__":
    uvicorn.run("main:app", host="0.0.0.0", port=8000, reload=settings.ENV == "dev")
