"""Members service FastAPI application.

Profiles and capabilities, the leaderboard and the members directory.
"""

from fastapi import FastAPI
from packages.common.db import init_db
from packages.common.errors import install_error_handlers
from packages.common.tracing import trace_middleware
from .routes import router as members_router

app = FastAPI(title="Campus Members Service", version="1.0.0")
app.middleware("http")(trace_middleware)
install_error_handlers(app)
app.include_router(members_router)


@app.on_event("startup")
async def _init() -> None:
    """Initialize service dependencies at application startup."""
    await init_db()
