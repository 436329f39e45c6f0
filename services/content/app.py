"""Content service FastAPI application.

Exposes the FastAPI app, attaches tracing middleware and error handlers,
includes content and classroom routes, and initializes the database
connection on startup.
"""

from fastapi import FastAPI
from packages.common.errors import install_error_handlers
from packages.common.tracing import trace_middleware
from packages.common.db import init_db
from .routes import router as content_router

app = FastAPI(title="Campus Content Service", version="1.0.0")
app.middleware("http")(trace_middleware)
install_error_handlers(app)
app.include_router(content_router)


@app.on_event("startup")
async def _init() -> None:
    """Initialize service dependencies at application startup."""
    await init_db()
