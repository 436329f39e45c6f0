"""Tutor service FastAPI application.

Proxies chat messages to the workflow webhook and forwards course documents
to the document-ingestion webhook.
"""

from fastapi import FastAPI
from packages.common.errors import install_error_handlers
from packages.common.tracing import trace_middleware
from packages.common.db import init_db
from .routes import router as tutor_router

app = FastAPI(title="Campus Tutor Service", version="1.0.0")
app.middleware("http")(trace_middleware)
install_error_handlers(app)
app.include_router(tutor_router)


@app.on_event("startup")
async def _init() -> None:
    """Profiles are read for role checks, so the schema must exist."""
    await init_db()
