# services/community/app.py
"""FastAPI app for the Campus Community Service.

Endpoints (see routes.py):
- GET/POST /forum/posts: list (search/category) and create posts
- GET/POST /forum/posts/{post_id}/comments: read and add comments
- PUT/DELETE /forum/posts/{post_id}/like: like / unlike
- POST /forum/posts/{post_id}/images: attach an image
"""

from fastapi import FastAPI
from packages.common.db import init_db
from packages.common.errors import install_error_handlers
from packages.common.tracing import trace_middleware
from .routes import router as community_router

app = FastAPI(title="Campus Community Service", version="1.0.0")
app.middleware("http")(trace_middleware)
install_error_handlers(app)
app.include_router(community_router)


@app.on_event("startup")
async def _init() -> None:
    await init_db()
