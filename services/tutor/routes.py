# services/tutor/routes.py
"""Virtual tutor endpoints: chat proxy, webhook diagnostics and document ingestion."""

from datetime import datetime, timezone
from typing import Literal, Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile

from packages.common.auth import User, get_current_user
from packages.common.errors import TutorUnavailable
from packages.common.rbac import CONTENT_MANAGERS, require_roles
from packages.common.tracing import xapi_event
from packages.schemas.tutor import ChatRequest, ChatResponse, ClientMetadata, DiagnosticsReport, IngestionReceipt
from services.members.models import Profile
from . import ingestion
from .webhook import WebhookClient, get_webhook_client

router = APIRouter(prefix="/tutor", tags=["tutor"])
managers = require_roles(*CONTENT_MANAGERS)

DIAGNOSTIC_MESSAGE = "Test message from diagnostics"
DIAGNOSTIC_USER = "diagnostic-user"


def client_metadata(request: Request, supplied: Optional[ClientMetadata] = None) -> ClientMetadata:
    """Browser details from the request headers, overridden by what the caller sent."""
    headers = request.headers
    language = headers.get("accept-language", "").split(",")[0].split(";")[0].strip()
    defaults = ClientMetadata(
        user_agent=headers.get("user-agent") or None,
        platform=headers.get("sec-ch-ua-platform", "").strip('"') or None,
        language=language or None,
    )
    if supplied is None:
        return defaults
    return defaults.model_copy(update=supplied.model_dump(exclude_none=True))


@router.post("/chat", response_model=ChatResponse)
async def chat(
    body: ChatRequest,
    request: Request,
    user: User = Depends(get_current_user),
    client: WebhookClient = Depends(get_webhook_client),
) -> ChatResponse:
    reply = await client.send_message(
        body.message, user.sub, body.session_id, client_metadata(request, body.metadata)
    )
    xapi_event(user.sub, "asked", "virtual_tutor")
    return ChatResponse(reply=reply.text, raw=reply.model_dump(by_alias=True, exclude_none=True))


@router.post("/diagnostics", response_model=DiagnosticsReport)
async def diagnostics(
    request: Request,
    _: Profile = Depends(managers),
    client: WebhookClient = Depends(get_webhook_client),
) -> DiagnosticsReport:
    """Send a test message through the full retry path and report the outcome."""
    reachable = await client.test_connection()
    try:
        reply = await client.send_message(
            DIAGNOSTIC_MESSAGE, DIAGNOSTIC_USER, metadata=client_metadata(request)
        )
    except TutorUnavailable:
        webhook, last_response = "disconnected", None
    else:
        webhook, last_response = "connected", reply.model_dump(by_alias=True, exclude_none=True)
    return DiagnosticsReport(
        webhook=webhook,
        url=client.settings.url,
        last_test=datetime.now(timezone.utc),
        reachable=reachable,
        last_response=last_response,
    )


@router.post("/documents", response_model=IngestionReceipt, status_code=201)
async def upload_document(
    file: UploadFile = File(...),
    environment: Literal["test", "production"] = Form("production"),
    course_id: str = Form(ingestion.DEFAULT_COURSE_ID),
    profile: Profile = Depends(managers),
) -> IngestionReceipt:
    data = await file.read()
    return await ingestion.upload_document(
        file.filename or "document",
        file.content_type or "",
        data,
        user_id=profile.id,
        user_email=profile.email,
        course_id=course_id,
        environment=environment,
    )
