"""Forward course documents to the document-ingestion webhook (knowledge base)."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Literal, Optional

import httpx

from packages.common.config import get_settings
from packages.common.errors import RemoteError, ValidationFailed
from packages.schemas.tutor import IngestionReceipt

log = logging.getLogger(__name__)

DEFAULT_COURSE_ID = "a-learn-general"

ALLOWED_DOCUMENT_TYPES = {
    "application/pdf": "PDF",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document": "DOCX",
    "text/plain": "TXT",
    "text/csv": "CSV",
    "application/json": "JSON",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet": "XLSX",
    "application/vnd.ms-excel": "XLS",
}

Environment = Literal["test", "production"]


def validate_document(content_type: Optional[str], size: int, max_bytes: int) -> None:
    if content_type not in ALLOWED_DOCUMENT_TYPES:
        allowed = ", ".join(ALLOWED_DOCUMENT_TYPES.values())
        raise ValidationFailed(f"Unsupported file type. Allowed: {allowed}")
    if size > max_bytes:
        raise ValidationFailed(f"File is too large (max {max_bytes // (1024 * 1024)}MB)")
    if size == 0:
        raise ValidationFailed("File is empty")


def ingestion_url(environment: Environment) -> str:
    s = get_settings()
    if environment == "test":
        if not s.RAG_UPLOAD_TEST_URL:
            raise ValidationFailed("No test ingestion endpoint is configured")
        return s.RAG_UPLOAD_TEST_URL
    return s.RAG_UPLOAD_URL


async def upload_document(
    filename: str,
    content_type: str,
    data: bytes,
    *,
    user_id: str,
    user_email: Optional[str],
    course_id: str = DEFAULT_COURSE_ID,
    environment: Environment = "production",
    transport: Optional[httpx.AsyncBaseTransport] = None,
) -> IngestionReceipt:
    """Validate and post one document as multipart form data. Not retried.

    Raises:
        ValidationFailed: unsupported type, empty or oversized file.
        RemoteError: transport failure, non-2xx status, or a reply without
            `success: true`.
    """
    validate_document(content_type, len(data), get_settings().RAG_MAX_BYTES)
    url = ingestion_url(environment)
    form = {
        "fileName": filename,
        "fileType": content_type,
        "userId": user_id,
        "userEmail": user_email or "",
        "courseId": course_id,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }
    files = {"file": (filename, data, content_type)}
    try:
        async with httpx.AsyncClient(transport=transport) as client:
            r = await client.post(url, data=form, files=files)
        result = r.json()
    except (httpx.HTTPError, ValueError) as exc:
        log.warning("document upload to %s failed: %s", environment, exc)
        raise RemoteError("Could not upload the document") from exc

    if not r.is_success or not isinstance(result, dict) or not result.get("success"):
        message = result.get("message") if isinstance(result, dict) else None
        log.warning("ingestion webhook rejected %s: status=%s", filename, r.status_code)
        raise RemoteError(message or "Upload failed")

    log.info("document %s ingested (%s, %d bytes)", filename, environment, len(data))
    return IngestionReceipt(
        file_name=filename, file_type=content_type, size=len(data), environment=environment, response=result
    )
