"""Tests for document ingestion uploads."""

import httpx
import pytest

from packages.common.errors import RemoteError, ValidationFailed
from services.tutor.ingestion import upload_document, validate_document

PDF = "application/pdf"


@pytest.mark.parametrize("content_type", [
    "application/pdf",
    "text/plain",
    "text/csv",
    "application/json",
    "application/vnd.ms-excel",
    "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
    "application/vnd.openxmlformats-officedocument.wordprocessingml.document",
])
def test_allowed_types(content_type):
    validate_document(content_type, 10, 100)


@pytest.mark.parametrize("content_type,size", [("image/png", 10), (None, 10), (PDF, 101), (PDF, 0)])
def test_rejected_documents(content_type, size):
    with pytest.raises(ValidationFailed):
        validate_document(content_type, size, 100)


@pytest.mark.asyncio
async def test_multipart_fields_and_environment_url():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["url"] = str(request.url)
        seen["body"] = request.read()
        return httpx.Response(200, json={"success": True, "details": {"chunksProcessed": 4}})

    receipt = await upload_document(
        "notes.pdf", PDF, b"%PDF-1.4", user_id="u1", user_email="u1@example.com",
        environment="test", transport=httpx.MockTransport(handler),
    )

    assert seen["url"] == "http://webhook.test/webhook-test/upload-document"
    for field in (b'name="file"; filename="notes.pdf"', b'name="fileName"', b'name="fileType"', b'name="userId"',
                  b'name="userEmail"', b'name="courseId"', b'name="timestamp"', b"a-learn-general"):
        assert field in seen["body"]
    assert receipt.environment == "test"
    assert receipt.size == 8
    assert receipt.response["details"]["chunksProcessed"] == 4


@pytest.mark.asyncio
async def test_invalid_type_never_reaches_webhook():
    calls = []
    with pytest.raises(ValidationFailed):
        await upload_document(
            "pic.png", "image/png", b"x", user_id="u1", user_email=None,
            transport=httpx.MockTransport(lambda r: calls.append(r) or httpx.Response(200)),
        )
    assert calls == []


@pytest.mark.asyncio
@pytest.mark.parametrize("response,message", [
    (httpx.Response(200, json={"success": False, "message": "Unsupported encoding"}), "Unsupported encoding"),
    (httpx.Response(500, json={"message": "Workflow crashed"}), "Workflow crashed"),
    (httpx.Response(200, json={"ok": True}), "Upload failed"),
])
async def test_unsuccessful_upload_is_not_retried(response, message):
    calls = []

    def handler(request: httpx.Request) -> httpx.Response:
        calls.append(request)
        return response

    with pytest.raises(RemoteError, match=message):
        await upload_document("a.txt", "text/plain", b"hi", user_id="u1", user_email=None,
                              transport=httpx.MockTransport(handler))
    assert len(calls) == 1
