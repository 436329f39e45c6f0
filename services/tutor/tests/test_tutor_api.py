"""Tests for the tutor endpoints with the webhooks replaced by mock transports."""

import json

import httpx
import pytest

from services.tutor import ingestion
from services.tutor.webhook import WebhookClient, WebhookSettings, get_webhook_client


async def _no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
def webhook(api_app):
    """Install a webhook handler; returns the list of received requests."""
    received = []

    def install(handler):
        def wrapped(request):
            received.append(request)
            return handler(request)

        api_app.dependency_overrides[get_webhook_client] = lambda: WebhookClient(
            WebhookSettings(url="http://webhook.test/chat"), transport=httpx.MockTransport(wrapped), sleep=_no_sleep
        )
        return received

    return install


@pytest.mark.asyncio
async def test_chat_returns_reply(client, auth, webhook) -> None:
    webhook(lambda r: httpx.Response(200, json={"output": "Let's look at loops.", "sessionId": "s"}))
    r = await client.post("/tutor/chat", json={"message": "What is a loop?"}, headers=auth("sam"))
    assert r.status_code == 200
    assert r.json()["reply"] == "Let's look at loops."
    assert r.json()["raw"]["sessionId"] == "s"


@pytest.mark.asyncio
async def test_chat_fills_metadata_from_headers(client, auth, webhook) -> None:
    calls = webhook(lambda r: httpx.Response(200, json={"output": "ok"}))
    headers = {
        **auth("sam"),
        "User-Agent": "Mozilla/5.0 (X11; Linux x86_64)",
        "Accept-Language": "es-AR,es;q=0.9,en;q=0.8",
        "Sec-CH-UA-Platform": '"Linux"',
    }
    r = await client.post("/tutor/chat", json={"message": "hola"}, headers=headers)
    assert r.status_code == 200
    assert json.loads(calls[0].content)["metadata"] == {
        "userAgent": "Mozilla/5.0 (X11; Linux x86_64)",
        "platform": "Linux",
        "language": "es-AR",
    }

    body = {"message": "hola", "metadata": {"language": "pt-BR"}}
    await client.post("/tutor/chat", json=body, headers=headers)
    sent = json.loads(calls[1].content)["metadata"]
    assert sent["language"] == "pt-BR"
    assert sent["userAgent"] == "Mozilla/5.0 (X11; Linux x86_64)"


@pytest.mark.asyncio
async def test_chat_accepts_list_wrapped_reply(client, auth, webhook) -> None:
    calls = webhook(lambda r: httpx.Response(200, json=[{"output": "From a list"}]))
    r = await client.post("/tutor/chat", json={"message": "hi"}, headers=auth("sam"))
    assert r.status_code == 200
    assert r.json()["reply"] == "From a list"
    assert len(calls) == 1


@pytest.mark.asyncio
async def test_chat_requires_login(client, webhook) -> None:
    calls = webhook(lambda r: httpx.Response(200, json={}))
    assert (await client.post("/tutor/chat", json={"message": "hi"})).status_code == 401
    assert calls == []


@pytest.mark.asyncio
async def test_chat_unavailable_after_retries(client, auth, webhook) -> None:
    calls = webhook(lambda r: httpx.Response(500))
    r = await client.post("/tutor/chat", json={"message": "hi"}, headers=auth("sam"))
    assert r.status_code == 503
    assert len(calls) == 3


@pytest.mark.asyncio
async def test_diagnostics_reports_connected(client, add_profile, auth, webhook) -> None:
    await add_profile("ines", role="instructor")
    calls = webhook(lambda r: httpx.Response(405) if r.method == "HEAD" else httpx.Response(200, json={"output": "pong"}))

    r = await client.post("/tutor/diagnostics", headers=auth("ines"))

    assert r.status_code == 200
    report = r.json()
    assert report["webhook"] == "connected" and report["reachable"] is True
    assert report["last_response"] == {"output": "pong"}
    sent = [c for c in calls if c.method == "POST"][0]
    assert b"Test message from diagnostics" in sent.content
    assert b"diagnostic-user" in sent.content



@pytest.mark.asyncio
async def test_diagnostics_sends_request_metadata(client, add_profile, auth, webhook) -> None:
    await add_profile("ines", role="instructor")
    calls = webhook(lambda r: httpx.Response(200, json={"output": "pong"}))
    headers = {**auth("ines"), "User-Agent": "campus-admin/1.0", "Accept-Language": "en-GB;q=0.8"}

    await client.post("/tutor/diagnostics", headers=headers)

    sent = json.loads([c for c in calls if c.method == "POST"][0].content)
    assert sent["metadata"] == {"userAgent": "campus-admin/1.0", "language": "en-GB"}


@pytest.mark.asyncio
async def test_diagnostics_reports_disconnected(client, add_profile, auth, webhook) -> None:
    await add_profile("ada", role="admin")
    webhook(lambda r: httpx.Response(503))
    report = (await client.post("/tutor/diagnostics", headers=auth("ada"))).json()
    assert report["webhook"] == "disconnected"
    assert report["reachable"] is False
    assert report["last_response"] is None


@pytest.mark.asyncio
async def test_diagnostics_is_for_managers(client, auth, webhook) -> None:
    webhook(lambda r: httpx.Response(200, json={}))
    assert (await client.post("/tutor/diagnostics", headers=auth("sam"))).status_code == 403


@pytest.mark.asyncio
async def test_document_upload(client, add_profile, auth, monkeypatch) -> None:
    await add_profile("ada", role="admin")
    seen = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True})

    real = ingestion.upload_document

    async def via_mock(*args, **kwargs):
        return await real(*args, transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(ingestion, "upload_document", via_mock)

    r = await client.post(
        "/tutor/documents",
        files={"file": ("syllabus.csv", b"week,topic\n1,intro\n", "text/csv")},
        data={"environment": "production"},
        headers=auth("ada"),
    )
    assert r.status_code == 201, r.text
    assert r.json()["file_name"] == "syllabus.csv"
    assert str(seen[0].url) == "http://webhook.test/upload-document"
    assert b"ada@example.com" in seen[0].content

    r = await client.post(
        "/tutor/documents", files={"file": ("pic.png", b"x", "image/png")}, headers=auth("ada")
    )
    assert r.status_code == 422
    assert len(seen) == 1
