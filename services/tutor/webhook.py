"""Client for the chat-message workflow webhook.

Configuration is passed in through `WebhookSettings`; build one per
environment (or per test) instead of sharing a module-level client.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx
from prometheus_client import Counter

from packages.common.config import Settings, get_settings
from packages.common.errors import TutorUnavailable
from packages.schemas.tutor import ClientMetadata, WebhookMessage, WebhookReply

log = logging.getLogger(__name__)

USER_AGENT = "VirtualTutor-WebApp/1.0"

WEBHOOK_ATTEMPTS = Counter(
    "campus_tutor_webhook_attempts_total",
    "Chat webhook attempts by outcome",
    ["outcome"],
)


@dataclass(frozen=True)
class WebhookSettings:
    url: str
    max_retries: int = 3
    retry_delay: float = 1.0
    user_agent: str = USER_AGENT
    session_id: str = "virtual-tutor-session"

    @classmethod
    def from_settings(cls, s: Settings) -> "WebhookSettings":
        return cls(
            url=s.TUTOR_WEBHOOK_URL,
            max_retries=s.TUTOR_WEBHOOK_MAX_RETRIES,
            retry_delay=s.TUTOR_WEBHOOK_RETRY_DELAY,
            session_id=s.TUTOR_SESSION_ID,
        )


class WebhookClient:
    """Sends chat messages to the webhook with linear-backoff retries.

    Args:
        settings: URL and retry policy.
        transport: Optional httpx transport (tests use `httpx.MockTransport`).
        sleep: Coroutine used between attempts.
    """

    def __init__(
        self,
        settings: WebhookSettings,
        transport: Optional[httpx.AsyncBaseTransport] = None,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ) -> None:
        self.settings = settings
        self._transport = transport
        self._sleep = sleep

    def _client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(headers={"User-Agent": self.settings.user_agent}, transport=self._transport)

    async def _post(self, client: httpx.AsyncClient, body: Dict[str, Any]) -> Any:
        """One attempt; fails on transport errors, non-2xx statuses and undecodable JSON."""
        r = await client.post(self.settings.url, json=body)
        r.raise_for_status()
        return r.json()

    async def send_message(
        self,
        message: str,
        user_id: Optional[str] = None,
        session_id: Optional[str] = None,
        metadata: Optional[ClientMetadata] = None,
    ) -> WebhookReply:
        """Post one message and return the parsed reply.

        Raises:
            TutorUnavailable: every attempt failed.
        """
        envelope = WebhookMessage(
            message=message,
            user_id=user_id,
            timestamp=datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
            session_id=session_id or self.settings.session_id,
            metadata=metadata,
        )
        body = envelope.model_dump(by_alias=True, exclude_none=True)
        attempts = max(1, self.settings.max_retries)

        async with self._client() as client:
            for attempt in range(1, attempts + 1):
                try:
                    payload = await self._post(client, body)
                except (httpx.HTTPError, ValueError) as exc:
                    WEBHOOK_ATTEMPTS.labels(outcome="failure").inc()
                    if attempt == attempts:
                        log.error("tutor webhook failed after %d attempts: %s", attempts, exc)
                        raise TutorUnavailable(
                            "Could not reach the virtual tutor. Please try again later."
                        ) from exc
                    delay = self.settings.retry_delay * attempt
                    log.warning("tutor webhook attempt %d failed, retrying in %.1fs: %s", attempt, delay, exc)
                    await self._sleep(delay)
                else:
                    WEBHOOK_ATTEMPTS.labels(outcome="success").inc()
                    return WebhookReply.from_payload(payload)

    async def test_connection(self) -> bool:
        """HEAD the webhook; any status below 500 counts as reachable."""
        try:
            async with self._client() as client:
                r = await client.head(self.settings.url)
        except httpx.HTTPError as exc:
            log.warning("tutor webhook connectivity check failed: %s", exc)
            return False
        return r.status_code < 500


def get_webhook_client() -> WebhookClient:
    """FastAPI dependency; override it to inject another policy or transport."""
    return WebhookClient(WebhookSettings.from_settings(get_settings()))
