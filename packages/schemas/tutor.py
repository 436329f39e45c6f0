"""Schemas for the virtual tutor: webhook envelope, replies and diagnostics."""

from datetime import datetime
from pydantic import BaseModel, ConfigDict, Field
from typing import Any, Dict, Literal, Optional

FALLBACK_REPLY = "Sorry, I could not process your message. Could you try again?"


class ClientMetadata(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_agent: Optional[str] = Field(default=None, alias="userAgent")
    platform: Optional[str] = None
    language: Optional[str] = None


class WebhookMessage(BaseModel):
    """JSON envelope posted to the chat webhook (camelCase on the wire)."""
    model_config = ConfigDict(populate_by_name=True)

    message: str
    user_id: Optional[str] = Field(default=None, alias="userId")
    timestamp: str
    session_id: str = Field(alias="sessionId")
    metadata: Optional[ClientMetadata] = None


class WebhookReply(BaseModel):
    """Free-form webhook reply; `output` or `response` carries the text.

    Workflows answer with an object, a one-element list wrapping an object, or
    anything else JSON can hold. Non-object bodies are kept under `data`.
    """
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    output: Any = None
    response: Any = None
    success: Any = None
    timestamp: Any = None
    session_id: Any = Field(default=None, alias="sessionId")

    @classmethod
    def from_payload(cls, payload: Any) -> "WebhookReply":
        if isinstance(payload, list) and len(payload) == 1 and isinstance(payload[0], dict):
            payload = payload[0]
        if not isinstance(payload, dict):
            payload = {"data": payload}
        return cls.model_validate(payload)

    @property
    def text(self) -> str:
        for value in (self.output, self.response):
            if isinstance(value, str) and value:
                return value
        return FALLBACK_REPLY


class ChatRequest(BaseModel):
    message: str = Field(..., min_length=1)
    session_id: Optional[str] = None
    metadata: Optional[ClientMetadata] = None


class ChatResponse(BaseModel):
    reply: str
    raw: Dict[str, Any] = Field(default_factory=dict)


class DiagnosticsReport(BaseModel):
    webhook: Literal["connected", "disconnected"]
    url: str
    last_test: datetime
    reachable: bool
    last_response: Optional[Dict[str, Any]] = None


class IngestionReceipt(BaseModel):
    file_name: str
    file_type: str
    size: int
    environment: Literal["test", "production"]
    response: Dict[str, Any] = Field(default_factory=dict)
