"""
Mailing Service - Email Delivery.

SendGrid v3 mail-send client. Translates provider-agnostic outbound messages
into the provider's JSON schema and reports transport or provider failures
as DeliveryError. No retries; redelivery is decided by the queue consumer.

Architecture Layer: Infrastructure
Principles: Adapter Pattern, Dependency Inversion, Async I/O
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any

import httpx
from pydantic import BaseModel, ConfigDict, Field, SecretStr
import structlog

from .messages import OutboundMessage
from .templates import MailingServiceError

logger = structlog.get_logger(__name__)

SEND_PATH = "/v3/mail/send"


class DeliveryError(MailingServiceError):
    """Raised when the provider rejects a message or cannot be reached."""
    def __init__(self, recipient: str, reason: str, status_code: int | None = None) -> None:
        self.recipient = recipient
        self.reason = reason
        self.status_code = status_code
        super().__init__(f"Failed to deliver to {recipient}: {reason}")

    @property
    def is_retriable(self) -> bool:
        """Transport errors, throttling and provider 5xx are worth redelivering."""
        return self.status_code is None or self.status_code == 429 or self.status_code >= 500


class DeliveryResult(BaseModel):
    """Result of a successful handoff to the provider."""
    recipient: str
    message_id: str | None = None
    status_code: int
    delivered_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))

    model_config = ConfigDict(frozen=True)


class SendGridConfig(BaseModel):
    """Connection settings for the SendGrid client."""
    api_key: SecretStr = Field(default=SecretStr(""))
    api_url: str = Field(default="https://api.sendgrid.com")
    timeout_seconds: float = Field(default=30.0, ge=1.0, le=300.0)


class DeliveryClient(ABC):
    """Sends outbound messages through an email provider."""

    @abstractmethod
    async def send(self, message: OutboundMessage) -> DeliveryResult:
        """Transmit a message; raises DeliveryError on failure."""

    async def close(self) -> None:
        """Release client resources."""


def build_sendgrid_payload(message: OutboundMessage) -> dict[str, Any]:
    """Map an outbound message onto the SendGrid v3 request body."""
    sender: dict[str, str] = {"email": message.sender}
    if message.sender_name:
        sender["name"] = message.sender_name

    personalization: dict[str, Any] = {"to": [{"email": message.recipient}]}
    if message.substitutions:
        personalization["substitutions"] = dict(message.substitutions)

    payload: dict[str, Any] = {
        "from": sender,
        "personalizations": [personalization],
        "subject": message.subject,
    }
    if message.is_templated:
        payload["template_id"] = message.template_ref
    else:
        payload["content"] = [{"type": "text/plain", "value": message.body}]
    return payload


class SendGridClient(DeliveryClient):
    """SendGrid v3 API client over a shared httpx.AsyncClient."""

    def __init__(
        self,
        config: SendGridConfig,
        client: httpx.AsyncClient | None = None,
        logger: Any = None,
    ) -> None:
        self._config = config
        self._client = client
        self._logger = logger or structlog.get_logger(__name__)

    async def _get_client(self) -> httpx.AsyncClient:
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self._config.api_url,
                timeout=self._config.timeout_seconds,
            )
        return self._client

    def _headers(self) -> dict[str, str]:
        return {
            "Authorization": f"Bearer {self._config.api_key.get_secret_value()}",
            "Content-Type": "application/json",
        }

    async def send(self, message: OutboundMessage) -> DeliveryResult:
        payload = build_sendgrid_payload(message)
        client = await self._get_client()
        try:
            response = await client.post(SEND_PATH, json=payload, headers=self._headers())
            response.raise_for_status()
        except httpx.HTTPStatusError as e:
            detail = _error_detail(e.response)
            self._logger.warning("sendgrid_request_rejected", recipient=message.recipient,
                                 status_code=e.response.status_code, detail=detail)
            raise DeliveryError(
                message.recipient,
                f"HTTP {e.response.status_code}: {detail}",
                status_code=e.response.status_code,
            ) from e
        except httpx.HTTPError as e:
            self._logger.warning("sendgrid_request_failed", recipient=message.recipient,
                                 error=str(e))
            raise DeliveryError(message.recipient, str(e) or type(e).__name__) from e

        message_id = response.headers.get("X-Message-Id")
        self._logger.info("email_delivered", recipient=message.recipient,
                          template_ref=message.template_ref, message_id=message_id)
        return DeliveryResult(
            recipient=message.recipient,
            message_id=message_id,
            status_code=response.status_code,
        )

    async def close(self) -> None:
        if self._client is not None and not self._client.is_closed:
            await self._client.aclose()


def _error_detail(response: httpx.Response) -> str:
    """Extract the first provider error message, or a truncated body."""
    try:
        data = response.json()
    except ValueError:
        data = None
    errors = data.get("errors") if isinstance(data, dict) else None
    if isinstance(errors, list) and errors and isinstance(errors[0], dict) and errors[0].get("message"):
        return str(errors[0]["message"])
    return response.text[:200] if response.text else response.reason_phrase
