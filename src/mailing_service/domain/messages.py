"""
Mailing Service - Outbound Message Construction.

Provider-agnostic email messages built either from a plain body (support
path) or from a provider-hosted template with named substitutions.

Architecture Layer: Domain
Principles: Builder Pattern, Immutability, Pure Functions
"""
from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field, model_validator
import structlog

from .templates import MailingServiceError

logger = structlog.get_logger(__name__)

# Placeholder delimiter of the provider's legacy substitution syntax: "-username-"
SUBSTITUTION_DELIMITER = "-"


class InvalidParameterError(MailingServiceError):
    """Raised when a notification is requested with a missing or empty field."""
    def __init__(self, field: str, reason: str = "must not be empty") -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid parameter '{field}': {reason}")


class TemplateParameter(BaseModel):
    """Named value substituted into a provider template."""
    replacement_tag: str = Field(..., min_length=1)
    value: Any = None

    model_config = ConfigDict(frozen=True)

    @property
    def substitution_key(self) -> str:
        return substitution_key(self.replacement_tag)

    def formatted_value(self) -> str:
        return "" if self.value is None else str(self.value)


def substitution_key(tag: str) -> str:
    """Wrap a replacement tag the way provider templates spell placeholders."""
    return f"{SUBSTITUTION_DELIMITER}{tag}{SUBSTITUTION_DELIMITER}"


class OutboundMessage(BaseModel):
    """Email ready for handoff to the delivery client."""
    sender: str = Field(..., min_length=1)
    sender_name: str | None = None
    recipient: str = Field(..., min_length=1)
    subject: str = ""
    body: str | None = None
    template_ref: str | None = None
    substitutions: dict[str, str] = Field(default_factory=dict)

    model_config = ConfigDict(frozen=True)

    @model_validator(mode="after")
    def check_content(self) -> OutboundMessage:
        if bool(self.body) == bool(self.template_ref):
            raise ValueError("exactly one of body or template_ref must be set")
        return self

    @property
    def is_templated(self) -> bool:
        return self.template_ref is not None


def _require(field: str, value: str | None) -> str:
    if value is None or not str(value).strip():
        raise InvalidParameterError(field)
    return value


class MessageBuilder:
    """
    Builds outbound messages.

    Pure data transformation; sender defaults to the no-reply address.
    """
    def __init__(self, no_reply_address: str, logger: Any = None) -> None:
        self._no_reply_address = _require("no_reply_address", no_reply_address)
        self._logger = logger or structlog.get_logger(__name__)

    def build_plain(
        self,
        sender: str | None,
        recipient: str,
        subject: str,
        body: str,
        sender_name: str | None = None,
    ) -> OutboundMessage:
        """Build a templateless message. The body is required."""
        _require("recipient", recipient)
        _require("body", body)
        return OutboundMessage(
            sender=sender or self._no_reply_address,
            sender_name=sender_name or None,
            recipient=recipient,
            subject=subject or "",
            body=body,
        )

    def build_from_template(
        self,
        recipient: str,
        subject: str,
        template_ref: str,
        params: list[TemplateParameter],
        sender: str | None = None,
    ) -> OutboundMessage:
        """
        Build a message rendered by a provider-hosted template.

        Args:
            recipient: Recipient email address
            subject: Subject line
            template_ref: Provider template identifier
            params: Substitution parameters, later tags overwrite earlier ones
            sender: Sender address, defaults to the no-reply address

        Returns:
            OutboundMessage with template_ref and substitutions, without body
        """
        _require("recipient", recipient)
        _require("template_ref", template_ref)
        substitutions = {p.substitution_key: p.formatted_value() for p in params}
        self._logger.debug("template_message_built", template_ref=template_ref,
                           substitution_keys=sorted(substitutions))
        return OutboundMessage(
            sender=sender or self._no_reply_address,
            recipient=recipient,
            subject=subject or "",
            template_ref=template_ref,
            substitutions=substitutions,
        )
