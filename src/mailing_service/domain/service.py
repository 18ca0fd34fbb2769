"""
Mailing Service - Notification Orchestration.

One operation per notification kind. Each operation validates its inputs,
resolves the template for the caller's culture, builds the outbound message
and hands it to the delivery client. Delivery failures propagate unchanged.

Architecture Layer: Domain
Principles: Facade Pattern, Stateless Operations, Async Processing
"""
from __future__ import annotations

from datetime import datetime
from typing import Any
from urllib.parse import urlencode
from uuid import UUID

from pydantic import ValidationError
import structlog

from .delivery import DeliveryClient, DeliveryResult, SendGridClient, SendGridConfig
from .formatting import format_long_datetime
from .messages import InvalidParameterError, MessageBuilder
from .parameters import (
    ActivateAccountSubstitutions,
    CommentAddedToRemarkSubstitutions,
    PhotosAddedToRemarkSubstitutions,
    RemarkCreatedSubstitutions,
    RemarkStateChangedSubstitutions,
    ResetPasswordSubstitutions,
    SubstitutionSet,
)
from .templates import EmailTemplate, EmailTemplateCodename, TemplateResolver, TemplateStore

logger = structlog.get_logger(__name__)


def _require(**fields: Any) -> None:
    for name, value in fields.items():
        if value is None or (isinstance(value, str) and not value.strip()):
            raise InvalidParameterError(name)


def _substitutions(model: type[SubstitutionSet], **values: Any) -> SubstitutionSet:
    try:
        return model(**values)
    except ValidationError as e:
        error = e.errors()[0]
        field = ".".join(str(part) for part in error.get("loc", ())) or model.__name__
        raise InvalidParameterError(field, error.get("msg", "invalid value")) from e


def build_token_url(endpoint: str, email: str, token: str) -> str:
    """Build the link carried by reset-password and activation emails."""
    query = urlencode({"email": email, "token": token}, safe="@")
    return f"{endpoint}?{query}"


class NotificationService:
    """
    Sends transactional emails for account and remark events.

    Holds no mutable state; operations may run concurrently.
    """
    def __init__(
        self,
        resolver: TemplateResolver,
        builder: MessageBuilder,
        delivery_client: DeliveryClient,
        support_address: str,
        logger: Any = None,
    ) -> None:
        self._resolver = resolver
        self._builder = builder
        self._delivery = delivery_client
        self._support_address = support_address
        self._logger = logger or structlog.get_logger(__name__)

    async def send_support(self, email: str, name: str | None, title: str, message: str) -> DeliveryResult:
        """Forward a contact form message from a user to the support mailbox."""
        _require(email=email, message=message)
        outbound = self._builder.build_plain(
            sender=email,
            recipient=self._support_address,
            subject=title,
            body=message,
            sender_name=name,
        )
        self._logger.debug("sending_support_email", sender=email)
        return await self._delivery.send(outbound)

    async def send_reset_password(self, email: str, endpoint: str, token: str, culture: str) -> DeliveryResult:
        _require(email=email, endpoint=endpoint, token=token)
        template = await self._resolver.resolve(EmailTemplateCodename.RESET_PASSWORD, culture)
        params = _substitutions(
            ResetPasswordSubstitutions,
            reset_password_url=build_token_url(endpoint, email, token),
        )
        return await self._send_templated(template, email, culture, params)

    async def send_activate_account(
        self, email: str, username: str, endpoint: str, token: str, culture: str
    ) -> DeliveryResult:
        _require(email=email, username=username, endpoint=endpoint, token=token)
        template = await self._resolver.resolve(EmailTemplateCodename.ACTIVATE_ACCOUNT, culture)
        params = _substitutions(
            ActivateAccountSubstitutions,
            url=build_token_url(endpoint, email, token),
            username=username,
        )
        return await self._send_templated(template, email, culture, params)

    async def send_remark_created(
        self,
        email: str,
        remark_id: UUID,
        category: str,
        address: str,
        username: str,
        date: datetime,
        culture: str,
        url: str,
    ) -> DeliveryResult:
        _require(email=email, remark_id=remark_id, category=category, username=username,
                 date=date, url=url)
        template = await self._resolver.resolve(EmailTemplateCodename.REMARK_CREATED, culture)
        params = _substitutions(
            RemarkCreatedSubstitutions,
            remark_id=str(remark_id),
            category=category,
            address=address or "",
            username=username,
            date=format_long_datetime(date, template.culture),
            url=url,
        )
        return await self._send_templated(template, email, culture, params)

    async def send_remark_state_changed(
        self,
        email: str,
        remark_id: UUID,
        category: str,
        address: str,
        username: str,
        date: datetime,
        culture: str,
        url: str,
        state: str,
    ) -> DeliveryResult:
        _require(email=email, remark_id=remark_id, category=category, username=username,
                 date=date, url=url, state=state)
        template = await self._resolver.resolve(EmailTemplateCodename.REMARK_STATE_CHANGED, culture)
        params = _substitutions(
            RemarkStateChangedSubstitutions,
            remark_id=str(remark_id),
            category=category,
            address=address or "",
            username=username,
            date=format_long_datetime(date, template.culture),
            state=state,
            url=url,
        )
        return await self._send_templated(template, email, culture, params)

    async def send_comment_added_to_remark(
        self,
        email: str,
        remark_id: UUID,
        category: str,
        address: str,
        username: str,
        date: datetime,
        culture: str,
        url: str,
        comment: str,
    ) -> DeliveryResult:
        _require(email=email, remark_id=remark_id, category=category, username=username,
                 date=date, url=url, comment=comment)
        template = await self._resolver.resolve(EmailTemplateCodename.COMMENT_ADDED_TO_REMARK, culture)
        params = _substitutions(
            CommentAddedToRemarkSubstitutions,
            remark_id=str(remark_id),
            category=category,
            address=address or "",
            username=username,
            date=format_long_datetime(date, template.culture),
            comment=comment,
            url=url,
        )
        return await self._send_templated(template, email, culture, params)

    async def send_photos_added_to_remark(
        self,
        email: str,
        remark_id: UUID,
        category: str,
        address: str,
        culture: str,
        url: str,
    ) -> DeliveryResult:
        _require(email=email, remark_id=remark_id, category=category, url=url)
        template = await self._resolver.resolve(EmailTemplateCodename.PHOTOS_ADDED_TO_REMARK, culture)
        params = _substitutions(
            PhotosAddedToRemarkSubstitutions,
            remark_id=str(remark_id),
            category=category,
            address=address or "",
            url=url,
        )
        return await self._send_templated(template, email, culture, params)

    async def _send_templated(
        self,
        template: EmailTemplate,
        email: str,
        requested_culture: str,
        params: SubstitutionSet,
    ) -> DeliveryResult:
        outbound = self._builder.build_from_template(
            recipient=email,
            subject=template.subject,
            template_ref=template.provider_template_id,
            params=params.to_template_parameters(),
        )
        self._logger.debug("sending_templated_email", codename=template.codename, recipient=email,
                           culture=template.culture, requested_culture=requested_culture,
                           substitutions_version=params.version)
        return await self._delivery.send(outbound)

    async def close(self) -> None:
        """Release the delivery client."""
        await self._delivery.close()


def create_notification_service(
    store: TemplateStore,
    sendgrid_config: SendGridConfig,
    default_culture: str,
    no_reply_address: str,
    support_address: str,
    delivery_client: DeliveryClient | None = None,
    logger: Any = None,
) -> NotificationService:
    """
    Factory function to create a configured NotificationService.

    Args:
        store: Template store
        sendgrid_config: Provider client configuration
        default_culture: Culture used when the requested one has no template
        no_reply_address: Default sender address
        support_address: Mailbox receiving support messages
        delivery_client: Optional delivery client overriding the SendGrid one
        logger: Logger injected into every component

    Returns:
        Configured NotificationService instance
    """
    log = logger or structlog.get_logger(__name__)
    resolver = TemplateResolver(store, default_culture, logger=log)
    builder = MessageBuilder(no_reply_address, logger=log)
    client = delivery_client or SendGridClient(sendgrid_config, logger=log)
    return NotificationService(resolver, builder, client, support_address, logger=log)
