"""
Pytest configuration and fixtures for mailing service tests.
"""
import pytest
from unittest.mock import AsyncMock, MagicMock

from mailing_service.domain.delivery import DeliveryClient, DeliveryResult
from mailing_service.domain.messages import MessageBuilder
from mailing_service.domain.service import NotificationService
from mailing_service.domain.templates import (
    EmailTemplate,
    InMemoryTemplateStore,
    TemplateResolver,
)

DEFAULT_CULTURE = "en-US"
NO_REPLY = "noreply@collectively.com"
SUPPORT = "support@collectively.com"


@pytest.fixture
def templates():
    """Default-culture templates for every codename plus a Polish reset template."""
    codenames = [
        "ResetPassword",
        "ActivateAccount",
        "RemarkCreated",
        "RemarkStateChanged",
        "CommentAddedToRemark",
        "PhotosAddedToRemark",
    ]
    result = [
        EmailTemplate(
            codename=codename,
            culture=DEFAULT_CULTURE,
            subject=f"{codename} subject",
            provider_template_id=f"tpl-{codename.lower()}-en",
        )
        for codename in codenames
    ]
    result.append(EmailTemplate(
        codename="ResetPassword",
        culture="pl-PL",
        subject="Zresetuj hasło",
        provider_template_id="tpl-resetpassword-pl",
    ))
    return result


@pytest.fixture
def template_store(templates):
    """Create an in-memory template store."""
    return InMemoryTemplateStore(templates)


@pytest.fixture
def resolver(template_store):
    """Create a template resolver with en-US as default culture."""
    return TemplateResolver(template_store, DEFAULT_CULTURE)


@pytest.fixture
def builder():
    """Create a message builder."""
    return MessageBuilder(NO_REPLY)


@pytest.fixture
def delivery_client():
    """Create a mock delivery client that accepts every message."""
    client = MagicMock(spec=DeliveryClient)

    async def _send(message):
        return DeliveryResult(recipient=message.recipient, message_id="MSG123", status_code=202)

    client.send = AsyncMock(side_effect=_send)
    client.close = AsyncMock()
    return client


@pytest.fixture
def notification_service(resolver, builder, delivery_client):
    """Create a notification service."""
    return NotificationService(resolver, builder, delivery_client, SUPPORT)


@pytest.fixture
def mock_notification_service():
    """Create a mock notification service."""
    service = MagicMock(spec=NotificationService)
    for name in (
        "send_reset_password",
        "send_activate_account",
        "send_support",
        "send_remark_created",
        "send_remark_state_changed",
        "send_comment_added_to_remark",
        "send_photos_added_to_remark",
        "close",
    ):
        setattr(service, name, AsyncMock())
    return service
