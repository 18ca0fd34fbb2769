"""
Mailing Service - Domain Layer.

Template resolution, message construction, delivery and notification
orchestration.
"""
from .templates import (
    MailingServiceError,
    TemplateNotFoundError,
    EmailTemplateCodename,
    EmailTemplate,
    TemplateLookup,
    TemplateStore,
    InMemoryTemplateStore,
    TemplateResolver,
)
from .messages import (
    InvalidParameterError,
    TemplateParameter,
    OutboundMessage,
    MessageBuilder,
    substitution_key,
)
from .delivery import (
    DeliveryError,
    DeliveryResult,
    DeliveryClient,
    SendGridConfig,
    SendGridClient,
    build_sendgrid_payload,
)
from .service import (
    NotificationService,
    create_notification_service,
)

__all__ = [
    # Templates
    "MailingServiceError",
    "TemplateNotFoundError",
    "EmailTemplateCodename",
    "EmailTemplate",
    "TemplateLookup",
    "TemplateStore",
    "InMemoryTemplateStore",
    "TemplateResolver",
    # Messages
    "InvalidParameterError",
    "TemplateParameter",
    "OutboundMessage",
    "MessageBuilder",
    "substitution_key",
    # Delivery
    "DeliveryError",
    "DeliveryResult",
    "DeliveryClient",
    "SendGridConfig",
    "SendGridClient",
    "build_sendgrid_payload",
    # Service
    "NotificationService",
    "create_notification_service",
]
