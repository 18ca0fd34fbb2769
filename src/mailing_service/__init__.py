"""
Mailing Service.

Sends templated transactional emails (password reset, account activation,
support contact, remark lifecycle) through SendGrid in response to commands
consumed from Kafka.

Architecture:
    - Domain Layer: Templates, message building, delivery, notification operations
    - Interface Layer: Kafka command consumer, health endpoints
    - Infrastructure Layer: PostgreSQL template store, SendGrid HTTP client

Usage:
    from mailing_service.domain import NotificationService, create_notification_service
    from mailing_service.consumers import MailingCommandConsumer
"""
__version__ = "1.0.0"
