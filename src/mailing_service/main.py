"""
Mailing Service - FastAPI Application.

Wires configuration, logging, template store, SendGrid client, notification
service and Kafka command consumer; exposes health probes.

Architecture Layer: Infrastructure
Principles: 12-Factor App, Dependency Injection, Configuration Externalization
"""
from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Any

from fastapi import FastAPI
import structlog

from .config import MailingServiceConfig, get_config
from .consumers import MailingCommandConsumer
from .domain import (
    InMemoryTemplateStore,
    NotificationService,
    TemplateStore,
    create_notification_service,
)
from .stores import PostgresTemplateStore, load_templates_file, seed_templates

logger = structlog.get_logger(__name__)


@dataclass
class ServiceState:
    """Process-lifetime components created by the lifespan."""
    notification_service: NotificationService | None = None
    consumer: MailingCommandConsumer | None = None
    pool: Any = None


_state = ServiceState()


def configure_logging(config: MailingServiceConfig) -> None:
    """Configure structlog once for the process."""
    processors: list[Any] = [
        structlog.contextvars.merge_contextvars,
        structlog.processors.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
    ]
    if config.log_format() == "console":
        processors.append(structlog.dev.ConsoleRenderer())
    else:
        processors.append(structlog.processors.JSONRenderer())
    structlog.configure(
        processors=processors,
        wrapper_class=structlog.make_filtering_bound_logger(
            getattr(logging, config.service.log_level.upper(), logging.INFO)
        ),
        context_class=dict,
        logger_factory=structlog.PrintLoggerFactory(),
        cache_logger_on_first_use=True,
    )


def get_notification_service() -> NotificationService:
    """Get the global notification service instance."""
    if _state.notification_service is None:
        raise RuntimeError("Notification service not initialized")
    return _state.notification_service


async def _create_template_store(config: MailingServiceConfig, log: Any) -> TemplateStore:
    store_config = config.template_store
    if store_config.backend == "postgres":
        import asyncpg

        _state.pool = await asyncpg.create_pool(
            dsn=store_config.dsn.get_secret_value(),
            min_size=store_config.min_pool_size,
            max_size=store_config.max_pool_size,
        )
        pg_store = PostgresTemplateStore(_state.pool, logger=log)
        await pg_store.ensure_table()
        store: TemplateStore = pg_store
    else:
        store = InMemoryTemplateStore()

    if store_config.seed and store_config.seed_file:
        await seed_templates(store, load_templates_file(store_config.seed_file))
    elif store_config.seed:
        log.warning("template_seed_skipped", reason="no seed file configured")
    return store


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan manager."""
    config: MailingServiceConfig = app.state.config
    configure_logging(config)
    log = structlog.get_logger("mailing_service").bind(service=config.service.name)

    log.info("mailing_service_starting",
             env=config.service.env.value,
             template_store=config.template_store.backend,
             kafka_enabled=config.kafka.enabled)

    try:
        store = await _create_template_store(config, log)
        _state.notification_service = create_notification_service(
            store=store,
            sendgrid_config=config.sendgrid.client_config(),
            default_culture=config.sendgrid.default_culture,
            no_reply_address=config.sendgrid.no_reply_email_account,
            support_address=config.sendgrid.support_email_account,
            logger=log,
        )

        if config.kafka.enabled:
            consumer = MailingCommandConsumer(
                notification_service=_state.notification_service,
                config=config.kafka,
                logger=log,
            )
            await consumer.start()
            _state.consumer = consumer

        log.info("mailing_service_ready")
        yield
    finally:
        if _state.consumer:
            await _state.consumer.stop()
            _state.consumer = None
        if _state.notification_service:
            await _state.notification_service.close()
            _state.notification_service = None
        if _state.pool is not None:
            await _state.pool.close()
            _state.pool = None
        log.info("mailing_service_shutdown")


def create_app(config: MailingServiceConfig | None = None) -> FastAPI:
    """Create and configure the FastAPI application."""
    config = config or get_config()

    app = FastAPI(
        title="Mailing Service",
        description="Templated transactional emails for account and remark events",
        version=config.service.version,
        lifespan=lifespan,
        docs_url="/docs" if not config.is_production() else None,
        redoc_url="/redoc" if not config.is_production() else None,
    )
    app.state.config = config

    @app.get("/", tags=["health"])
    async def root():
        """Service information endpoint."""
        return {
            "service": config.service.name,
            "version": config.service.version,
            "status": "running",
            "environment": config.service.env.value,
        }

    @app.get("/health", tags=["health"])
    async def health():
        """Health check endpoint."""
        return {"status": "healthy"}

    @app.get("/ready", tags=["health"])
    async def ready():
        """Readiness probe endpoint."""
        if _state.notification_service is None:
            return {"status": "not_ready", "reason": "service_not_initialized"}
        if config.kafka.enabled and (_state.consumer is None or not _state.consumer.is_running):
            return {"status": "not_ready", "reason": "consumer_not_running"}
        return {"status": "ready"}

    return app


if __name__ == "__main__":
    import uvicorn

    settings = get_config()
    uvicorn.run(
        "mailing_service.main:create_app",
        factory=True,
        host=settings.service.host,
        port=settings.service.port,
        log_level=settings.service.log_level.lower(),
    )
