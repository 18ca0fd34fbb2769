"""
Mailing Service - Configuration.

Centralized configuration management for mailing service components.
Loaded once from the environment and immutable afterwards.

Architecture Layer: Infrastructure
Principles: 12-Factor App, Configuration Externalization, Type Safety
"""
from __future__ import annotations

from enum import Enum
from typing import Literal

from pydantic import Field, SecretStr, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
import structlog

from .domain.delivery import SendGridConfig as SendGridClientConfig

logger = structlog.get_logger(__name__)


class Environment(str, Enum):
    """Deployment environment."""
    DEVELOPMENT = "development"
    STAGING = "staging"
    PRODUCTION = "production"


class ServiceConfiguration(BaseSettings):
    """Core service configuration."""
    name: str = Field(default="mailing-service")
    version: str = Field(default="1.0.0")
    env: Environment = Field(default=Environment.DEVELOPMENT)
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=10005, ge=1, le=65535)
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR"] = Field(default="INFO")

    model_config = SettingsConfigDict(
        env_prefix="MAILING_SERVICE_",
        env_file=".env",
        extra="ignore",
    )


def _validate_address(v: str) -> str:
    if v and "@" not in v:
        raise ValueError("Invalid email format")
    return v.strip().lower() if v else v


class SendGridConfig(BaseSettings):
    """SendGrid delivery and mailbox configuration."""
    api_key: SecretStr = Field(default=SecretStr(""))
    api_url: str = Field(default="https://api.sendgrid.com")
    timeout_seconds: float = Field(default=30.0, ge=1.0, le=300.0)
    no_reply_email_account: str = Field(default="noreply@collectively.com")
    support_email_account: str = Field(default="support@collectively.com")
    default_culture: str = Field(default="en-US", min_length=2)

    model_config = SettingsConfigDict(
        env_prefix="SENDGRID_",
        env_file=".env",
        extra="ignore",
    )

    @field_validator("no_reply_email_account", "support_email_account", mode="before")
    @classmethod
    def validate_accounts(cls, v: str) -> str:
        """Validate mailbox address format."""
        return _validate_address(v)

    def client_config(self) -> SendGridClientConfig:
        return SendGridClientConfig(
            api_key=self.api_key,
            api_url=self.api_url,
            timeout_seconds=self.timeout_seconds,
        )


class TemplateStoreConfig(BaseSettings):
    """Template store configuration."""
    backend: Literal["memory", "postgres"] = Field(default="memory")
    dsn: SecretStr = Field(default=SecretStr("postgresql://localhost:5432/mailing"))
    min_pool_size: int = Field(default=1, ge=1, le=50)
    max_pool_size: int = Field(default=10, ge=1, le=100)
    seed: bool = Field(default=False)
    seed_file: str | None = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="TEMPLATE_STORE_",
        env_file=".env",
        extra="ignore",
    )


class KafkaConfig(BaseSettings):
    """Kafka command consumer configuration."""
    enabled: bool = Field(default=False)
    bootstrap_servers: str = Field(default="localhost:9092")
    topic: str = Field(default="collectively.mailing")
    consumer_group_id: str = Field(default="mailing-service-commands")
    client_id: str = Field(default="mailing-service")
    poll_timeout_ms: int = Field(default=1000, ge=100, le=60000)

    model_config = SettingsConfigDict(
        env_prefix="KAFKA_",
        env_file=".env",
        extra="ignore",
    )


class ObservabilityConfig(BaseSettings):
    """Observability configuration."""
    log_format: Literal["json", "console"] | None = Field(default=None)

    model_config = SettingsConfigDict(
        env_prefix="OBSERVABILITY_",
        env_file=".env",
        extra="ignore",
    )


class MailingServiceConfig(BaseSettings):
    """Aggregate mailing service configuration."""
    service: ServiceConfiguration = Field(default_factory=ServiceConfiguration)
    sendgrid: SendGridConfig = Field(default_factory=SendGridConfig)
    template_store: TemplateStoreConfig = Field(default_factory=TemplateStoreConfig)
    kafka: KafkaConfig = Field(default_factory=KafkaConfig)
    observability: ObservabilityConfig = Field(default_factory=ObservabilityConfig)

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
    )

    @staticmethod
    def load() -> MailingServiceConfig:
        """Load configuration from environment."""
        config = MailingServiceConfig()
        logger.info(
            "mailing_config_loaded",
            service=config.service.name,
            env=config.service.env.value,
            template_store=config.template_store.backend,
            kafka_enabled=config.kafka.enabled,
            default_culture=config.sendgrid.default_culture,
        )
        return config

    def is_production(self) -> bool:
        """Check if running in production."""
        return self.service.env == Environment.PRODUCTION

    def log_format(self) -> str:
        """Console logs in development unless overridden."""
        if self.observability.log_format:
            return self.observability.log_format
        return "console" if self.service.env == Environment.DEVELOPMENT else "json"


_config: MailingServiceConfig | None = None


def get_config() -> MailingServiceConfig:
    """Get singleton configuration instance."""
    global _config
    if _config is None:
        _config = MailingServiceConfig.load()
    return _config


def reset_config() -> None:
    """Reset configuration (useful for testing)."""
    global _config
    _config = None
