"""
Unit tests for mailing service configuration.
"""
import pytest
from pydantic import ValidationError

from mailing_service.config import (
    Environment,
    KafkaConfig,
    MailingServiceConfig,
    SendGridConfig,
    TemplateStoreConfig,
    get_config,
    reset_config,
)


@pytest.fixture(autouse=True)
def _fresh_config():
    reset_config()
    yield
    reset_config()


class TestSendGridConfig:

    def test_defaults(self, monkeypatch):
        monkeypatch.delenv("SENDGRID_API_KEY", raising=False)
        config = SendGridConfig()
        assert config.api_url == "https://api.sendgrid.com"
        assert config.default_culture == "en-US"
        assert config.no_reply_email_account == "noreply@collectively.com"

    def test_accounts_are_normalized(self):
        config = SendGridConfig(support_email_account=" Support@Collectively.com ")
        assert config.support_email_account == "support@collectively.com"

    def test_invalid_account_rejected(self):
        with pytest.raises(ValidationError):
            SendGridConfig(no_reply_email_account="not-an-address")

    def test_from_environment(self, monkeypatch):
        monkeypatch.setenv("SENDGRID_API_KEY", "SG.env")
        monkeypatch.setenv("SENDGRID_DEFAULT_CULTURE", "pl-PL")
        config = SendGridConfig()
        assert config.api_key.get_secret_value() == "SG.env"
        assert config.default_culture == "pl-PL"

    def test_client_config(self):
        config = SendGridConfig(api_key="SG.key", timeout_seconds=5)
        client_config = config.client_config()
        assert client_config.api_key.get_secret_value() == "SG.key"
        assert client_config.timeout_seconds == 5


class TestComponentConfigs:

    def test_template_store_backend_validated(self):
        with pytest.raises(ValidationError):
            TemplateStoreConfig(backend="mongodb")

    def test_kafka_from_environment(self, monkeypatch):
        monkeypatch.setenv("KAFKA_ENABLED", "true")
        monkeypatch.setenv("KAFKA_TOPIC", "mailing.commands")
        config = KafkaConfig()
        assert config.enabled is True
        assert config.topic == "mailing.commands"


class TestMailingServiceConfig:

    def test_load(self):
        config = MailingServiceConfig.load()
        assert config.service.name == "mailing-service"
        assert config.service.port == 10005
        assert config.template_store.backend == "memory"
        assert config.kafka.enabled is False

    def test_log_format(self, monkeypatch):
        monkeypatch.setenv("MAILING_SERVICE_ENV", "production")
        config = MailingServiceConfig()
        assert config.is_production()
        assert config.service.env == Environment.PRODUCTION
        assert config.log_format() == "json"

        monkeypatch.setenv("OBSERVABILITY_LOG_FORMAT", "console")
        assert MailingServiceConfig().log_format() == "console"

    def test_singleton(self):
        assert get_config() is get_config()

    def test_reset(self):
        first = get_config()
        reset_config()
        assert get_config() is not first
