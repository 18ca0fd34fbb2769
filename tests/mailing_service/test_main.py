"""
Tests for the mailing service application wiring.
"""
from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock

import pytest
from fastapi.testclient import TestClient

from mailing_service import main
from mailing_service.config import KafkaConfig, MailingServiceConfig, TemplateStoreConfig
from mailing_service.domain import NotificationService


@pytest.fixture
def config(tmp_path):
    seed_file = tmp_path / "templates.json"
    seed_file.write_text(
        '[{"codename": "ResetPassword", "culture": "en-US", "subject": "Reset",'
        ' "provider_template_id": "tpl-reset"}]',
        encoding="utf-8",
    )
    return MailingServiceConfig(
        template_store=TemplateStoreConfig(backend="memory", seed=True, seed_file=str(seed_file)),
    )


class TestApplication:

    def test_root(self, config):
        with TestClient(main.create_app(config)) as client:
            response = client.get("/")
        assert response.status_code == 200
        assert response.json()["service"] == "mailing-service"

    def test_health(self, config):
        with TestClient(main.create_app(config)) as client:
            response = client.get("/health")
        assert response.json() == {"status": "healthy"}

    def test_ready_after_startup(self, config):
        with TestClient(main.create_app(config)) as client:
            response = client.get("/ready")
            assert isinstance(main.get_notification_service(), NotificationService)
        assert response.json() == {"status": "ready"}

    def test_not_ready_without_lifespan(self, config):
        client = TestClient(main.create_app(config))
        assert client.get("/ready").json()["status"] == "not_ready"

    def test_service_released_on_shutdown(self, config):
        with TestClient(main.create_app(config)):
            pass
        with pytest.raises(RuntimeError):
            main.get_notification_service()

    @pytest.mark.asyncio
    async def test_seeded_store(self, config):
        store = await main._create_template_store(config, main.logger)
        lookup = await store.get_by_codename_and_culture("ResetPassword", "en-US")
        assert lookup.template.provider_template_id == "tpl-reset"


class TestStartupFailure:
    """A startup step that raises still releases what was already created."""

    @pytest.mark.asyncio
    async def test_pool_closed_when_table_setup_fails(self, monkeypatch):
        conn = MagicMock()
        conn.execute = AsyncMock(side_effect=ConnectionError("relation setup failed"))
        pool = MagicMock()
        pool.close = AsyncMock()

        @asynccontextmanager
        async def acquire():
            yield conn

        pool.acquire = acquire
        monkeypatch.setattr("asyncpg.create_pool", AsyncMock(return_value=pool))
        config = MailingServiceConfig(template_store=TemplateStoreConfig(backend="postgres"))
        app = main.create_app(config)

        with pytest.raises(ConnectionError):
            async with main.lifespan(app):
                pass

        pool.close.assert_awaited_once()
        assert main._state.pool is None
        assert main._state.notification_service is None

    @pytest.mark.asyncio
    async def test_service_closed_when_consumer_fails_to_start(self, monkeypatch, mock_notification_service):
        monkeypatch.setattr(main, "create_notification_service", lambda **kwargs: mock_notification_service)
        monkeypatch.setattr(main.MailingCommandConsumer, "start",
                            AsyncMock(side_effect=ConnectionError("broker unreachable")))
        config = MailingServiceConfig(kafka=KafkaConfig(enabled=True))
        app = main.create_app(config)

        with pytest.raises(ConnectionError):
            async with main.lifespan(app):
                pass

        mock_notification_service.close.assert_awaited_once()
        assert main._state.notification_service is None
        assert main._state.consumer is None
