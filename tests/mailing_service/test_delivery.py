"""
Unit tests for the SendGrid delivery client.
"""
import json

import httpx
import pytest
from pydantic import SecretStr

from mailing_service.domain.delivery import (
    SEND_PATH,
    DeliveryError,
    SendGridClient,
    SendGridConfig,
    build_sendgrid_payload,
)
from mailing_service.domain.messages import OutboundMessage


@pytest.fixture
def config():
    return SendGridConfig(api_key=SecretStr("SG.test-key"), api_url="https://sendgrid.test")


@pytest.fixture
def templated_message():
    return OutboundMessage(
        sender="noreply@collectively.com",
        recipient="alice@example.com",
        subject="Activate your account",
        template_ref="tpl-activate",
        substitutions={"-username-": "alice", "-url-": "https://x/activate"},
    )


@pytest.fixture
def plain_message():
    return OutboundMessage(
        sender="user@example.com",
        sender_name="Jane User",
        recipient="support@collectively.com",
        subject="Help",
        body="It does not work",
    )


def _client(config, handler):
    http = httpx.AsyncClient(base_url=config.api_url, transport=httpx.MockTransport(handler))
    return SendGridClient(config, client=http)


class TestBuildSendGridPayload:
    """Tests for provider payload mapping."""

    def test_templated_payload(self, templated_message):
        payload = build_sendgrid_payload(templated_message)
        assert payload["from"] == {"email": "noreply@collectively.com"}
        assert payload["template_id"] == "tpl-activate"
        assert payload["personalizations"] == [{
            "to": [{"email": "alice@example.com"}],
            "substitutions": {"-username-": "alice", "-url-": "https://x/activate"},
        }]
        assert "content" not in payload

    def test_plain_payload(self, plain_message):
        payload = build_sendgrid_payload(plain_message)
        assert payload["from"] == {"email": "user@example.com", "name": "Jane User"}
        assert payload["content"] == [{"type": "text/plain", "value": "It does not work"}]
        assert payload["personalizations"] == [{"to": [{"email": "support@collectively.com"}]}]
        assert "template_id" not in payload


class TestSendGridClient:
    """Tests for SendGridClient HTTP behavior."""

    @pytest.mark.asyncio
    async def test_send_success(self, config, templated_message):
        captured = {}

        def handler(request: httpx.Request) -> httpx.Response:
            captured["path"] = request.url.path
            captured["auth"] = request.headers["Authorization"]
            captured["body"] = json.loads(request.content)
            return httpx.Response(202, headers={"X-Message-Id": "abc123"})

        client = _client(config, handler)
        result = await client.send(templated_message)

        assert result.status_code == 202
        assert result.message_id == "abc123"
        assert result.recipient == "alice@example.com"
        assert captured["path"] == SEND_PATH
        assert captured["auth"] == "Bearer SG.test-key"
        assert captured["body"]["template_id"] == "tpl-activate"
        await client.close()

    @pytest.mark.asyncio
    async def test_provider_rejection(self, config, templated_message):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"errors": [{"message": "Invalid template id"}]})

        client = _client(config, handler)
        with pytest.raises(DeliveryError) as exc_info:
            await client.send(templated_message)

        assert exc_info.value.status_code == 400
        assert "Invalid template id" in exc_info.value.reason
        assert exc_info.value.is_retriable is False

    @pytest.mark.asyncio
    async def test_unexpected_error_body_still_raises_delivery_error(self, config, plain_message):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(400, json={"errors": {"message": "Bad request"}})

        client = _client(config, handler)
        with pytest.raises(DeliveryError) as exc_info:
            await client.send(plain_message)

        assert exc_info.value.status_code == 400
        assert exc_info.value.is_retriable is False

    @pytest.mark.asyncio
    async def test_provider_unavailable(self, config, plain_message):
        def handler(request: httpx.Request) -> httpx.Response:
            return httpx.Response(503, text="Service Unavailable")

        client = _client(config, handler)
        with pytest.raises(DeliveryError) as exc_info:
            await client.send(plain_message)

        assert exc_info.value.status_code == 503
        assert exc_info.value.is_retriable is True

    @pytest.mark.asyncio
    async def test_transport_error(self, config, plain_message):
        def handler(request: httpx.Request) -> httpx.Response:
            raise httpx.ConnectError("connection refused", request=request)

        client = _client(config, handler)
        with pytest.raises(DeliveryError) as exc_info:
            await client.send(plain_message)

        assert exc_info.value.status_code is None
        assert exc_info.value.is_retriable is True
        assert exc_info.value.recipient == "support@collectively.com"


class TestDeliveryError:

    @pytest.mark.parametrize("status_code,retriable", [
        (None, True),
        (429, True),
        (500, True),
        (502, True),
        (400, False),
        (401, False),
        (413, False),
    ])
    def test_is_retriable(self, status_code, retriable):
        error = DeliveryError("a@b.c", "failed", status_code=status_code)
        assert error.is_retriable is retriable
