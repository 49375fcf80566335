"""Unit tests for the event dispatcher and webhook channel."""

import hashlib
import hmac
import json
from unittest.mock import AsyncMock, MagicMock, patch
from uuid import UUID

import httpx
import pytest
from pydantic import SecretStr

from handshake.common.config import WebhookSettings
from handshake.common.exceptions import ConfigurationError, DeliveryError
from handshake.notifications.base import (
    DeliveryResult,
    EventChannel,
    EventDispatcher,
    EventType,
    OutboundEvent,
)
from handshake.notifications.webhook import WebhookChannel

WEBHOOK_URL = "https://hooks.example.com/handshake"


class FailingChannel(EventChannel):
    """Channel whose deliveries and tests always raise."""

    @property
    def name(self) -> str:
        return "failing"

    async def deliver(self, event: OutboundEvent) -> DeliveryResult:
        raise DeliveryError("endpoint down")

    async def test_connection(self) -> bool:
        raise RuntimeError("unreachable")


def make_response(status_code: int, body=None, text: str = "") -> MagicMock:
    response = MagicMock()
    response.status_code = status_code
    response.text = text
    if body is None:
        response.json.side_effect = ValueError("no json")
    else:
        response.json.return_value = body
    return response


@pytest.fixture
def event() -> OutboundEvent:
    return OutboundEvent(
        event_type=EventType.CHAIN_PROPOSED,
        recipients=[UUID(int=1), UUID(int=2)],
        payload={"chain": {"status": "proposed"}},
        chain_id=UUID(int=900),
    )


@pytest.fixture
def webhook_settings() -> WebhookSettings:
    return WebhookSettings(
        enabled=True,
        url=WEBHOOK_URL,
        secret=SecretStr("s3cret"),
        retry_count=2,
        retry_delay=0.5,
        headers_json='{"X-Tenant": "acme"}',
    )


@pytest.mark.unit
class TestEventDispatcher:
    """Test cases for EventDispatcher."""

    @pytest.mark.asyncio
    async def test_no_channels(self, event):
        assert await EventDispatcher().dispatch(event) == []

    @pytest.mark.asyncio
    async def test_failure_isolated_per_channel(self, event, recording_channel):
        dispatcher = EventDispatcher()
        dispatcher.register_channel(FailingChannel())
        dispatcher.register_channel(recording_channel)

        results = await dispatcher.dispatch(event)

        assert [(r.channel, r.success) for r in results] == [("failing", False), ("recording", True)]
        assert "endpoint down" in results[0].error
        assert recording_channel.events == [event]

    @pytest.mark.asyncio
    async def test_test_all_channels(self, recording_channel):
        dispatcher = EventDispatcher()
        dispatcher.register_channel(FailingChannel())
        dispatcher.register_channel(recording_channel)

        assert await dispatcher.test_all_channels() == {"failing": False, "recording": True}

    def test_register_and_unregister(self, recording_channel):
        dispatcher = EventDispatcher()
        dispatcher.register_channel(recording_channel)

        assert dispatcher.channels == ["recording"]
        assert dispatcher.get_channel("recording") is recording_channel

        dispatcher.unregister_channel("recording")
        dispatcher.unregister_channel("recording")

        assert dispatcher.channels == []
        assert dispatcher.get_channel("recording") is None

    def test_event_to_dict(self, event):
        data = event.to_dict()

        assert data["event_type"] == "chain_proposed"
        assert data["recipients"] == [str(UUID(int=1)), str(UUID(int=2))]
        assert data["chain_id"] == str(UUID(int=900))
        assert "collection_id" not in data
        json.dumps(data)


@pytest.mark.unit
class TestWebhookChannel:
    """Test cases for WebhookChannel."""

    def test_requires_url(self):
        with pytest.raises(ConfigurationError):
            WebhookChannel(WebhookSettings(url=None))

    @pytest.mark.asyncio
    async def test_signed_delivery(self, event, webhook_settings):
        client = AsyncMock()
        client.post.return_value = make_response(200, {"id": "msg-1"})
        channel = WebhookChannel(webhook_settings, client=client)

        result = await channel.deliver(event)

        assert result.success
        assert result.message_id == "msg-1"
        assert result.channel == "webhook"

        kwargs = client.post.call_args.kwargs
        body = kwargs["content"]
        expected = hmac.new(b"s3cret", body, hashlib.sha256).hexdigest()
        assert client.post.call_args.args[0] == WEBHOOK_URL
        assert kwargs["headers"]["X-Handshake-Signature"] == f"sha256={expected}"
        assert kwargs["headers"]["X-Tenant"] == "acme"
        assert json.loads(body)["event_id"] == str(event.event_id)

    @pytest.mark.asyncio
    async def test_unsigned_without_secret(self, event):
        client = AsyncMock()
        client.post.return_value = make_response(204)
        channel = WebhookChannel(WebhookSettings(url=WEBHOOK_URL), client=client)

        result = await channel.deliver(event)

        assert result.message_id == str(event.event_id)
        assert "X-Handshake-Signature" not in client.post.call_args.kwargs["headers"]

    @pytest.mark.asyncio
    async def test_client_error_not_retried(self, event, webhook_settings):
        client = AsyncMock()
        client.post.return_value = make_response(400, text="bad payload")
        channel = WebhookChannel(webhook_settings, client=client)

        with patch("handshake.notifications.webhook.asyncio.sleep", new=AsyncMock()) as sleep:
            with pytest.raises(DeliveryError) as exc_info:
                await channel.deliver(event)

        assert "HTTP 400" in exc_info.value.message
        assert client.post.await_count == 1
        sleep.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_server_error_retried_with_backoff(self, event, webhook_settings):
        client = AsyncMock()
        client.post.side_effect = [make_response(503), make_response(502), make_response(200, {})]
        channel = WebhookChannel(webhook_settings, client=client)

        with patch("handshake.notifications.webhook.asyncio.sleep", new=AsyncMock()) as sleep:
            result = await channel.deliver(event)

        assert result.success
        assert client.post.await_count == 3
        assert [call.args[0] for call in sleep.await_args_list] == [0.5, 1.0]

    @pytest.mark.asyncio
    async def test_timeouts_exhaust_retries(self, event, webhook_settings):
        client = AsyncMock()
        client.post.side_effect = httpx.TimeoutException("timed out")
        channel = WebhookChannel(webhook_settings, client=client)

        with patch("handshake.notifications.webhook.asyncio.sleep", new=AsyncMock()):
            with pytest.raises(DeliveryError) as exc_info:
                await channel.deliver(event)

        assert "timed out" in exc_info.value.message
        assert client.post.await_count == 3

    @pytest.mark.asyncio
    async def test_dispatcher_records_webhook_failure(self, event, webhook_settings):
        client = AsyncMock()
        client.post.side_effect = httpx.ConnectError("refused")
        dispatcher = EventDispatcher()
        dispatcher.register_channel(WebhookChannel(webhook_settings, client=client))

        with patch("handshake.notifications.webhook.asyncio.sleep", new=AsyncMock()):
            results = await dispatcher.dispatch(event)

        assert len(results) == 1
        assert not results[0].success
        assert "Connection failed" in results[0].error

    @pytest.mark.asyncio
    async def test_connection_check(self, webhook_settings):
        client = AsyncMock()
        client.post.return_value = make_response(200, {"ok": True})
        channel = WebhookChannel(webhook_settings, client=client)

        assert await channel.test_connection() is True
        assert json.loads(client.post.call_args.kwargs["content"])["event_type"] == "test"
