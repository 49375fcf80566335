"""Webhook delivery channel.

Posts outbound events as JSON with an optional HMAC signature.
"""

import asyncio
import hashlib
import hmac
import json
from datetime import datetime, timezone
from typing import Any

import httpx

from handshake.common.config import WebhookSettings, get_settings
from handshake.common.exceptions import ConfigurationError, DeliveryError
from handshake.common.logging import get_logger
from handshake.notifications.base import DeliveryResult, EventChannel, OutboundEvent

logger = get_logger(__name__)


class WebhookChannel(EventChannel):
    """Event channel using HTTP POST."""

    def __init__(
        self,
        settings: WebhookSettings | None = None,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """Initialize webhook channel.

        Args:
            settings: Webhook configuration. Uses global settings if not provided.
            client: Shared HTTP client. A short-lived one is opened per
                delivery when not provided.

        Raises:
            ConfigurationError: If no URL is configured.
        """
        self._settings = settings or get_settings().webhook
        if not self._settings.url:
            raise ConfigurationError("Webhook URL is not configured")
        self._client = client

    @property
    def name(self) -> str:
        return "webhook"

    def _compute_signature(self, payload: bytes) -> str:
        """Compute HMAC-SHA256 signature for payload.

        Returns:
            Hex-encoded signature, or "" when no secret is configured.
        """
        if not self._settings.secret:
            return ""

        signature = hmac.new(
            self._settings.secret.get_secret_value().encode("utf-8"),
            payload,
            hashlib.sha256,
        )
        return signature.hexdigest()

    def _build_headers(self, body: bytes) -> dict[str, str]:
        headers = {
            "Content-Type": "application/json",
            "User-Agent": "Handshake/1.0",
            "X-Handshake-Timestamp": datetime.now(timezone.utc).isoformat(),
        }

        if self._settings.secret:
            headers["X-Handshake-Signature"] = f"sha256={self._compute_signature(body)}"

        headers.update(self._settings.headers)
        return headers

    async def _send_with_retry(
        self,
        client: httpx.AsyncClient,
        payload: dict[str, Any],
    ) -> tuple[bool, str | None, str | None]:
        """Send request with exponential backoff retry.

        Server errors, timeouts and connection failures are retried;
        client errors are not.

        Returns:
            Tuple of (success, message_id, error).
        """
        settings = self._settings
        body = json.dumps(payload).encode("utf-8")
        headers = self._build_headers(body)

        last_error = None

        for attempt in range(settings.retry_count + 1):
            try:
                response = await client.post(
                    settings.url,
                    content=body,
                    headers=headers,
                    timeout=settings.timeout,
                )

                if 200 <= response.status_code < 300:
                    message_id = None
                    try:
                        response_data = response.json()
                        if isinstance(response_data, dict):
                            message_id = response_data.get("id") or response_data.get("message_id")
                    except ValueError:
                        pass

                    return True, message_id or payload["event_id"], None

                if response.status_code >= 500:
                    last_error = f"Server error: {response.status_code}"
                    logger.warning(
                        "Webhook server error, retrying",
                        status_code=response.status_code,
                        attempt=attempt + 1,
                    )
                else:
                    return False, None, f"HTTP {response.status_code}: {response.text[:200]}"

            except httpx.TimeoutException:
                last_error = "Request timed out"
                logger.warning(
                    "Webhook timeout, retrying",
                    url=settings.url,
                    attempt=attempt + 1,
                )
            except httpx.HTTPError as e:
                last_error = f"Connection failed: {e}"
                logger.warning(
                    "Webhook request failed, retrying",
                    error=str(e),
                    attempt=attempt + 1,
                )

            if attempt < settings.retry_count:
                delay = settings.retry_delay * (2 ** attempt)
                await asyncio.sleep(delay)

        return False, None, last_error

    async def _post(self, payload: dict[str, Any]) -> tuple[bool, str | None, str | None]:
        if self._client is not None:
            return await self._send_with_retry(self._client, payload)

        async with httpx.AsyncClient() as client:
            return await self._send_with_retry(client, payload)

    async def deliver(self, event: OutboundEvent) -> DeliveryResult:
        """Post an event to the configured URL.

        Raises:
            DeliveryError: If the endpoint rejects the event or every
                attempt fails.
        """
        success, message_id, error = await self._post(event.to_dict())

        if not success:
            raise DeliveryError(
                f"Webhook delivery failed: {error}",
                details={
                    "event_id": str(event.event_id),
                    "event_type": event.event_type.value,
                },
            )

        logger.debug(
            "Webhook event delivered",
            url=self._settings.url,
            event_type=event.event_type.value,
            event_id=str(event.event_id),
        )
        return DeliveryResult(
            success=True,
            channel=self.name,
            event_id=event.event_id,
            message_id=message_id,
        )

    async def test_connection(self) -> bool:
        """Send a test payload to verify the webhook is reachable."""
        test_payload = {
            "event_id": "test",
            "event_type": "test",
            "recipients": [],
            "payload": {"test": True},
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }

        success, _, error = await self._post(test_payload)

        if success:
            logger.info("Webhook channel connection test successful")
        else:
            logger.error("Webhook channel connection test failed", error=error)

        return success
