"""Outbound event interfaces.

The engine never talks to chat, push or messaging systems itself. It
emits outbound events after its writes, and an ``EventDispatcher``
hands each event to the registered delivery channels.
"""

import uuid
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any
from uuid import UUID

from handshake.common.logging import get_logger
from handshake.common.metrics import EVENTS_DELIVERED

logger = get_logger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class EventType(str, Enum):
    """Kinds of outbound events."""

    CHAIN_PROPOSED = "chain_proposed"
    CHAIN_REPAIRED = "chain_repaired"
    CHAIN_CANCELLED = "chain_cancelled"
    CHAIN_ACTIVATED = "chain_activated"
    CHAIN_COMPLETED = "chain_completed"
    COLLECTION_NOTIFIED = "collection_notified"


@dataclass
class OutboundEvent:
    """An event for the delivery layer."""

    event_type: EventType
    recipients: list[UUID]
    payload: dict[str, Any] = field(default_factory=dict)

    # Context
    chain_id: UUID | None = None
    collection_id: UUID | None = None

    event_id: UUID = field(default_factory=uuid.uuid4)
    created_at: datetime = field(default_factory=_utcnow)

    def to_dict(self) -> dict[str, Any]:
        """JSON-friendly representation."""
        data: dict[str, Any] = {
            "event_id": str(self.event_id),
            "event_type": self.event_type.value,
            "recipients": [str(user_id) for user_id in self.recipients],
            "payload": self.payload,
            "timestamp": self.created_at.isoformat(),
        }
        if self.chain_id:
            data["chain_id"] = str(self.chain_id)
        if self.collection_id:
            data["collection_id"] = str(self.collection_id)
        return data


@dataclass
class DeliveryResult:
    """Result of handing an event to one channel."""

    success: bool
    channel: str
    event_id: UUID
    message_id: str | None = None
    error: str | None = None
    delivered_at: datetime = field(default_factory=_utcnow)


class EventChannel(ABC):
    """Abstract base class for delivery channels."""

    @property
    @abstractmethod
    def name(self) -> str:
        """Channel name (e.g., 'webhook')."""
        ...

    @abstractmethod
    async def deliver(self, event: OutboundEvent) -> DeliveryResult:
        """Deliver one event.

        Args:
            event: Event to deliver.

        Returns:
            Delivery result.
        """
        ...

    async def test_connection(self) -> bool:
        """Test if channel is properly configured."""
        return True


class EventDispatcher:
    """Fans outbound events out to every registered channel.

    Channel failures are logged and returned as failed results; they
    never propagate to the caller.
    """

    def __init__(self) -> None:
        self._channels: dict[str, EventChannel] = {}

    def register_channel(self, channel: EventChannel) -> None:
        """Register a delivery channel, replacing one with the same name."""
        self._channels[channel.name] = channel
        logger.info("Registered event channel", channel=channel.name)

    def unregister_channel(self, name: str) -> None:
        if name in self._channels:
            del self._channels[name]
            logger.info("Unregistered event channel", channel=name)

    def get_channel(self, name: str) -> EventChannel | None:
        return self._channels.get(name)

    @property
    def channels(self) -> list[str]:
        """Get list of registered channel names."""
        return list(self._channels.keys())

    async def dispatch(self, event: OutboundEvent) -> list[DeliveryResult]:
        """Deliver an event through every registered channel.

        Args:
            event: Event to deliver.

        Returns:
            One result per channel.
        """
        results: list[DeliveryResult] = []

        if not self._channels:
            logger.debug(
                "No event channels registered",
                event_type=event.event_type.value,
                event_id=str(event.event_id),
            )
            return results

        for name, channel in self._channels.items():
            try:
                result = await channel.deliver(event)
            except Exception as e:
                logger.error(
                    "Event delivery failed",
                    channel=name,
                    event_type=event.event_type.value,
                    event_id=str(event.event_id),
                    error=str(e),
                )
                result = DeliveryResult(
                    success=False,
                    channel=name,
                    event_id=event.event_id,
                    error=str(e),
                )

            EVENTS_DELIVERED.labels(
                channel=name,
                status="success" if result.success else "failure",
            ).inc()
            results.append(result)

        return results

    async def test_all_channels(self) -> dict[str, bool]:
        """Test all registered channels.

        Returns:
            Dict mapping channel name to test result.
        """
        results = {}

        for name, channel in self._channels.items():
            try:
                results[name] = await channel.test_connection()
            except Exception as e:
                logger.error("Channel test failed", channel=name, error=str(e))
                results[name] = False

        return results
