"""Outbound events and collection notifications.

Supports webhook delivery of engine events and BFS fan-out of
collection notifications with periodic expiry and re-notify.
"""

from handshake.notifications.base import (
    DeliveryResult,
    EventChannel,
    EventDispatcher,
    EventType,
    OutboundEvent,
)
from handshake.notifications.collection import CollectionNotifier
from handshake.notifications.webhook import WebhookChannel
from handshake.notifications.worker import DueCollection, NotificationWorker

__all__ = [
    "DeliveryResult",
    "EventChannel",
    "EventDispatcher",
    "EventType",
    "OutboundEvent",
    "CollectionNotifier",
    "WebhookChannel",
    "DueCollection",
    "NotificationWorker",
]
