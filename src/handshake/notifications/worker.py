"""Background worker for collection notifications.

Periodically expires stale notifications and re-announces collections
that still need help. Collections belong to the host application, so
the worker asks a host-supplied provider which ones are due.
"""

import asyncio
from collections.abc import Awaitable, Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any
from uuid import UUID

from handshake.common.config import NotificationSettings, get_settings
from handshake.common.database import get_session
from handshake.common.logging import get_logger, operation_context
from handshake.common.metrics import NOTIFICATION_WORKER_ERRORS, set_app_info
from handshake.notifications.base import EventDispatcher
from handshake.notifications.collection import CollectionNotifier

logger = get_logger(__name__)


@dataclass
class DueCollection:
    """A collection that still needs contributions."""

    collection_id: UUID
    creator_id: UUID
    remaining_amount: float


DueCollectionsProvider = Callable[[], Awaitable[list[DueCollection]]]


class NotificationWorker:
    """Worker that keeps collection notifications current.

    Each cycle:
    - Expires unread notifications past their expiry
    - Re-notifies due collections, at most once per re-notify interval
    """

    def __init__(
        self,
        due_collections: DueCollectionsProvider | None = None,
        dispatcher: EventDispatcher | None = None,
        settings: NotificationSettings | None = None,
    ) -> None:
        """Initialize notification worker.

        Args:
            due_collections: Returns collections to re-announce. Re-notify
                is skipped when not provided.
            dispatcher: Outbound event dispatcher.
            settings: Notification settings.
        """
        self._settings = settings or get_settings().notifications
        self._due_collections = due_collections
        self._dispatcher = dispatcher

        self._poll_interval = self._settings.worker_poll_interval_seconds
        self._renotify_interval = timedelta(hours=self._settings.re_notify_interval_hours)

        # State
        self._running = False
        self._cycles = 0
        self._expired_count = 0
        self._renotified_count = 0
        self._last_renotify_run: datetime | None = None

    async def start(self) -> None:
        """Run cycles until stopped."""
        self._running = True
        settings = get_settings()
        set_app_info(settings.app_version, settings.environment)
        logger.info("Notification worker started", poll_interval=self._poll_interval)

        while self._running:
            try:
                await self.run_once()
            except asyncio.CancelledError:
                break
            except Exception as e:
                logger.error("Notification cycle failed", error=str(e))
                NOTIFICATION_WORKER_ERRORS.labels(error_type="cycle").inc()

            await asyncio.sleep(self._poll_interval)

        logger.info(
            "Notification worker stopped",
            expired=self._expired_count,
            renotified=self._renotified_count,
        )

    async def stop(self) -> None:
        """Stop the worker after the current cycle."""
        self._running = False

    async def run_once(self, now: datetime | None = None) -> dict[str, int]:
        """Run one expiry and re-notify cycle.

        Returns:
            Counts of expired and newly created notifications.
        """
        now = now or datetime.now(timezone.utc)
        self._cycles += 1

        with operation_context(worker="notifications", cycle=self._cycles):
            expired = await self._expire(now)
            renotified = await self._maybe_renotify(now)

        return {"expired": expired, "renotified": renotified}

    async def _expire(self, now: datetime) -> int:
        async with get_session() as db:
            notifier = CollectionNotifier.for_session(db, self._dispatcher)
            expired = await notifier.expire(now)

        self._expired_count += expired
        return expired

    async def _maybe_renotify(self, now: datetime) -> int:
        """Re-notify due collections if the interval has passed."""
        if self._due_collections is None:
            return 0
        if self._last_renotify_run and now - self._last_renotify_run < self._renotify_interval:
            return 0

        self._last_renotify_run = now
        created = 0

        for due in await self._due_collections():
            # One collection failing must not block the others
            try:
                async with get_session() as db:
                    notifier = CollectionNotifier.for_session(db, self._dispatcher)
                    created += await notifier.renotify(
                        due.collection_id,
                        due.creator_id,
                        due.remaining_amount,
                        now=now,
                    )
            except Exception as e:
                logger.error(
                    "Re-notify failed",
                    collection_id=str(due.collection_id),
                    error=str(e),
                )
                NOTIFICATION_WORKER_ERRORS.labels(error_type="renotify").inc()

        self._renotified_count += created
        return created

    @property
    def stats(self) -> dict[str, Any]:
        """Get worker statistics."""
        return {
            "running": self._running,
            "cycles": self._cycles,
            "expired_count": self._expired_count,
            "renotified_count": self._renotified_count,
            "last_renotify_run": self._last_renotify_run.isoformat() if self._last_renotify_run else None,
        }
