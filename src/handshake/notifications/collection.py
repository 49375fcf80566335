"""Collection notification fan-out.

A new help request (collection) is announced to the creator's network
through the handshake graph. Each recipient gets one notification row
carrying the path that reached them. Collections that still need help
are re-announced in waves, and unread notifications expire.
"""

import math
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from handshake.common.config import NotificationSettings, get_settings
from handshake.common.logging import get_logger
from handshake.common.metrics import NOTIFICATIONS_CREATED, NOTIFICATIONS_EXPIRED
from handshake.graph.traversal import RecipientResolver
from handshake.models.notification import NotificationStatus, NotificationType
from handshake.notifications.base import EventDispatcher, EventType, OutboundEvent
from handshake.repositories.graph_repository import GraphRepository
from handshake.repositories.notification_repository import NotificationRepository

logger = get_logger(__name__)


class CollectionNotifier:
    """Persists collection notifications for BFS-resolved recipients."""

    def __init__(
        self,
        graphs: GraphRepository,
        notifications: NotificationRepository,
        dispatcher: EventDispatcher | None = None,
        resolver: RecipientResolver | None = None,
        settings: NotificationSettings | None = None,
    ) -> None:
        self._graphs = graphs
        self._notifications = notifications
        self._dispatcher = dispatcher
        self._resolver = resolver or RecipientResolver()
        self._settings = settings or get_settings().notifications

    @classmethod
    def for_session(cls, db: AsyncSession, dispatcher: EventDispatcher | None = None) -> "CollectionNotifier":
        return cls(GraphRepository(db), NotificationRepository(db), dispatcher=dispatcher)

    async def notify(
        self,
        collection_id: UUID,
        creator_id: UUID,
        notification_type: NotificationType = NotificationType.NEW_COLLECTION,
        wave: int = 1,
        max_recipients: int | None = None,
        now: datetime | None = None,
    ) -> int:
        """Notify the creator's network about a collection.

        Users in an ignore entry with the creator and users already
        notified about the collection are excluded from the traversal.
        Existing (user, collection, type, wave) rows are left untouched.

        Args:
            collection_id: Collection being announced.
            creator_id: Collection creator, the BFS seed.
            notification_type: Reason for the notification.
            wave: Wave number.
            max_recipients: Recipient bound. Uses the graph default if not provided.
            now: Reference time for the expiry.

        Returns:
            Number of notifications created.
        """
        excluded = await self._notifications.ignored_user_ids(creator_id)
        excluded |= await self._notifications.notified_user_ids(collection_id)

        graph = await self._graphs.load_connection_graph()
        result = self._resolver.find_recipients(
            graph,
            creator_id,
            max_recipients=max_recipients,
            exclude=excluded,
        )

        if not result.recipients:
            logger.debug(
                "No recipients for collection",
                collection_id=str(collection_id),
                creator_id=str(creator_id),
            )
            return 0

        expires_at = (now or datetime.now(timezone.utc)) + timedelta(hours=self._settings.ttl_hours)
        rows = [
            {
                "user_id": recipient.user_id,
                "collection_id": collection_id,
                "type": notification_type.value,
                "status": NotificationStatus.UNREAD.value,
                "handshake_path": recipient.path,
                "wave": wave,
                "expires_at": expires_at,
            }
            for recipient in result.recipients
        ]
        created = await self._notifications.insert_many(rows)
        NOTIFICATIONS_CREATED.labels(type=notification_type.value).inc(created)

        logger.info(
            "Collection notifications created",
            collection_id=str(collection_id),
            type=notification_type.value,
            wave=wave,
            recipients=len(rows),
            created=created,
        )

        if created and self._dispatcher is not None:
            await self._dispatcher.dispatch(OutboundEvent(
                event_type=EventType.COLLECTION_NOTIFIED,
                recipients=[recipient.user_id for recipient in result.recipients],
                collection_id=collection_id,
                payload={
                    "type": notification_type.value,
                    "wave": wave,
                    "created": created,
                    "paths": {
                        str(recipient.user_id): [str(user_id) for user_id in recipient.path]
                        for recipient in result.recipients
                    },
                },
            ))

        return created

    async def renotify(
        self,
        collection_id: UUID,
        creator_id: UUID,
        remaining_amount: float,
        now: datetime | None = None,
    ) -> int:
        """Announce a collection again to users not yet notified.

        The recipient bound is the remaining amount divided by the
        notification ratio, rounded up.

        Returns:
            Number of notifications created.
        """
        if remaining_amount <= 0:
            return 0

        max_recipients = math.ceil(remaining_amount / self._settings.ratio)
        last_wave = await self._notifications.last_wave(collection_id, NotificationType.RE_NOTIFY)
        wave = (last_wave or 1) + 1

        return await self.notify(
            collection_id,
            creator_id,
            NotificationType.RE_NOTIFY,
            wave=wave,
            max_recipients=max_recipients,
            now=now,
        )

    async def expire(self, now: datetime | None = None) -> int:
        """Mark unread notifications past their expiry as expired."""
        expired = await self._notifications.expire_due(now or datetime.now(timezone.utc))
        if expired:
            NOTIFICATIONS_EXPIRED.inc(expired)
            logger.info("Expired notifications", count=expired)
        return expired
