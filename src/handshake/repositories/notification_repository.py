"""Collection notification persistence."""

import uuid
from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import func, or_, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.ext.asyncio import AsyncSession

from handshake.common.logging import get_logger
from handshake.models.notification import Notification, NotificationStatus, NotificationType
from handshake.models.user import IgnoreEntry

logger = get_logger(__name__)


class NotificationRepository:
    """Reads and writes collection notifications and ignore entries."""

    def __init__(self, db: AsyncSession, batch_size: int = 1000) -> None:
        """Initialize repository.

        Args:
            db: Database session.
            batch_size: Number of rows per insert statement.
        """
        self.db = db
        self._batch_size = batch_size

    async def ignored_user_ids(self, user_id: UUID) -> set[UUID]:
        """Users in an ignore entry with this user, in either direction."""
        result = await self.db.execute(
            select(IgnoreEntry.from_user_id, IgnoreEntry.to_user_id).where(
                or_(IgnoreEntry.from_user_id == user_id, IgnoreEntry.to_user_id == user_id)
            )
        )
        ignored = set()
        for row in result:
            ignored.add(row.to_user_id if row.from_user_id == user_id else row.from_user_id)
        return ignored

    async def notified_user_ids(self, collection_id: UUID) -> set[UUID]:
        """Users already notified about a collection, any type or wave."""
        result = await self.db.execute(
            select(Notification.user_id)
            .where(Notification.collection_id == collection_id)
            .distinct()
        )
        return set(result.scalars().all())

    async def insert_many(self, rows: list[dict[str, Any]]) -> int:
        """Insert notifications in batches, skipping any that already exist.

        Returns:
            Number of rows actually inserted.
        """
        if not rows:
            return 0

        values = [{"id": uuid.uuid4(), **row} for row in rows]
        inserted = 0

        # Keeps each statement under the PostgreSQL bind parameter limit
        for start in range(0, len(values), self._batch_size):
            batch = values[start:start + self._batch_size]
            stmt = (
                pg_insert(Notification)
                .values(batch)
                .on_conflict_do_nothing(
                    index_elements=["user_id", "collection_id", "type", "wave"],
                )
                .returning(Notification.id)
            )
            result = await self.db.execute(stmt)
            inserted += len(result.scalars().all())

        if inserted < len(values):
            logger.debug(
                "Skipped existing notifications",
                requested=len(values),
                inserted=inserted,
            )
        return inserted

    async def last_wave(self, collection_id: UUID, notification_type: NotificationType) -> int | None:
        result = await self.db.execute(
            select(func.max(Notification.wave)).where(
                Notification.collection_id == collection_id,
                Notification.type == notification_type.value,
            )
        )
        return result.scalar_one_or_none()

    async def expire_due(self, now: datetime) -> int:
        """Mark unread notifications past their expiry as expired."""
        result = await self.db.execute(
            update(Notification)
            .where(
                Notification.status == NotificationStatus.UNREAD.value,
                Notification.expires_at < now,
            )
            .values(status=NotificationStatus.EXPIRED.value)
        )
        return result.rowcount or 0
