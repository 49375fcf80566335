"""Collection notification model.

One row per recipient reached by a help-request fan-out, carrying the
handshake path that delivered it.
"""

import uuid
from datetime import datetime
from enum import Enum

from sqlalchemy import DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.dialects.postgresql import ARRAY, UUID
from sqlalchemy.orm import Mapped, mapped_column

from handshake.models.base import BaseModel


class NotificationType(str, Enum):
    """Reasons a collection notification is sent.

    The engine produces NEW_COLLECTION and RE_NOTIFY itself. The host
    passes COLLECTION_BLOCKED and COLLECTION_CLOSED to
    ``CollectionNotifier.notify`` when a collection changes state.
    """

    NEW_COLLECTION = "new_collection"
    RE_NOTIFY = "re_notify"
    COLLECTION_BLOCKED = "collection_blocked"
    COLLECTION_CLOSED = "collection_closed"


class NotificationStatus(str, Enum):
    """Read state of a notification.

    The host marks notifications READ or DISMISSED. Expiry only moves
    UNREAD notifications to EXPIRED.
    """

    UNREAD = "unread"
    READ = "read"
    DISMISSED = "dismissed"
    EXPIRED = "expired"


class Notification(BaseModel):
    """A notification about a collection delivered through the graph.

    At most one row exists per (user, collection, type, wave).
    """

    __tablename__ = "notifications"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Collections are owned by the host application
    collection_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        nullable=False,
        index=True,
    )

    type: Mapped[NotificationType] = mapped_column(
        String(30),
        nullable=False,
    )

    status: Mapped[NotificationStatus] = mapped_column(
        String(20),
        default=NotificationStatus.UNREAD,
        nullable=False,
    )

    # Seed first, recipient last
    handshake_path: Mapped[list[uuid.UUID]] = mapped_column(
        ARRAY(UUID(as_uuid=True)),
        nullable=False,
    )

    wave: Mapped[int] = mapped_column(
        default=1,
        nullable=False,
    )

    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint(
            "user_id", "collection_id", "type", "wave",
            name="uq_notifications_user_collection_type_wave",
        ),
        Index("ix_notifications_status_expires", "status", "expires_at"),
    )

    def __repr__(self) -> str:
        return f"<Notification {self.type} user={self.user_id} wave={self.wave}>"
