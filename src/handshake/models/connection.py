"""Handshake connection model.

A connection is a confirmed, mutual handshake between two users and
the only edge type of the handshake graph.
"""

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from handshake.graph.connection_graph import canonical_pair
from handshake.models.base import Base, UUIDMixin


class Connection(Base, UUIDMixin):
    """Undirected handshake edge between two users.

    Stored canonically with the smaller user id in ``user_a_id`` so
    that each unordered pair maps to exactly one row. Connections are
    never mutated; they disappear only through the user cascade.
    """

    __tablename__ = "connections"

    user_a_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    user_b_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("user_a_id", "user_b_id", name="uq_connections_pair"),
        CheckConstraint("user_a_id < user_b_id", name="ck_connections_canonical_order"),
        Index("ix_connections_user_a", "user_a_id"),
    )

    @classmethod
    def between(cls, first_user_id: uuid.UUID, second_user_id: uuid.UUID) -> "Connection":
        """Build a connection for an accepted invite in canonical order.

        Raises:
            SelfConnectionError: If both ids are the same user.
        """
        user_a_id, user_b_id = canonical_pair(first_user_id, second_user_id)
        return cls(id=uuid.uuid4(), user_a_id=user_a_id, user_b_id=user_b_id)

    def other(self, user_id: uuid.UUID) -> uuid.UUID:
        """Return the opposite endpoint of this connection."""
        return self.user_b_id if user_id == self.user_a_id else self.user_a_id

    def __repr__(self) -> str:
        return f"<Connection {self.user_a_id} <-> {self.user_b_id}>"
