"""Clearing chain models.

A match chain is a closed cycle of skill exchanges: each link's
receiver is the next link's giver, and the last receiver is the first
giver. Chains move through a small state machine driven by
confirmations, completions, declines and cancellations.
"""

import uuid
from collections.abc import Sequence
from enum import Enum
from typing import Any

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint, text
from sqlalchemy.dialects.postgresql import JSONB, UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from handshake.common.exceptions import ChainStateError
from handshake.graph.cycles import cycle_key, participant_key
from handshake.graph.skill_edges import SkillEdge
from handshake.models.base import Base, BaseModel, UUIDMixin


class ChainStatus(str, Enum):
    """Lifecycle states of a match chain."""

    PROPOSED = "proposed"
    ACTIVE = "active"
    BROKEN = "broken"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


# Statuses in which a participant set is considered taken
OPEN_STATUSES = (ChainStatus.PROPOSED, ChainStatus.ACTIVE, ChainStatus.BROKEN)

TERMINAL_STATUSES = (ChainStatus.COMPLETED, ChainStatus.CANCELLED)

ALLOWED_TRANSITIONS: dict[ChainStatus, frozenset[ChainStatus]] = {
    ChainStatus.PROPOSED: frozenset({ChainStatus.ACTIVE, ChainStatus.BROKEN, ChainStatus.CANCELLED}),
    ChainStatus.ACTIVE: frozenset({ChainStatus.COMPLETED, ChainStatus.BROKEN, ChainStatus.CANCELLED}),
    ChainStatus.BROKEN: frozenset({ChainStatus.PROPOSED, ChainStatus.CANCELLED}),
    ChainStatus.COMPLETED: frozenset(),
    ChainStatus.CANCELLED: frozenset(),
}


class MatchChain(BaseModel):
    """A proposed or running skill-exchange cycle."""

    __tablename__ = "match_chains"

    status: Mapped[ChainStatus] = mapped_column(
        String(20),
        default=ChainStatus.PROPOSED,
        nullable=False,
        index=True,
    )

    length: Mapped[int] = mapped_column(
        nullable=False,
    )

    # Rotation-normalized hash of the (giver, category) sequence
    cycle_key: Mapped[str] = mapped_column(
        String(64),
        nullable=False,
        index=True,
    )

    # Sorted unique participant ids
    participant_key: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    links: Mapped[list["MatchChainLink"]] = relationship(
        "MatchChainLink",
        back_populates="chain",
        cascade="all, delete-orphan",
        order_by="MatchChainLink.position",
    )

    __table_args__ = (
        CheckConstraint("length >= 2 AND length <= 5", name="ck_match_chains_length"),
        Index(
            "uq_match_chains_open_participants",
            "participant_key",
            unique=True,
            postgresql_where=text("status IN ('proposed', 'active', 'broken')"),
        ),
    )

    @classmethod
    def from_cycle(cls, cycle: Sequence[SkillEdge]) -> "MatchChain":
        """Build a new PROPOSED chain from a discovered cycle.

        Link positions follow the cycle order.
        """
        chain = cls(
            id=uuid.uuid4(),
            status=ChainStatus.PROPOSED,
            length=len(cycle),
            cycle_key=cycle_key(cycle),
            participant_key=participant_key(edge.giver_id for edge in cycle),
        )
        chain.links = [
            MatchChainLink(
                id=uuid.uuid4(),
                chain_id=chain.id,
                position=position,
                giver_id=edge.giver_id,
                receiver_id=edge.receiver_id,
                category_id=edge.category_id,
                giver_confirmed=False,
                receiver_confirmed=False,
                giver_completed=False,
                receiver_completed=False,
                offer_terms=None,
            )
            for position, edge in enumerate(cycle)
        ]
        return chain

    @property
    def ordered_links(self) -> list["MatchChainLink"]:
        """Links sorted by position."""
        return sorted(self.links, key=lambda link: link.position)

    @property
    def participant_ids(self) -> list[uuid.UUID]:
        """Participants in cycle order (the giver of each link)."""
        return [link.giver_id for link in self.ordered_links]

    def as_cycle(self) -> list[SkillEdge]:
        """Current links as skill edges in cycle order."""
        return [
            SkillEdge(link.giver_id, link.receiver_id, link.category_id)
            for link in self.ordered_links
        ]

    def is_closed_cycle(self) -> bool:
        """Check that every receiver is the next link's giver."""
        links = self.ordered_links
        if len(links) < 2:
            return False
        return all(
            link.receiver_id == links[(index + 1) % len(links)].giver_id
            for index, link in enumerate(links)
        )

    def links_for(self, user_id: uuid.UUID) -> list["MatchChainLink"]:
        """Links where the user gives or receives."""
        return [
            link for link in self.ordered_links
            if user_id in (link.giver_id, link.receiver_id)
        ]

    def all_confirmed(self) -> bool:
        return bool(self.links) and all(link.is_confirmed for link in self.links)

    def all_completed(self) -> bool:
        return bool(self.links) and all(link.is_completed for link in self.links)

    @property
    def is_terminal(self) -> bool:
        return ChainStatus(self.status) in TERMINAL_STATUSES

    def can_transition_to(self, status: ChainStatus) -> bool:
        return status in ALLOWED_TRANSITIONS[ChainStatus(self.status)]

    def transition_to(self, status: ChainStatus) -> ChainStatus:
        """Move the chain to a new status.

        Returns:
            The previous status.

        Raises:
            ChainStateError: If the transition is not allowed.
        """
        previous = ChainStatus(self.status)
        if not self.can_transition_to(status):
            raise ChainStateError(
                f"Cannot move chain from {previous.value} to {status.value}",
                details={"chain_id": str(self.id), "from": previous.value, "to": status.value},
            )
        self.status = status
        return previous

    def refresh_keys(self) -> None:
        """Recompute dedup keys after participants changed."""
        cycle = self.as_cycle()
        self.length = len(cycle)
        self.cycle_key = cycle_key(cycle)
        self.participant_key = participant_key(edge.giver_id for edge in cycle)

    def __repr__(self) -> str:
        return f"<MatchChain {self.id} {self.status} len={self.length}>"


class MatchChainLink(Base, UUIDMixin):
    """One giver-to-receiver exchange inside a chain."""

    __tablename__ = "match_chain_links"

    chain_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("match_chains.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    position: Mapped[int] = mapped_column(
        nullable=False,
    )

    giver_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    receiver_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("skill_categories.id", ondelete="CASCADE"),
        nullable=False,
    )

    giver_confirmed: Mapped[bool] = mapped_column(default=False, nullable=False)
    receiver_confirmed: Mapped[bool] = mapped_column(default=False, nullable=False)
    giver_completed: Mapped[bool] = mapped_column(default=False, nullable=False)
    receiver_completed: Mapped[bool] = mapped_column(default=False, nullable=False)

    # Free-form terms the giver proposes (time, place, scope)
    offer_terms: Mapped[dict[str, Any] | None] = mapped_column(
        JSONB,
        nullable=True,
    )

    chain: Mapped["MatchChain"] = relationship(
        "MatchChain",
        back_populates="links",
    )

    __table_args__ = (
        UniqueConstraint("chain_id", "position", name="uq_match_chain_links_position"),
        CheckConstraint("giver_id != receiver_id", name="ck_match_chain_links_distinct"),
    )

    @property
    def is_confirmed(self) -> bool:
        return self.giver_confirmed and self.receiver_confirmed

    @property
    def is_completed(self) -> bool:
        return self.giver_completed and self.receiver_completed

    def reset_progress(self) -> None:
        """Clear confirmations, completions and offer terms."""
        self.giver_confirmed = False
        self.receiver_confirmed = False
        self.giver_completed = False
        self.receiver_completed = False
        self.offer_terms = None

    def __repr__(self) -> str:
        return f"<MatchChainLink #{self.position} {self.giver_id} -> {self.receiver_id}>"
