"""Match chain schemas for event payloads and offer terms."""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from handshake.models.chain import ChainStatus


class OfferTerms(BaseModel):
    """Terms a giver proposes for their link."""

    model_config = ConfigDict(extra="forbid")

    description: str = Field(..., min_length=1, max_length=2000)
    scheduled_for: datetime | None = None
    location: str | None = Field(None, max_length=255)
    is_online: bool = False
    duration_minutes: int | None = Field(None, ge=1, le=24 * 60)


class ChainLinkSummary(BaseModel):
    """One link of a chain."""

    position: int
    giver_id: UUID
    receiver_id: UUID
    category_id: UUID
    giver_confirmed: bool
    receiver_confirmed: bool
    giver_completed: bool
    receiver_completed: bool
    offer_terms: dict | None = None

    model_config = ConfigDict(from_attributes=True)


class ChainSummary(BaseModel):
    """Chain with its links in cycle order."""

    id: UUID
    status: ChainStatus
    length: int
    participant_ids: list[UUID]
    links: list[ChainLinkSummary]

    model_config = ConfigDict(from_attributes=True)
