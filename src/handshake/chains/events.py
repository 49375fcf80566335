"""Outbound events about match chains."""

from typing import Any

from handshake.models.chain import MatchChain
from handshake.notifications.base import EventType, OutboundEvent
from handshake.schemas.chain import ChainLinkSummary, ChainSummary


def chain_summary(chain: MatchChain) -> ChainSummary:
    return ChainSummary(
        id=chain.id,
        status=chain.status,
        length=chain.length,
        participant_ids=chain.participant_ids,
        links=[ChainLinkSummary.model_validate(link) for link in chain.ordered_links],
    )


def chain_event(event_type: EventType, chain: MatchChain, **extra: Any) -> OutboundEvent:
    """Event addressed to every participant of the chain.

    Args:
        event_type: Kind of event.
        chain: Chain the event is about.
        **extra: Additional payload fields.
    """
    payload = {"chain": chain_summary(chain).model_dump(mode="json")}
    payload.update(extra)
    return OutboundEvent(
        event_type=event_type,
        recipients=chain.participant_ids,
        payload=payload,
        chain_id=chain.id,
    )
