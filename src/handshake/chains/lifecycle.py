"""Participant actions on match chains.

Drives the chain state machine:

    PROPOSED -> ACTIVE      every link confirmed by giver and receiver
    ACTIVE   -> COMPLETED   every link completed by giver and receiver
    PROPOSED/ACTIVE -> BROKEN    a participant declines
    BROKEN   -> PROPOSED    a replacement was spliced in
    BROKEN   -> CANCELLED   no replacement exists
    PROPOSED/ACTIVE -> CANCELLED a participant cancels
"""

from typing import Any
from uuid import UUID

from pydantic import ValidationError as PydanticValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from handshake.chains.events import chain_event
from handshake.chains.replacement import ReplacementSearch
from handshake.common.config import ChainSettings, get_settings
from handshake.common.exceptions import ChainStateError, ValidationError
from handshake.common.logging import get_logger
from handshake.common.metrics import CHAIN_TRANSITIONS
from handshake.models.chain import ChainStatus, MatchChain
from handshake.notifications.base import EventDispatcher, EventType
from handshake.repositories.chain_repository import ChainRepository
from handshake.schemas.chain import OfferTerms

logger = get_logger(__name__)


class ChainLifecycle:
    """Applies confirmations, completions, declines and cancellations.

    Unknown chains and users who do not take part in a chain yield
    None. Actions not allowed in the chain's current status raise
    ``ChainStateError``.
    """

    def __init__(
        self,
        chains: ChainRepository,
        replacement: ReplacementSearch,
        dispatcher: EventDispatcher | None = None,
        settings: ChainSettings | None = None,
    ) -> None:
        self._chains = chains
        self._replacement = replacement
        self._dispatcher = dispatcher
        self._settings = settings or get_settings().chains

    @classmethod
    def for_session(cls, db: AsyncSession, dispatcher: EventDispatcher | None = None) -> "ChainLifecycle":
        return cls(
            ChainRepository(db),
            ReplacementSearch.for_session(db, dispatcher=dispatcher),
            dispatcher=dispatcher,
        )

    async def _load(self, chain_id: UUID, user_id: UUID) -> MatchChain | None:
        chain = await self._chains.get_chain(chain_id)
        if chain is None or not chain.links_for(user_id):
            return None
        return chain

    def _require_status(self, chain: MatchChain, *allowed: ChainStatus) -> None:
        current = ChainStatus(chain.status)
        if current not in allowed:
            raise ChainStateError(
                f"Action not allowed while chain is {current.value}",
                details={"chain_id": str(chain.id), "status": current.value},
            )

    def _transition(self, chain: MatchChain, status: ChainStatus) -> None:
        previous = chain.transition_to(status)
        CHAIN_TRANSITIONS.labels(from_status=previous.value, to_status=status.value).inc()
        logger.info(
            "Chain status changed",
            chain_id=str(chain.id),
            from_status=previous.value,
            to_status=status.value,
        )

    async def _emit(self, event_type: EventType, chain: MatchChain, **extra: Any) -> None:
        if self._dispatcher is not None:
            await self._dispatcher.dispatch(chain_event(event_type, chain, **extra))

    async def confirm(self, chain_id: UUID, user_id: UUID) -> MatchChain | None:
        """Confirm the user's side of each of their links.

        The chain becomes ACTIVE once every link is confirmed on both
        sides.
        """
        chain = await self._load(chain_id, user_id)
        if chain is None:
            return None
        self._require_status(chain, ChainStatus.PROPOSED)

        for link in chain.links_for(user_id):
            if link.giver_id == user_id:
                link.giver_confirmed = True
            if link.receiver_id == user_id:
                link.receiver_confirmed = True

        activated = chain.all_confirmed()
        if activated:
            self._transition(chain, ChainStatus.ACTIVE)
        await self._chains.save(chain)

        if activated:
            await self._emit(EventType.CHAIN_ACTIVATED, chain)
        return chain

    async def complete(self, chain_id: UUID, user_id: UUID) -> MatchChain | None:
        """Mark the user's side of each of their links as done.

        The chain becomes COMPLETED once every link is completed on
        both sides.
        """
        chain = await self._load(chain_id, user_id)
        if chain is None:
            return None
        self._require_status(chain, ChainStatus.ACTIVE)

        for link in chain.links_for(user_id):
            if link.giver_id == user_id:
                link.giver_completed = True
            if link.receiver_id == user_id:
                link.receiver_completed = True

        completed = chain.all_completed()
        if completed:
            self._transition(chain, ChainStatus.COMPLETED)
        await self._chains.save(chain)

        if completed:
            await self._emit(EventType.CHAIN_COMPLETED, chain)
        return chain

    async def decline(self, chain_id: UUID, user_id: UUID) -> MatchChain | None:
        """Withdraw from a chain and try to repair it.

        The chain breaks, then either gets a replacement participant
        and returns to PROPOSED, or is cancelled.
        """
        chain = await self._load(chain_id, user_id)
        if chain is None:
            return None

        self._transition(chain, ChainStatus.BROKEN)
        await self._chains.save(chain)

        repaired = await self._replacement.repair(chain.id, user_id)
        if repaired is not None:
            return repaired

        self._transition(chain, ChainStatus.CANCELLED)
        await self._chains.save(chain)
        await self._emit(
            EventType.CHAIN_CANCELLED,
            chain,
            reason="no_replacement",
            declined_user_id=str(user_id),
        )
        return chain

    async def cancel(self, chain_id: UUID, user_id: UUID) -> MatchChain | None:
        """Cancel a chain on behalf of one of its participants."""
        chain = await self._load(chain_id, user_id)
        if chain is None:
            return None

        self._transition(chain, ChainStatus.CANCELLED)
        await self._chains.save(chain)
        await self._emit(
            EventType.CHAIN_CANCELLED,
            chain,
            reason="cancelled_by_participant",
            cancelled_by=str(user_id),
        )
        return chain

    async def set_offer_terms(
        self,
        chain_id: UUID,
        user_id: UUID,
        terms: dict[str, Any],
    ) -> MatchChain | None:
        """Attach the giver's terms to the link they give on.

        Raises:
            ValidationError: If the terms are malformed.
            ChainStateError: If the chain is completed or cancelled.
        """
        chain = await self._chains.get_chain(chain_id)
        if chain is None:
            return None

        link = next((link for link in chain.ordered_links if link.giver_id == user_id), None)
        if link is None:
            return None

        if chain.is_terminal:
            raise ChainStateError(
                "Offer terms cannot change on a closed chain",
                details={"chain_id": str(chain.id), "status": ChainStatus(chain.status).value},
            )

        try:
            offer = OfferTerms.model_validate(terms)
        except PydanticValidationError as e:
            raise ValidationError(
                "Invalid offer terms",
                details={"errors": e.errors(include_url=False, include_context=False)},
                cause=e,
            ) from e

        link.offer_terms = offer.model_dump(mode="json", exclude_none=True)
        await self._chains.save(chain)
        return chain

    async def chains_for_user(self, user_id: UUID, limit: int | None = None) -> list[MatchChain]:
        """The user's proposed and active chains, newest first."""
        limit = self._settings.list_limit if limit is None else limit
        return await self._chains.chains_for_user(user_id, limit=limit)
