"""Replacement search for broken chains.

When a participant declines, the chain can survive if someone else can
take their place: receive what the predecessor offers and give what
the successor needs.
"""

from collections.abc import Sequence
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from handshake.chains.events import chain_event
from handshake.common.logging import get_logger
from handshake.common.metrics import CHAIN_REPLACEMENTS, CHAIN_TRANSITIONS
from handshake.graph.connection_graph import ConnectionGraph
from handshake.graph.cycles import participant_key
from handshake.graph.skill_edges import SkillBook, SkillEdge
from handshake.graph.traversal import RecipientResolver
from handshake.models.chain import ChainStatus, MatchChain
from handshake.notifications.base import EventDispatcher, EventType
from handshake.repositories.chain_repository import ChainRepository
from handshake.repositories.graph_repository import GraphRepository

logger = get_logger(__name__)


def adjacent_edges(
    cycle: Sequence[SkillEdge],
    user_id: UUID,
) -> tuple[SkillEdge, SkillEdge] | None:
    """The (incoming, outgoing) edges of a participant, if both exist."""
    incoming = next((edge for edge in cycle if edge.receiver_id == user_id), None)
    outgoing = next((edge for edge in cycle if edge.giver_id == user_id), None)
    if incoming is None or outgoing is None:
        return None
    return incoming, outgoing


class ReplacementSearch:
    """Finds and splices in a substitute for a declined participant.

    A candidate must:
    - be live
    - need the category the predecessor offers
    - have the category the successor needs
    - not already take part in the chain
    - be in the predecessor's network

    Candidates are tried in ascending user id order; the first one
    whose resulting participant set is not already an open chain wins.
    """

    def __init__(
        self,
        graphs: GraphRepository,
        chains: ChainRepository,
        dispatcher: EventDispatcher | None = None,
        resolver: RecipientResolver | None = None,
    ) -> None:
        self._graphs = graphs
        self._chains = chains
        self._dispatcher = dispatcher
        self._resolver = resolver or RecipientResolver()

    @classmethod
    def for_session(cls, db: AsyncSession, dispatcher: EventDispatcher | None = None) -> "ReplacementSearch":
        return cls(GraphRepository(db), ChainRepository(db), dispatcher=dispatcher)

    def candidates(
        self,
        graph: ConnectionGraph,
        book: SkillBook,
        cycle: Sequence[SkillEdge],
        declined_user_id: UUID,
    ) -> list[UUID]:
        """Every valid replacement, in ascending user id order."""
        edges = adjacent_edges(cycle, declined_user_id)
        if edges is None:
            return []
        incoming, outgoing = edges

        participants = {edge.giver_id for edge in cycle} | {edge.receiver_id for edge in cycle}
        network = self._resolver.network_user_ids(graph, incoming.giver_id)

        pool = (
            book.users_with_need(incoming.category_id)
            & book.users_with_skill(outgoing.category_id)
            & network
        )
        return sorted(
            user_id for user_id in pool
            if user_id not in participants and graph.is_live(user_id)
        )

    def find_candidate(
        self,
        graph: ConnectionGraph,
        book: SkillBook,
        cycle: Sequence[SkillEdge],
        declined_user_id: UUID,
    ) -> UUID | None:
        """First valid replacement, or None."""
        candidates = self.candidates(graph, book, cycle, declined_user_id)
        return candidates[0] if candidates else None

    async def repair(self, chain_id: UUID, declined_user_id: UUID) -> MatchChain | None:
        """Replace a declined participant and re-propose the chain.

        Args:
            chain_id: Chain to repair.
            declined_user_id: Participant who declined.

        Returns:
            The repaired chain in PROPOSED status, or None when the
            chain or the participant's links are missing, or no
            replacement exists. The caller cancels the chain in the
            last case.
        """
        chain = await self._chains.get_chain(chain_id)
        if chain is None or chain.is_terminal:
            return None

        cycle = chain.as_cycle()
        if adjacent_edges(cycle, declined_user_id) is None:
            return None

        graph = await self._graphs.load_connection_graph()
        book = await self._graphs.load_skill_book()

        remaining = [user_id for user_id in chain.participant_ids if user_id != declined_user_id]
        replacement = None
        for candidate in self.candidates(graph, book, cycle, declined_user_id):
            if not await self._chains.participant_key_taken(
                participant_key(remaining + [candidate]),
                exclude_chain_id=chain.id,
            ):
                replacement = candidate
                break

        if replacement is None:
            CHAIN_REPLACEMENTS.labels(outcome="not_found").inc()
            logger.info(
                "No replacement found",
                chain_id=str(chain.id),
                declined_user_id=str(declined_user_id),
            )
            return None

        if chain.status != ChainStatus.BROKEN:
            previous = chain.transition_to(ChainStatus.BROKEN)
            CHAIN_TRANSITIONS.labels(from_status=previous.value, to_status=ChainStatus.BROKEN.value).inc()

        for link in chain.links:
            if link.receiver_id == declined_user_id:
                link.receiver_id = replacement
                link.reset_progress()
            elif link.giver_id == declined_user_id:
                link.giver_id = replacement
                link.reset_progress()

        chain.refresh_keys()
        chain.transition_to(ChainStatus.PROPOSED)
        CHAIN_TRANSITIONS.labels(from_status=ChainStatus.BROKEN.value, to_status=ChainStatus.PROPOSED.value).inc()
        await self._chains.save(chain)

        CHAIN_REPLACEMENTS.labels(outcome="replaced").inc()
        logger.info(
            "Replaced chain participant",
            chain_id=str(chain.id),
            declined_user_id=str(declined_user_id),
            replacement_user_id=str(replacement),
        )

        if self._dispatcher is not None:
            await self._dispatcher.dispatch(chain_event(
                EventType.CHAIN_REPAIRED,
                chain,
                declined_user_id=str(declined_user_id),
                replacement_user_id=str(replacement),
            ))

        return chain
