"""Clearing-chain discovery.

Finds skill-exchange cycles through a user and stores the new ones as
proposed match chains.
"""

from collections.abc import Iterable
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from handshake.chains.events import chain_event
from handshake.common.config import ChainSettings, get_settings
from handshake.common.logging import get_logger
from handshake.common.metrics import CHAINS_CREATED, CHAINS_SKIPPED
from handshake.graph.cycles import CycleFinder, participant_key
from handshake.graph.skill_edges import SkillEdge, SkillEdgeBuilder
from handshake.models.chain import MatchChain
from handshake.notifications.base import EventDispatcher, EventType
from handshake.repositories.chain_repository import ChainRepository
from handshake.repositories.graph_repository import GraphRepository

logger = get_logger(__name__)


def select_new_cycles(
    cycles: Iterable[list[SkillEdge]],
    taken_participant_keys: set[str],
) -> list[list[SkillEdge]]:
    """Drop cycles whose participant set is already covered.

    Covers both open chains (``taken_participant_keys``) and earlier
    cycles of the same batch. Input order is preserved.
    """
    taken = set(taken_participant_keys)
    selected = []
    for cycle in cycles:
        key = participant_key(edge.giver_id for edge in cycle)
        if key in taken:
            CHAINS_SKIPPED.labels(reason="duplicate_participants").inc()
            continue
        taken.add(key)
        selected.append(cycle)
    return selected


class ChainFinder:
    """Discovers and persists match chains for a triggering user.

    Triggered when a user saves skills or needs, or joins a network.
    Concurrent runs are not locked against each other: the participant
    set is re-checked right before each insert and a unique-index
    violation is treated as already handled.
    """

    def __init__(
        self,
        graphs: GraphRepository,
        chains: ChainRepository,
        dispatcher: EventDispatcher | None = None,
        builder: SkillEdgeBuilder | None = None,
        cycle_finder: CycleFinder | None = None,
        settings: ChainSettings | None = None,
    ) -> None:
        self._graphs = graphs
        self._chains = chains
        self._dispatcher = dispatcher
        self._settings = settings or get_settings().chains
        self._builder = builder or SkillEdgeBuilder()
        self._cycle_finder = cycle_finder or CycleFinder(settings=self._settings)

    @classmethod
    def for_session(cls, db: AsyncSession, dispatcher: EventDispatcher | None = None) -> "ChainFinder":
        return cls(GraphRepository(db), ChainRepository(db), dispatcher=dispatcher)

    async def find_and_store(self, user_id: UUID) -> list[MatchChain]:
        """Find cycles through the user and store up to the per-run cap.

        Args:
            user_id: User whose change triggered the search.

        Returns:
            Newly created chains.
        """
        graph = await self._graphs.load_connection_graph()
        if user_id not in graph or not graph.is_live(user_id):
            return []

        book = await self._graphs.load_skill_book()
        edge_graph = self._builder.build(graph, user_id, book)
        if not len(edge_graph):
            return []

        cycles = self._cycle_finder.find_cycles(edge_graph, through_user_id=user_id)
        if not cycles:
            return []

        taken = await self._chains.open_participant_keys()
        candidates = select_new_cycles(cycles, taken)

        cap = self._settings.max_new_chains
        created: list[MatchChain] = []

        for cycle in candidates:
            if len(created) >= cap:
                CHAINS_SKIPPED.labels(reason="cap").inc(len(candidates) - len(created))
                break

            chain = MatchChain.from_cycle(cycle)

            # Another run may have stored this set since the bulk check
            if await self._chains.participant_key_taken(chain.participant_key):
                CHAINS_SKIPPED.labels(reason="duplicate_participants").inc()
                continue

            stored = await self._chains.create_chain(chain)
            if stored is None:
                CHAINS_SKIPPED.labels(reason="conflict").inc()
                continue

            CHAINS_CREATED.inc()
            created.append(stored)

        if created:
            logger.info(
                "Created match chains",
                user_id=str(user_id),
                created=len(created),
                cycles_found=len(cycles),
            )
            if self._dispatcher is not None:
                for chain in created:
                    await self._dispatcher.dispatch(chain_event(EventType.CHAIN_PROPOSED, chain))

        return created
