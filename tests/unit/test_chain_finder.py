"""Unit tests for clearing-chain discovery."""

from unittest.mock import AsyncMock
from uuid import UUID

import pytest

from handshake.chains.finder import ChainFinder, select_new_cycles
from handshake.common.config import ChainSettings
from handshake.graph.connection_graph import ConnectionGraph, UserNode
from handshake.graph.cycles import participant_key
from handshake.graph.skill_edges import SkillEdge
from handshake.models.chain import ChainStatus, MatchChain
from handshake.notifications.base import EventDispatcher, EventType

CAT_A = UUID(int=1001)
CAT_B = UUID(int=1002)
CAT_C = UUID(int=1003)


def uid(n: int) -> UUID:
    return UUID(int=n)


@pytest.fixture
def star_setup(make_book):
    """User 1 gives A and needs B; users 2-6 need A and give B."""
    others = range(2, 7)
    graph = ConnectionGraph([(uid(1), uid(n)) for n in others])
    book = make_book(
        skills=[(uid(1), CAT_A)] + [(uid(n), CAT_B) for n in others],
        needs=[(uid(1), CAT_B)] + [(uid(n), CAT_A) for n in others],
    )
    return graph, book


@pytest.fixture
def dispatcher(recording_channel) -> EventDispatcher:
    dispatcher = EventDispatcher()
    dispatcher.register_channel(recording_channel)
    return dispatcher


@pytest.mark.unit
class TestSelectNewCycles:
    """Test cases for participant-set deduplication."""

    def test_drops_taken_and_repeated_sets(self):
        first = [SkillEdge(uid(1), uid(2), CAT_A), SkillEdge(uid(2), uid(1), CAT_B)]
        same_people = [SkillEdge(uid(1), uid(2), CAT_C), SkillEdge(uid(2), uid(1), CAT_B)]
        taken = [SkillEdge(uid(1), uid(3), CAT_A), SkillEdge(uid(3), uid(1), CAT_B)]

        selected = select_new_cycles(
            [first, same_people, taken],
            {participant_key([uid(1), uid(3)])},
        )

        assert selected == [first]


@pytest.mark.unit
class TestChainFinder:
    """Test cases for ChainFinder.find_and_store."""

    @pytest.mark.asyncio
    async def test_triangle_creates_one_chain(self, make_book, make_graph_repository, make_chain_repository, dispatcher, recording_channel):
        graph = ConnectionGraph([(uid(1), uid(2)), (uid(2), uid(3))])
        book = make_book(
            skills=[(uid(1), CAT_A), (uid(2), CAT_B), (uid(3), CAT_C)],
            needs=[(uid(2), CAT_A), (uid(3), CAT_B), (uid(1), CAT_C)],
        )
        chains = make_chain_repository()
        finder = ChainFinder(make_graph_repository(graph, book), chains, dispatcher, settings=ChainSettings())

        created = await finder.find_and_store(uid(3))

        assert len(created) == 1
        chain = created[0]
        assert chain.status == ChainStatus.PROPOSED
        assert chain.length == 3
        assert chain.is_closed_cycle()
        assert chain.id in chains.chains

        assert len(recording_channel.events) == 1
        event = recording_channel.events[0]
        assert event.event_type == EventType.CHAIN_PROPOSED
        assert event.chain_id == chain.id
        assert set(event.recipients) == {uid(1), uid(2), uid(3)}
        assert event.payload["chain"]["status"] == "proposed"

    @pytest.mark.asyncio
    async def test_cap_per_run(self, star_setup, make_graph_repository, make_chain_repository):
        """Test at most three chains are stored per run; the rest wait."""
        graph, book = star_setup
        chains = make_chain_repository()
        finder = ChainFinder(make_graph_repository(graph, book), chains, settings=ChainSettings())

        first_run = await finder.find_and_store(uid(1))
        second_run = await finder.find_and_store(uid(1))
        third_run = await finder.find_and_store(uid(1))

        assert [chain.participant_key for chain in first_run] == [
            participant_key([uid(1), uid(n)]) for n in (2, 3, 4)
        ]
        assert [chain.participant_key for chain in second_run] == [
            participant_key([uid(1), uid(n)]) for n in (5, 6)
        ]
        assert third_run == []

    @pytest.mark.asyncio
    async def test_custom_cap(self, star_setup, make_graph_repository, make_chain_repository):
        graph, book = star_setup
        finder = ChainFinder(
            make_graph_repository(graph, book),
            make_chain_repository(),
            settings=ChainSettings(max_new_chains=5),
        )

        assert len(await finder.find_and_store(uid(1))) == 5

    @pytest.mark.asyncio
    async def test_open_chain_blocks_participant_set(self, star_setup, make_graph_repository, make_chain_repository):
        """Test a set already in an open chain is skipped; a cancelled one is not."""
        graph, book = star_setup
        open_chain = MatchChain.from_cycle([
            SkillEdge(uid(1), uid(2), CAT_A),
            SkillEdge(uid(2), uid(1), CAT_B),
        ])
        open_chain.transition_to(ChainStatus.ACTIVE)
        cancelled_chain = MatchChain.from_cycle([
            SkillEdge(uid(1), uid(3), CAT_A),
            SkillEdge(uid(3), uid(1), CAT_B),
        ])
        cancelled_chain.transition_to(ChainStatus.CANCELLED)
        chains = make_chain_repository([open_chain, cancelled_chain])
        finder = ChainFinder(make_graph_repository(graph, book), chains, settings=ChainSettings())

        created = await finder.find_and_store(uid(1))

        assert [chain.participant_key for chain in created] == [
            participant_key([uid(1), uid(n)]) for n in (3, 4, 5)
        ]

    @pytest.mark.asyncio
    async def test_concurrent_insert_conflict_skipped(self, star_setup, make_graph_repository):
        """Test a unique-index conflict on insert is treated as handled."""
        graph, book = star_setup
        chains = AsyncMock()
        chains.open_participant_keys.return_value = set()
        chains.participant_key_taken.return_value = False
        chains.create_chain.return_value = None
        finder = ChainFinder(make_graph_repository(graph, book), chains, settings=ChainSettings())

        created = await finder.find_and_store(uid(1))

        assert created == []
        assert chains.create_chain.await_count == 5

    @pytest.mark.asyncio
    async def test_unknown_or_deleted_user(self, star_setup, make_graph_repository, make_chain_repository):
        graph, book = star_setup
        deleted_graph = ConnectionGraph(graph.edges(), [UserNode(uid(1), is_live=False)])

        unknown = ChainFinder(make_graph_repository(graph, book), make_chain_repository(), settings=ChainSettings())
        deleted = ChainFinder(make_graph_repository(deleted_graph, book), make_chain_repository(), settings=ChainSettings())

        assert await unknown.find_and_store(uid(99)) == []
        assert await deleted.find_and_store(uid(1)) == []

    @pytest.mark.asyncio
    async def test_no_matching_skills(self, make_book, make_graph_repository, make_chain_repository, dispatcher, recording_channel):
        graph = ConnectionGraph([(uid(1), uid(2))])
        book = make_book(skills=[(uid(1), CAT_A)], needs=[(uid(2), CAT_A)])
        finder = ChainFinder(make_graph_repository(graph, book), make_chain_repository(), dispatcher, settings=ChainSettings())

        assert await finder.find_and_store(uid(1)) == []
        assert recording_channel.events == []
