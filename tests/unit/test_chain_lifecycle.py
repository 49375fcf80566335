"""Unit tests for participant actions on match chains."""

from uuid import UUID

import pytest

from handshake.chains.lifecycle import ChainLifecycle
from handshake.chains.replacement import ReplacementSearch
from handshake.common.config import ChainSettings
from handshake.common.exceptions import ChainStateError, ValidationError
from handshake.graph.connection_graph import ConnectionGraph
from handshake.graph.skill_edges import SkillEdge
from handshake.models.chain import ChainStatus, MatchChain
from handshake.notifications.base import EventDispatcher, EventType

CAT_A = UUID(int=1001)
CAT_B = UUID(int=1002)
CAT_C = UUID(int=1003)


def uid(n: int) -> UUID:
    return UUID(int=n)


TRIANGLE = [
    SkillEdge(uid(1), uid(2), CAT_A),
    SkillEdge(uid(2), uid(3), CAT_B),
    SkillEdge(uid(3), uid(1), CAT_C),
]


@pytest.fixture
def book(make_book):
    return make_book(
        skills=[(uid(1), CAT_A), (uid(2), CAT_B), (uid(3), CAT_C)],
        needs=[(uid(2), CAT_A), (uid(3), CAT_B), (uid(1), CAT_C)],
    )


@pytest.fixture
def chain() -> MatchChain:
    return MatchChain.from_cycle(TRIANGLE)


@pytest.fixture
def setup(chain, book, make_graph_repository, make_chain_repository, recording_channel):
    """Lifecycle over a single triangle chain.

    Returns a function taking an optional graph and skill book so
    tests can add replacement candidates.
    """

    def _build(graph: ConnectionGraph | None = None, skill_book=None):
        graph = graph or ConnectionGraph([(uid(1), uid(2)), (uid(2), uid(3))])
        chains = make_chain_repository([chain])
        graphs = make_graph_repository(graph, skill_book or book)
        dispatcher = EventDispatcher()
        dispatcher.register_channel(recording_channel)
        lifecycle = ChainLifecycle(
            chains,
            ReplacementSearch(graphs, chains, dispatcher),
            dispatcher,
            settings=ChainSettings(),
        )
        return lifecycle, chains

    return _build


@pytest.mark.unit
class TestConfirmAndComplete:
    """Test cases for confirmation and completion."""

    @pytest.mark.asyncio
    async def test_all_confirmations_activate(self, setup, chain, recording_channel):
        lifecycle, _ = setup()

        await lifecycle.confirm(chain.id, uid(1))
        await lifecycle.confirm(chain.id, uid(2))
        assert chain.status == ChainStatus.PROPOSED
        assert recording_channel.events == []

        await lifecycle.confirm(chain.id, uid(3))

        assert chain.status == ChainStatus.ACTIVE
        assert [event.event_type for event in recording_channel.events] == [EventType.CHAIN_ACTIVATED]

    @pytest.mark.asyncio
    async def test_confirm_marks_both_roles(self, setup, chain):
        """Test confirming sets the giver and receiver flags of the user's links."""
        lifecycle, _ = setup()

        await lifecycle.confirm(chain.id, uid(2))

        first, second, third = chain.ordered_links
        assert first.receiver_confirmed and not first.giver_confirmed
        assert second.giver_confirmed and not second.receiver_confirmed
        assert not third.giver_confirmed and not third.receiver_confirmed

    @pytest.mark.asyncio
    async def test_all_completions_complete(self, setup, chain, recording_channel):
        lifecycle, _ = setup()
        for n in (1, 2, 3):
            await lifecycle.confirm(chain.id, uid(n))

        for n in (1, 2, 3):
            await lifecycle.complete(chain.id, uid(n))

        assert chain.status == ChainStatus.COMPLETED
        assert recording_channel.events[-1].event_type == EventType.CHAIN_COMPLETED

    @pytest.mark.asyncio
    async def test_complete_requires_active(self, setup, chain):
        lifecycle, _ = setup()

        with pytest.raises(ChainStateError):
            await lifecycle.complete(chain.id, uid(1))

    @pytest.mark.asyncio
    async def test_confirm_requires_proposed(self, setup, chain):
        lifecycle, _ = setup()
        chain.transition_to(ChainStatus.CANCELLED)

        with pytest.raises(ChainStateError):
            await lifecycle.confirm(chain.id, uid(1))

    @pytest.mark.asyncio
    async def test_non_participant_and_unknown_chain(self, setup, chain):
        lifecycle, chains = setup()

        assert await lifecycle.confirm(chain.id, uid(9)) is None
        assert await lifecycle.confirm(uid(500), uid(1)) is None
        assert await lifecycle.cancel(chain.id, uid(9)) is None
        assert chains.saves == 0


@pytest.mark.unit
class TestDeclineAndCancel:
    """Test cases for decline and cancel."""

    @pytest.mark.asyncio
    async def test_decline_with_replacement(self, setup, chain, make_book, recording_channel):
        graph = ConnectionGraph([(uid(1), uid(2)), (uid(2), uid(3)), (uid(1), uid(4))])
        skill_book = make_book(
            skills=[(uid(1), CAT_A), (uid(2), CAT_B), (uid(3), CAT_C), (uid(4), CAT_B)],
            needs=[(uid(2), CAT_A), (uid(3), CAT_B), (uid(1), CAT_C), (uid(4), CAT_A)],
        )
        lifecycle, _ = setup(graph, skill_book)

        result = await lifecycle.decline(chain.id, uid(2))

        assert result.status == ChainStatus.PROPOSED
        assert result.participant_ids == [uid(1), uid(4), uid(3)]
        assert [event.event_type for event in recording_channel.events] == [EventType.CHAIN_REPAIRED]

    @pytest.mark.asyncio
    async def test_decline_without_replacement_cancels(self, setup, chain, recording_channel):
        lifecycle, _ = setup()

        result = await lifecycle.decline(chain.id, uid(2))

        assert result.status == ChainStatus.CANCELLED
        event = recording_channel.events[0]
        assert event.event_type == EventType.CHAIN_CANCELLED
        assert event.payload["reason"] == "no_replacement"
        assert set(event.recipients) == {uid(1), uid(2), uid(3)}

    @pytest.mark.asyncio
    async def test_decline_active_chain(self, setup, chain):
        lifecycle, _ = setup()
        chain.transition_to(ChainStatus.ACTIVE)

        result = await lifecycle.decline(chain.id, uid(3))

        assert result.status == ChainStatus.CANCELLED

    @pytest.mark.asyncio
    async def test_cancel(self, setup, chain, recording_channel):
        lifecycle, _ = setup()

        result = await lifecycle.cancel(chain.id, uid(1))

        assert result.status == ChainStatus.CANCELLED
        assert recording_channel.events[0].payload["reason"] == "cancelled_by_participant"
        assert recording_channel.events[0].payload["cancelled_by"] == str(uid(1))

        with pytest.raises(ChainStateError):
            await lifecycle.cancel(chain.id, uid(1))


@pytest.mark.unit
class TestOfferTerms:
    """Test cases for giver offer terms."""

    @pytest.mark.asyncio
    async def test_giver_sets_terms(self, setup, chain):
        lifecycle, chains = setup()

        await lifecycle.set_offer_terms(
            chain.id,
            uid(2),
            {"description": "Two hours of bike repair", "duration_minutes": 120},
        )

        assert chain.ordered_links[1].offer_terms == {
            "description": "Two hours of bike repair",
            "is_online": False,
            "duration_minutes": 120,
        }
        assert chains.saves == 1

    @pytest.mark.asyncio
    @pytest.mark.parametrize("terms", [
        {"description": ""},
        {"description": "ok", "duration_minutes": 0},
        {"description": "ok", "price": 10},
        {},
    ])
    async def test_invalid_terms(self, setup, chain, terms):
        lifecycle, _ = setup()

        with pytest.raises(ValidationError) as exc_info:
            await lifecycle.set_offer_terms(chain.id, uid(1), terms)

        assert exc_info.value.status_code == 400
        assert exc_info.value.details["errors"]

    @pytest.mark.asyncio
    async def test_non_giver(self, setup, chain):
        lifecycle, _ = setup()

        assert await lifecycle.set_offer_terms(chain.id, uid(9), {"description": "x"}) is None

    @pytest.mark.asyncio
    async def test_closed_chain(self, setup, chain):
        lifecycle, _ = setup()
        chain.transition_to(ChainStatus.CANCELLED)

        with pytest.raises(ChainStateError):
            await lifecycle.set_offer_terms(chain.id, uid(1), {"description": "x"})


@pytest.mark.unit
class TestChainsForUser:
    """Test cases for listing a user's chains."""

    @pytest.mark.asyncio
    async def test_lists_open_chains(self, setup, chain):
        lifecycle, _ = setup()

        assert await lifecycle.chains_for_user(uid(1)) == [chain]
        assert await lifecycle.chains_for_user(uid(9)) == []

        chain.transition_to(ChainStatus.CANCELLED)

        assert await lifecycle.chains_for_user(uid(1)) == []

    @pytest.mark.asyncio
    async def test_zero_limit_lists_nothing(self, setup, chain):
        lifecycle, _ = setup()

        assert await lifecycle.chains_for_user(uid(1), limit=0) == []
