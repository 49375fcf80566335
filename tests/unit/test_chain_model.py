"""Unit tests for the match chain model and its state machine."""

from uuid import UUID

import pytest

from handshake.common.exceptions import ChainStateError
from handshake.graph.cycles import cycle_key, participant_key
from handshake.graph.skill_edges import SkillEdge
from handshake.models.chain import ChainStatus, MatchChain

CAT_A = UUID(int=1001)
CAT_B = UUID(int=1002)
CAT_C = UUID(int=1003)


def uid(n: int) -> UUID:
    return UUID(int=n)


@pytest.fixture
def triangle() -> list[SkillEdge]:
    return [
        SkillEdge(uid(1), uid(2), CAT_A),
        SkillEdge(uid(2), uid(3), CAT_B),
        SkillEdge(uid(3), uid(1), CAT_C),
    ]


@pytest.mark.unit
class TestMatchChainFromCycle:
    """Test cases for building chains from cycles."""

    def test_links_follow_cycle_order(self, triangle):
        chain = MatchChain.from_cycle(triangle)

        assert chain.status == ChainStatus.PROPOSED
        assert chain.length == 3
        assert [link.position for link in chain.ordered_links] == [0, 1, 2]
        assert chain.participant_ids == [uid(1), uid(2), uid(3)]
        assert chain.as_cycle() == triangle
        assert chain.is_closed_cycle()

    def test_keys(self, triangle):
        chain = MatchChain.from_cycle(triangle)

        assert chain.cycle_key == cycle_key(triangle)
        assert chain.participant_key == participant_key([uid(1), uid(2), uid(3)])

    def test_links_start_unconfirmed(self, triangle):
        chain = MatchChain.from_cycle(triangle)

        assert not chain.all_confirmed()
        assert not chain.all_completed()
        assert all(link.offer_terms is None for link in chain.links)

    def test_links_for_user(self, triangle):
        chain = MatchChain.from_cycle(triangle)

        links = chain.links_for(uid(2))

        assert [(link.giver_id, link.receiver_id) for link in links] == [
            (uid(1), uid(2)),
            (uid(2), uid(3)),
        ]
        assert chain.links_for(uid(9)) == []

    def test_open_path_is_not_closed(self, triangle):
        chain = MatchChain.from_cycle(triangle)
        chain.ordered_links[2].receiver_id = uid(4)

        assert not chain.is_closed_cycle()


@pytest.mark.unit
class TestMatchChainTransitions:
    """Test cases for status transitions."""

    @pytest.mark.parametrize("path", [
        [ChainStatus.ACTIVE, ChainStatus.COMPLETED],
        [ChainStatus.BROKEN, ChainStatus.PROPOSED, ChainStatus.ACTIVE],
        [ChainStatus.ACTIVE, ChainStatus.BROKEN, ChainStatus.CANCELLED],
        [ChainStatus.CANCELLED],
    ])
    def test_allowed_paths(self, triangle, path):
        chain = MatchChain.from_cycle(triangle)

        for status in path:
            chain.transition_to(status)

        assert chain.status == path[-1]

    def test_transition_returns_previous(self, triangle):
        chain = MatchChain.from_cycle(triangle)

        assert chain.transition_to(ChainStatus.ACTIVE) == ChainStatus.PROPOSED

    @pytest.mark.parametrize("start,target", [
        ([], ChainStatus.COMPLETED),
        ([ChainStatus.BROKEN], ChainStatus.ACTIVE),
        ([ChainStatus.ACTIVE, ChainStatus.COMPLETED], ChainStatus.CANCELLED),
        ([ChainStatus.CANCELLED], ChainStatus.PROPOSED),
    ])
    def test_rejected_transitions(self, triangle, start, target):
        chain = MatchChain.from_cycle(triangle)
        for status in start:
            chain.transition_to(status)

        with pytest.raises(ChainStateError) as exc_info:
            chain.transition_to(target)

        assert exc_info.value.status_code == 422
        assert exc_info.value.details["to"] == target.value

    def test_terminal_statuses(self, triangle):
        chain = MatchChain.from_cycle(triangle)
        assert not chain.is_terminal

        chain.transition_to(ChainStatus.CANCELLED)

        assert chain.is_terminal
        assert not chain.can_transition_to(ChainStatus.PROPOSED)


@pytest.mark.unit
class TestMatchChainProgress:
    """Test cases for confirmation and completion flags."""

    def test_all_confirmed_requires_both_sides(self, triangle):
        chain = MatchChain.from_cycle(triangle)
        for link in chain.links:
            link.giver_confirmed = True

        assert not chain.all_confirmed()

        for link in chain.links:
            link.receiver_confirmed = True

        assert chain.all_confirmed()

    def test_reset_progress(self, triangle):
        chain = MatchChain.from_cycle(triangle)
        link = chain.ordered_links[0]
        link.giver_confirmed = link.receiver_confirmed = True
        link.giver_completed = True
        link.offer_terms = {"description": "Saturday morning"}

        link.reset_progress()

        assert not link.is_confirmed
        assert not link.giver_completed
        assert link.offer_terms is None

    def test_refresh_keys_after_participant_change(self, triangle):
        chain = MatchChain.from_cycle(triangle)
        old_key = chain.participant_key
        links = chain.ordered_links
        links[0].receiver_id = uid(7)
        links[1].giver_id = uid(7)

        chain.refresh_keys()

        assert chain.participant_key == participant_key([uid(1), uid(7), uid(3)])
        assert chain.participant_key != old_key
        assert chain.cycle_key == cycle_key(chain.as_cycle())
        assert chain.is_closed_cycle()
