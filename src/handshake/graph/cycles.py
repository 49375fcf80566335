"""Simple-cycle enumeration over the skill edge graph.

Cycles are lists of skill edges where each receiver is the next giver
and the last receiver is the first giver.
"""

import hashlib
from collections.abc import Iterable, Iterator, Sequence
from uuid import UUID

from handshake.common.config import ChainSettings, get_settings
from handshake.common.logging import get_logger
from handshake.common.metrics import CYCLES_FOUND
from handshake.graph.skill_edges import SkillEdge, SkillEdgeGraph

logger = get_logger(__name__)


def cycle_key(cycle: Sequence[SkillEdge]) -> str:
    """Rotation-invariant identity of a cycle.

    The cycle is rotated so the smallest giver id comes first, then its
    (giver, category) sequence is hashed with SHA-256.
    """
    if not cycle:
        raise ValueError("Cannot key an empty cycle")

    givers = [edge.giver_id for edge in cycle]
    start = givers.index(min(givers))
    rotated = list(cycle[start:]) + list(cycle[:start])
    signature = "|".join(f"{edge.giver_id}:{edge.category_id}" for edge in rotated)
    return hashlib.sha256(signature.encode("utf-8")).hexdigest()


def participant_key(user_ids: Iterable[UUID]) -> str:
    """Sorted unique participant ids joined with '|'."""
    return "|".join(str(user_id) for user_id in sorted(set(user_ids)))


class CycleFinder:
    """Enumerates simple cycles of length 2 up to a maximum.

    Length-2 cycles come from reverse-edge checks, one per unordered
    pair of users. Longer cycles come from a depth-bounded simple-path
    search that starts at the trigger user, or at every giver when no
    trigger is given. Cycles are deduplicated by rotation-invariant key.
    """

    def __init__(self, max_length: int | None = None, settings: ChainSettings | None = None) -> None:
        settings = settings or get_settings().chains
        self._max_length = max_length or settings.max_length

    @property
    def max_length(self) -> int:
        return self._max_length

    def find_cycles(
        self,
        edge_graph: SkillEdgeGraph,
        through_user_id: UUID | None = None,
    ) -> list[list[SkillEdge]]:
        """Find every cycle, optionally only those through one user.

        Args:
            edge_graph: Skill edge graph to search.
            through_user_id: Only return cycles containing this user.

        Returns:
            Cycles in discovery order: pairs first, then longer cycles.
        """
        cycles: list[list[SkillEdge]] = []
        seen_keys: set[str] = set()

        for cycle in self._pair_cycles(edge_graph, through_user_id):
            key = cycle_key(cycle)
            if key not in seen_keys:
                seen_keys.add(key)
                cycles.append(cycle)

        if self._max_length >= 3:
            starts = [through_user_id] if through_user_id is not None else edge_graph.givers()
            for start in starts:
                for cycle in self._walk(edge_graph, start):
                    key = cycle_key(cycle)
                    if key not in seen_keys:
                        seen_keys.add(key)
                        cycles.append(cycle)

        for cycle in cycles:
            CYCLES_FOUND.labels(length=str(len(cycle))).inc()

        logger.debug(
            "Cycle search finished",
            through_user_id=str(through_user_id) if through_user_id else None,
            edges=len(edge_graph),
            cycles=len(cycles),
        )
        return cycles

    def _pair_cycles(
        self,
        edge_graph: SkillEdgeGraph,
        through_user_id: UUID | None,
    ) -> Iterator[list[SkillEdge]]:
        seen_pairs: set[frozenset[UUID]] = set()
        for edge in edge_graph:
            if not edge_graph.has_edge(edge.receiver_id, edge.giver_id):
                continue

            pair = frozenset((edge.giver_id, edge.receiver_id))
            if pair in seen_pairs:
                continue
            seen_pairs.add(pair)

            if through_user_id is not None and through_user_id not in pair:
                continue

            reverse = edge_graph.edges_between(edge.receiver_id, edge.giver_id)[0]
            yield [edge, reverse]

    def _walk(self, edge_graph: SkillEdgeGraph, start: UUID) -> Iterator[list[SkillEdge]]:
        """Simple cycles of length >= 3 that start and end at ``start``."""
        path: list[SkillEdge] = []
        on_path = {start}
        stack = [iter(edge_graph.outgoing(start))]

        while stack:
            edge = next(stack[-1], None)

            if edge is None:
                stack.pop()
                if path:
                    on_path.discard(path.pop().receiver_id)
                continue

            if edge.receiver_id == start:
                if len(path) >= 2:
                    yield path + [edge]
            elif edge.receiver_id not in on_path and len(path) + 1 < self._max_length:
                path.append(edge)
                on_path.add(edge.receiver_id)
                stack.append(iter(edge_graph.outgoing(edge.receiver_id)))
