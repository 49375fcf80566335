"""Breadth-first traversal of the handshake graph.

Resolves who receives a help request, which users make up a seed's
network, and how two users are connected.
"""

from dataclasses import dataclass, field
from collections.abc import Iterable
from uuid import UUID

from handshake.common.config import GraphSettings, get_settings
from handshake.common.logging import get_logger
from handshake.common.metrics import BFS_RECIPIENTS, BFS_TRAVERSALS
from handshake.graph.connection_graph import ConnectionGraph, canonical_pair

logger = get_logger(__name__)


@dataclass
class Recipient:
    """A user reached by the traversal."""

    user_id: UUID
    depth: int
    path: list[UUID]  # seed first, user last


@dataclass
class TraversalResult:
    """Result of a recipient traversal."""

    root_user_id: UUID
    recipients: list[Recipient]
    max_depth: int
    total_recipients: int
    truncated: bool = False

    def user_ids(self) -> set[UUID]:
        return {recipient.user_id for recipient in self.recipients}


@dataclass
class SliceNode:
    """A node of a network visualisation slice."""

    user_id: UUID
    depth: int
    connection_count: int


@dataclass
class GraphSlice:
    """Nodes and edges around a user, for visualisation."""

    root_user_id: UUID
    nodes: list[SliceNode] = field(default_factory=list)
    edges: list[tuple[UUID, UUID]] = field(default_factory=list)


class RecipientResolver:
    """Performs bounded shortest-path traversals over the handshake graph.

    Supports:
    - Recipient resolution (depth/count bounded, with an exclusion set)
    - Network membership (the seed's connected component)
    - Path finding between two users
    - Graph slices for visualisation
    """

    def __init__(self, settings: GraphSettings | None = None) -> None:
        """Initialize resolver.

        Args:
            settings: Traversal bounds. Uses global settings if not provided.
        """
        self._settings = settings or get_settings().graph

    def find_recipients(
        self,
        graph: ConnectionGraph,
        seed_user_id: UUID,
        max_depth: int | None = None,
        max_recipients: int | None = None,
        exclude: Iterable[UUID] = (),
    ) -> TraversalResult:
        """Find every live user reachable from the seed.

        Layered BFS: each user is discovered once, at its minimum
        depth, through the first frontier node (in ascending id order)
        that reaches it. Excluded users are neither returned nor
        traversed. Soft-deleted users are traversed but never returned.
        When the count bound truncates a layer, users are kept in
        ascending id order.

        Args:
            graph: Handshake graph snapshot.
            seed_user_id: User the traversal starts from.
            max_depth: Maximum hop count.
            max_recipients: Maximum number of returned users.
            exclude: Users that must not be returned or traversed.

        Returns:
            Recipients ordered by depth, then user id.
        """
        depth_bound = self._settings.max_depth if max_depth is None else max_depth
        count_bound = self._settings.max_recipients if max_recipients is None else max_recipients
        excluded = set(exclude)

        BFS_TRAVERSALS.inc()

        recipients: list[Recipient] = []
        truncated = False

        if depth_bound > 0 and count_bound > 0:
            paths: dict[UUID, list[UUID]] = {seed_user_id: [seed_user_id]}
            frontier = [seed_user_id]
            depth = 0

            while frontier and depth < depth_bound and not truncated:
                depth += 1
                layer: list[UUID] = []

                for node in frontier:
                    for neighbor in graph.neighbors(node):
                        if neighbor in paths or neighbor in excluded:
                            continue
                        paths[neighbor] = paths[node] + [neighbor]
                        layer.append(neighbor)

                layer.sort()
                for user_id in layer:
                    if not graph.is_live(user_id):
                        continue
                    if len(recipients) >= count_bound:
                        truncated = True
                        break
                    recipients.append(Recipient(
                        user_id=user_id,
                        depth=depth,
                        path=paths[user_id],
                    ))

                frontier = layer

        BFS_RECIPIENTS.observe(len(recipients))
        logger.debug(
            "Recipient traversal finished",
            seed_user_id=str(seed_user_id),
            recipients=len(recipients),
            truncated=truncated,
        )

        return TraversalResult(
            root_user_id=seed_user_id,
            recipients=recipients,
            max_depth=max((r.depth for r in recipients), default=0),
            total_recipients=len(recipients),
            truncated=truncated,
        )

    def network_user_ids(self, graph: ConnectionGraph, seed_user_id: UUID) -> set[UUID]:
        """All users in the seed's connected component, seed included.

        No depth bound and no liveness filter; callers that need live
        users filter the result themselves.
        """
        visited = {seed_user_id}
        queue = [seed_user_id]
        index = 0
        while index < len(queue):
            for neighbor in graph.neighbors(queue[index]):
                if neighbor not in visited:
                    visited.add(neighbor)
                    queue.append(neighbor)
            index += 1
        return visited

    def find_path(
        self,
        graph: ConnectionGraph,
        source_user_id: UUID,
        target_user_id: UUID,
        max_depth: int | None = None,
    ) -> list[UUID] | None:
        """Find one shortest handshake path between two users.

        Args:
            graph: Handshake graph snapshot.
            source_user_id: Starting user.
            target_user_id: Ending user.
            max_depth: Maximum path length in hops.

        Returns:
            User ids from source to target, or None if unreachable.
        """
        if source_user_id == target_user_id:
            return [source_user_id]

        depth_bound = self._settings.path_max_depth if max_depth is None else max_depth
        parents: dict[UUID, UUID | None] = {source_user_id: None}
        frontier = [source_user_id]
        depth = 0

        while frontier and depth < depth_bound:
            depth += 1
            next_frontier: list[UUID] = []
            for node in frontier:
                for neighbor in graph.neighbors(node):
                    if neighbor in parents:
                        continue
                    parents[neighbor] = node
                    if neighbor == target_user_id:
                        return self._unwind(parents, target_user_id)
                    next_frontier.append(neighbor)
            frontier = next_frontier

        return None

    @staticmethod
    def _unwind(parents: dict[UUID, UUID | None], target: UUID) -> list[UUID]:
        path = []
        current: UUID | None = target
        while current is not None:
            path.append(current)
            current = parents[current]
        path.reverse()
        return path

    def graph_slice(
        self,
        graph: ConnectionGraph,
        seed_user_id: UUID,
        depth: int | None = None,
        limit: int | None = None,
    ) -> GraphSlice:
        """Nodes and edges along the BFS paths around a user.

        Edges are the hops of each recipient's path, deduplicated and
        stored in canonical order.
        """
        result = self.find_recipients(
            graph,
            seed_user_id,
            max_depth=self._settings.slice_depth if depth is None else depth,
            max_recipients=self._settings.slice_limit if limit is None else limit,
        )

        graph_slice = GraphSlice(root_user_id=seed_user_id)
        graph_slice.nodes.append(SliceNode(seed_user_id, 0, graph.degree(seed_user_id)))

        seen_edges: set[tuple[UUID, UUID]] = set()
        for recipient in result.recipients:
            graph_slice.nodes.append(SliceNode(
                user_id=recipient.user_id,
                depth=recipient.depth,
                connection_count=graph.degree(recipient.user_id),
            ))
            for first, second in zip(recipient.path, recipient.path[1:]):
                edge = canonical_pair(first, second)
                if edge not in seen_edges:
                    seen_edges.add(edge)
                    graph_slice.edges.append(edge)

        return graph_slice
