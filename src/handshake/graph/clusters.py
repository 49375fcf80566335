"""Connected-component analytics over the handshake graph.

Groups users into clusters with union-find, picks a representative per
cluster and applies the visibility rules of the analytics view.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from handshake.common.config import ClusterSettings, get_settings
from handshake.common.logging import get_logger
from handshake.common.metrics import CLUSTER_COMPUTATIONS, CLUSTER_COUNT
from handshake.graph.connection_graph import ConnectionGraph, UserNode
from handshake.graph.union_find import UnionFind

logger = get_logger(__name__)

# Sorts users without a creation time after everyone else
_NO_CREATED_AT = datetime.max.replace(tzinfo=timezone.utc)


@dataclass
class Cluster:
    """A connected component as shown in the analytics view."""

    representative_id: UUID
    member_count: int
    aggregate_value: int
    is_caller_member: bool = False


@dataclass
class ClusterMembership:
    """The caller's own component."""

    member_count: int
    aggregate_value: int
    member_ids: list[UUID] = field(default_factory=list)


def _created_at(user: UserNode) -> datetime:
    created_at = user.created_at
    if created_at is None:
        return _NO_CREATED_AT
    if created_at.tzinfo is None:
        return created_at.replace(tzinfo=timezone.utc)
    return created_at


class ClusterAnalyzer:
    """Computes clusters of the handshake graph.

    Every user that appears in a connection is a union-find node. Only
    live users are counted; a cluster whose members are all deleted is
    dropped.
    """

    def __init__(self, settings: ClusterSettings | None = None) -> None:
        self._settings = settings or get_settings().clusters

    def components(self, graph: ConnectionGraph) -> list[list[UUID]]:
        """Connected components, each in ascending user id order."""
        forest: UnionFind[UUID] = UnionFind()
        for first, second in graph.edges():
            forest.union(first, second)
        return [sorted(group) for group in forest.groups()]

    def _representative(self, graph: ConnectionGraph, members: list[UUID]) -> UUID:
        return min(
            members,
            key=lambda user_id: (
                -graph.degree(user_id),
                _created_at(graph.user(user_id)),
                user_id,
            ),
        )

    def list_clusters(
        self,
        graph: ConnectionGraph,
        caller_id: UUID | None = None,
        privileged: bool = False,
    ) -> list[Cluster]:
        """Clusters visible to the caller.

        Connected clusters are shown when they have more live members
        than the visibility threshold. Privileged callers also see each
        live unconnected user as a one-member cluster.

        Args:
            graph: Handshake graph snapshot with its user directory.
            caller_id: User asking, used to flag their own cluster.
            privileged: Whether the caller sees singleton clusters.

        Returns:
            Clusters by member count descending, then representative id.
        """
        CLUSTER_COMPUTATIONS.inc()

        threshold = self._settings.min_visible_members_exclusive
        components = self.components(graph)
        CLUSTER_COUNT.observe(len(components))

        clusters: list[Cluster] = []
        for members in components:
            live = [user_id for user_id in members if graph.is_live(user_id)]
            if not live or len(live) <= threshold:
                continue

            clusters.append(Cluster(
                representative_id=self._representative(graph, live),
                member_count=len(live),
                aggregate_value=round(sum(graph.user(user_id).budget for user_id in live)),
                is_caller_member=caller_id in members,
            ))

        if privileged:
            for user in graph.directory():
                if user.user_id in graph or not user.is_live:
                    continue
                clusters.append(Cluster(
                    representative_id=user.user_id,
                    member_count=1,
                    aggregate_value=round(user.budget),
                    is_caller_member=user.user_id == caller_id,
                ))

        clusters.sort(key=lambda cluster: (-cluster.member_count, cluster.representative_id))

        logger.debug(
            "Clusters computed",
            components=len(components),
            visible=len(clusters),
            privileged=privileged,
        )
        return clusters

    def my_cluster(self, graph: ConnectionGraph, caller_id: UUID) -> ClusterMembership:
        """The caller's component with its live members and aggregate.

        An unconnected caller counts as one member but contributes no
        members or aggregate.
        """
        if caller_id not in graph:
            return ClusterMembership(member_count=1, aggregate_value=0)

        forest: UnionFind[UUID] = UnionFind()
        for first, second in graph.edges():
            forest.union(first, second)

        root = forest.find(caller_id)
        live = [
            user_id for user_id in graph.connected_user_ids()
            if forest.find(user_id) == root and graph.is_live(user_id)
        ]
        return ClusterMembership(
            member_count=len(live),
            aggregate_value=round(sum(graph.user(user_id).budget for user_id in live)),
            member_ids=live,
        )
