"""Graph algorithms - recipient resolution, skill edges, cycles, clusters.

All algorithms run in memory over a snapshot loaded by the
repositories; none of them touch the database.
"""

from handshake.graph.clusters import Cluster, ClusterAnalyzer, ClusterMembership
from handshake.graph.connection_graph import ConnectionGraph, UserNode, canonical_pair
from handshake.graph.cycles import CycleFinder, cycle_key, participant_key
from handshake.graph.skill_edges import (
    SkillBook,
    SkillCategoryInfo,
    SkillDeclaration,
    SkillEdge,
    SkillEdgeBuilder,
    SkillEdgeGraph,
)
from handshake.graph.traversal import (
    GraphSlice,
    Recipient,
    RecipientResolver,
    SliceNode,
    TraversalResult,
)
from handshake.graph.union_find import UnionFind

__all__ = [
    # Connection graph
    "ConnectionGraph",
    "UserNode",
    "canonical_pair",
    # Traversal
    "RecipientResolver",
    "Recipient",
    "TraversalResult",
    "GraphSlice",
    "SliceNode",
    # Skill edges
    "SkillBook",
    "SkillCategoryInfo",
    "SkillDeclaration",
    "SkillEdge",
    "SkillEdgeBuilder",
    "SkillEdgeGraph",
    # Cycles
    "CycleFinder",
    "cycle_key",
    "participant_key",
    # Clusters
    "UnionFind",
    "Cluster",
    "ClusterAnalyzer",
    "ClusterMembership",
]
