"""Directed skill-exchange graph.

A skill edge A -> B in category C means A has a skill in C that B
needs. Edges are derived per call from skill and need declarations;
they are never stored.
"""

from collections.abc import Iterable
from dataclasses import dataclass
from uuid import UUID

from handshake.common.logging import get_logger
from handshake.graph.connection_graph import ConnectionGraph
from handshake.graph.traversal import RecipientResolver

logger = get_logger(__name__)


@dataclass(frozen=True, order=True)
class SkillEdge:
    """Giver offers a category the receiver needs."""

    giver_id: UUID
    receiver_id: UUID
    category_id: UUID


@dataclass(frozen=True)
class SkillCategoryInfo:
    """Category flags relevant to edge construction."""

    category_id: UUID
    is_online: bool = False
    is_other: bool = False


@dataclass(frozen=True)
class SkillDeclaration:
    """A user's declared skill or need."""

    user_id: UUID
    category_id: UUID


class SkillBook:
    """Skill and need declarations indexed by user and by category."""

    def __init__(
        self,
        skills: Iterable[SkillDeclaration] = (),
        needs: Iterable[SkillDeclaration] = (),
        categories: Iterable[SkillCategoryInfo] = (),
    ) -> None:
        self._skills_by_user: dict[UUID, set[UUID]] = {}
        self._needs_by_user: dict[UUID, set[UUID]] = {}
        self._skilled_by_category: dict[UUID, set[UUID]] = {}
        self._needy_by_category: dict[UUID, set[UUID]] = {}
        self._categories = {category.category_id: category for category in categories}

        for declaration in skills:
            self._skills_by_user.setdefault(declaration.user_id, set()).add(declaration.category_id)
            self._skilled_by_category.setdefault(declaration.category_id, set()).add(declaration.user_id)

        for declaration in needs:
            self._needs_by_user.setdefault(declaration.user_id, set()).add(declaration.category_id)
            self._needy_by_category.setdefault(declaration.category_id, set()).add(declaration.user_id)

    def category(self, category_id: UUID) -> SkillCategoryInfo:
        """Category flags; unknown categories are local and not placeholders."""
        return self._categories.get(category_id) or SkillCategoryInfo(category_id)

    def skills_of(self, user_id: UUID) -> set[UUID]:
        return self._skills_by_user.get(user_id, set())

    def needs_of(self, user_id: UUID) -> set[UUID]:
        return self._needs_by_user.get(user_id, set())

    def has_skill(self, user_id: UUID, category_id: UUID) -> bool:
        return category_id in self.skills_of(user_id)

    def has_need(self, user_id: UUID, category_id: UUID) -> bool:
        return category_id in self.needs_of(user_id)

    def users_with_skill(self, category_id: UUID) -> set[UUID]:
        return self._skilled_by_category.get(category_id, set())

    def users_with_need(self, category_id: UUID) -> set[UUID]:
        return self._needy_by_category.get(category_id, set())


class SkillEdgeGraph:
    """Adjacency view over a set of skill edges.

    Outgoing edges are kept sorted by (receiver, category) so every
    walk over the graph is deterministic.
    """

    def __init__(self, edges: Iterable[SkillEdge]) -> None:
        self._edges = sorted(set(edges))
        self._outgoing: dict[UUID, list[SkillEdge]] = {}
        self._pairs: dict[tuple[UUID, UUID], list[SkillEdge]] = {}

        for edge in self._edges:
            self._outgoing.setdefault(edge.giver_id, []).append(edge)
            self._pairs.setdefault((edge.giver_id, edge.receiver_id), []).append(edge)

    def __len__(self) -> int:
        return len(self._edges)

    def __iter__(self):
        return iter(self._edges)

    def givers(self) -> list[UUID]:
        """Users with at least one outgoing edge, ascending."""
        return sorted(self._outgoing)

    def outgoing(self, user_id: UUID) -> list[SkillEdge]:
        return self._outgoing.get(user_id, [])

    def edges_between(self, giver_id: UUID, receiver_id: UUID) -> list[SkillEdge]:
        return self._pairs.get((giver_id, receiver_id), [])

    def has_edge(self, giver_id: UUID, receiver_id: UUID) -> bool:
        return (giver_id, receiver_id) in self._pairs


class SkillEdgeBuilder:
    """Derives the skill edge graph of a user's network.

    An edge giver -> receiver in a category exists when:
    - both users are live members of the seed's connected component
    - they are different users
    - the category is not a placeholder ("other") category
    - the category is online, or both users share city and country
    """

    def __init__(self, resolver: RecipientResolver | None = None) -> None:
        self._resolver = resolver or RecipientResolver()

    def build(
        self,
        graph: ConnectionGraph,
        seed_user_id: UUID,
        book: SkillBook,
    ) -> SkillEdgeGraph:
        """Build the skill edge graph restricted to the seed's network.

        Args:
            graph: Handshake graph snapshot.
            seed_user_id: User whose network bounds the edge set.
            book: Skill and need declarations.

        Returns:
            Skill edge graph of the network.
        """
        network = {
            user_id
            for user_id in self._resolver.network_user_ids(graph, seed_user_id)
            if graph.is_live(user_id)
        }

        edges: list[SkillEdge] = []
        for giver_id in sorted(network):
            giver = graph.user(giver_id)
            for category_id in sorted(book.skills_of(giver_id)):
                category = book.category(category_id)
                if category.is_other:
                    continue

                for receiver_id in sorted(book.users_with_need(category_id) & network):
                    if receiver_id == giver_id:
                        continue
                    if category.is_online or giver.shares_location(graph.user(receiver_id)):
                        edges.append(SkillEdge(giver_id, receiver_id, category_id))

        logger.debug(
            "Skill edge graph built",
            seed_user_id=str(seed_user_id),
            network_size=len(network),
            edges=len(edges),
        )
        return SkillEdgeGraph(edges)
