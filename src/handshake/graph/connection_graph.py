"""In-memory view of the handshake graph.

The graph is loaded once per operation from the connection store and
queried synchronously by every traversal. It is read-only: invite
acceptance and account deletion change the store, never this view.
"""

from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from handshake.common.exceptions import SelfConnectionError


def canonical_pair(first: UUID, second: UUID) -> tuple[UUID, UUID]:
    """Order a connection pair with the smaller id first.

    Raises:
        SelfConnectionError: If both ids are equal.
    """
    if first == second:
        raise SelfConnectionError(details={"user_id": str(first)})
    return (first, second) if first < second else (second, first)


@dataclass(frozen=True)
class UserNode:
    """User directory entry as seen by the graph algorithms."""

    user_id: UUID
    is_live: bool = True
    city: str | None = None
    country_code: str | None = None
    latitude: float | None = None
    longitude: float | None = None
    created_at: datetime | None = None
    budget: float = 0.0

    def shares_location(self, other: "UserNode") -> bool:
        """Same city (case-insensitive) and same country."""
        if not (self.city and other.city and self.country_code and other.country_code):
            return False
        return (
            self.city.strip().lower() == other.city.strip().lower()
            and self.country_code.upper() == other.country_code.upper()
        )


class ConnectionGraph:
    """Undirected handshake graph with a user directory.

    Users missing from the directory are treated as live with no
    geography, so callers only need to list the users they know about.
    Self loops and repeated pairs in the input are ignored.
    """

    def __init__(
        self,
        connections: Iterable[tuple[UUID, UUID]],
        users: Iterable[UserNode] = (),
    ) -> None:
        self._adjacency: dict[UUID, set[UUID]] = {}
        self._users: dict[UUID, UserNode] = {user.user_id: user for user in users}
        self._edge_count = 0

        for first, second in connections:
            if first == second:
                continue
            neighbors = self._adjacency.setdefault(first, set())
            if second in neighbors:
                continue
            neighbors.add(second)
            self._adjacency.setdefault(second, set()).add(first)
            self._edge_count += 1

        self._sorted_cache: dict[UUID, list[UUID]] = {}

    def __contains__(self, user_id: object) -> bool:
        return user_id in self._adjacency

    def __len__(self) -> int:
        return len(self._adjacency)

    @property
    def edge_count(self) -> int:
        return self._edge_count

    def neighbors(self, user_id: UUID) -> list[UUID]:
        """Neighbours in ascending id order."""
        cached = self._sorted_cache.get(user_id)
        if cached is None:
            cached = sorted(self._adjacency.get(user_id, ()))
            self._sorted_cache[user_id] = cached
        return cached

    def degree(self, user_id: UUID) -> int:
        return len(self._adjacency.get(user_id, ()))

    def has_edge(self, first: UUID, second: UUID) -> bool:
        return second in self._adjacency.get(first, ())

    def connected_user_ids(self) -> list[UUID]:
        """Users with at least one connection, in ascending id order."""
        return sorted(self._adjacency)

    def edges(self) -> Iterator[tuple[UUID, UUID]]:
        """Each connection once, in canonical order."""
        for user_id in sorted(self._adjacency):
            for neighbor in self.neighbors(user_id):
                if user_id < neighbor:
                    yield user_id, neighbor

    def user(self, user_id: UUID) -> UserNode:
        """Directory entry, or a live placeholder for unknown users."""
        return self._users.get(user_id) or UserNode(user_id=user_id)

    def is_live(self, user_id: UUID) -> bool:
        return self.user(user_id).is_live

    def directory(self) -> list[UserNode]:
        """All known users, connected or not, in ascending id order."""
        return [self._users[user_id] for user_id in sorted(self._users)]
