"""Disjoint-set forest over hashable items.

Items are mapped to dense integer slots; parent and rank live in flat
lists indexed by slot.
"""

from collections.abc import Hashable, Iterable
from typing import Generic, TypeVar

T = TypeVar("T", bound=Hashable)


class UnionFind(Generic[T]):
    """Union-find with path compression and union by rank."""

    def __init__(self, items: Iterable[T] = ()) -> None:
        self._index: dict[T, int] = {}
        self._items: list[T] = []
        self._parent: list[int] = []
        self._rank: list[int] = []

        for item in items:
            self.add(item)

    def __contains__(self, item: object) -> bool:
        return item in self._index

    def __len__(self) -> int:
        return len(self._items)

    def add(self, item: T) -> int:
        """Register an item as its own singleton set.

        Returns:
            The item's slot. Re-adding an item is a no-op.
        """
        slot = self._index.get(item)
        if slot is not None:
            return slot

        slot = len(self._items)
        self._index[item] = slot
        self._items.append(item)
        self._parent.append(slot)
        self._rank.append(0)
        return slot

    def _root(self, slot: int) -> int:
        root = slot
        while self._parent[root] != root:
            root = self._parent[root]

        # Point every node on the walked path straight at the root
        while self._parent[slot] != root:
            self._parent[slot], slot = root, self._parent[slot]

        return root

    def find(self, item: T) -> T:
        """Representative of the item's set.

        Raises:
            KeyError: If the item was never added.
        """
        return self._items[self._root(self._index[item])]

    def union(self, first: T, second: T) -> bool:
        """Merge the sets of two items, adding them if needed.

        Returns:
            True if two distinct sets were merged.
        """
        root_a = self._root(self.add(first))
        root_b = self._root(self.add(second))
        if root_a == root_b:
            return False

        if self._rank[root_a] < self._rank[root_b]:
            root_a, root_b = root_b, root_a
        self._parent[root_b] = root_a
        if self._rank[root_a] == self._rank[root_b]:
            self._rank[root_a] += 1
        return True

    def connected(self, first: T, second: T) -> bool:
        if first not in self._index or second not in self._index:
            return False
        return self._root(self._index[first]) == self._root(self._index[second])

    def groups(self) -> list[list[T]]:
        """All sets, each in insertion order, ordered by first member."""
        by_root: dict[int, list[T]] = {}
        for slot, item in enumerate(self._items):
            by_root.setdefault(self._root(slot), []).append(item)
        return list(by_root.values())
