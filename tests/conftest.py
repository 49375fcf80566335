"""Pytest configuration and fixtures for handshake engine tests."""

from collections.abc import Callable, Iterable
from datetime import datetime
from uuid import UUID

import pytest

from handshake.common.config import (
    ChainSettings,
    ClusterSettings,
    GraphSettings,
    NotificationSettings,
    Settings,
)
from handshake.graph.connection_graph import ConnectionGraph
from handshake.graph.skill_edges import SkillBook, SkillCategoryInfo, SkillDeclaration
from handshake.models.chain import OPEN_STATUSES, ChainStatus, MatchChain
from handshake.models.notification import NotificationStatus
from handshake.notifications.base import DeliveryResult, EventChannel, OutboundEvent


def make_uid(n: int) -> UUID:
    """Deterministic user id; ids sort in the same order as ``n``."""
    return UUID(int=n)


class FakeGraphRepository:
    """In-memory stand-in for GraphRepository."""

    def __init__(self, graph: ConnectionGraph, book: SkillBook | None = None) -> None:
        self.graph = graph
        self.book = book or SkillBook()

    async def load_connection_graph(self) -> ConnectionGraph:
        return self.graph

    async def load_skill_book(self) -> SkillBook:
        return self.book


class FakeChainRepository:
    """In-memory stand-in for ChainRepository.

    Enforces the one-open-chain-per-participant-set rule the database
    index enforces.
    """

    def __init__(self, chains: Iterable[MatchChain] = ()) -> None:
        self.chains: dict[UUID, MatchChain] = {chain.id: chain for chain in chains}
        self.saves = 0

    def _open_keys(self, exclude_chain_id: UUID | None = None) -> set[str]:
        return {
            chain.participant_key
            for chain in self.chains.values()
            if ChainStatus(chain.status) in OPEN_STATUSES and chain.id != exclude_chain_id
        }

    async def open_participant_keys(self) -> set[str]:
        return self._open_keys()

    async def participant_key_taken(self, participant_key: str, exclude_chain_id: UUID | None = None) -> bool:
        return participant_key in self._open_keys(exclude_chain_id)

    async def create_chain(self, chain: MatchChain) -> MatchChain | None:
        if chain.participant_key in self._open_keys():
            return None
        self.chains[chain.id] = chain
        return chain

    async def get_chain(self, chain_id: UUID) -> MatchChain | None:
        return self.chains.get(chain_id)

    async def chains_for_user(
        self,
        user_id: UUID,
        statuses: tuple[ChainStatus, ...] = (ChainStatus.PROPOSED, ChainStatus.ACTIVE),
        limit: int = 20,
    ) -> list[MatchChain]:
        found = [
            chain for chain in self.chains.values()
            if chain.links_for(user_id) and ChainStatus(chain.status) in statuses
        ]
        return found[:limit]

    async def save(self, chain: MatchChain) -> MatchChain:
        self.saves += 1
        return chain


class FakeNotificationRepository:
    """In-memory stand-in for NotificationRepository."""

    def __init__(self, ignore_pairs: Iterable[tuple[UUID, UUID]] = ()) -> None:
        self.ignore_pairs = list(ignore_pairs)
        self.rows: list[dict] = []

    def _key(self, row: dict) -> tuple:
        return (row["user_id"], row["collection_id"], row["type"], row["wave"])

    async def ignored_user_ids(self, user_id: UUID) -> set[UUID]:
        ignored = set()
        for from_user_id, to_user_id in self.ignore_pairs:
            if from_user_id == user_id:
                ignored.add(to_user_id)
            elif to_user_id == user_id:
                ignored.add(from_user_id)
        return ignored

    async def notified_user_ids(self, collection_id: UUID) -> set[UUID]:
        return {row["user_id"] for row in self.rows if row["collection_id"] == collection_id}

    async def insert_many(self, rows: list[dict]) -> int:
        existing = {self._key(row) for row in self.rows}
        inserted = 0
        for row in rows:
            if self._key(row) in existing:
                continue
            existing.add(self._key(row))
            self.rows.append(dict(row))
            inserted += 1
        return inserted

    async def last_wave(self, collection_id: UUID, notification_type) -> int | None:
        waves = [
            row["wave"] for row in self.rows
            if row["collection_id"] == collection_id and row["type"] == notification_type.value
        ]
        return max(waves) if waves else None

    async def expire_due(self, now: datetime) -> int:
        expired = 0
        for row in self.rows:
            if row["status"] == NotificationStatus.UNREAD.value and row["expires_at"] < now:
                row["status"] = NotificationStatus.EXPIRED.value
                expired += 1
        return expired


class RecordingChannel(EventChannel):
    """Event channel that keeps every event it receives."""

    def __init__(self, name: str = "recording") -> None:
        self._name = name
        self.events: list[OutboundEvent] = []

    @property
    def name(self) -> str:
        return self._name

    async def deliver(self, event: OutboundEvent) -> DeliveryResult:
        self.events.append(event)
        return DeliveryResult(success=True, channel=self._name, event_id=event.event_id)


@pytest.fixture
def test_settings() -> Settings:
    """Settings with the documented defaults."""
    return Settings(
        environment="development",
        debug=True,
        graph=GraphSettings(),
        chains=ChainSettings(),
        clusters=ClusterSettings(),
        notifications=NotificationSettings(),
    )


@pytest.fixture
def line_graph() -> ConnectionGraph:
    """Users 1-2-3-4 connected in a line."""
    return ConnectionGraph([
        (make_uid(1), make_uid(2)),
        (make_uid(2), make_uid(3)),
        (make_uid(3), make_uid(4)),
    ])


@pytest.fixture
def make_book() -> Callable[..., SkillBook]:
    """Build a skill book from (user, category) pairs.

    Categories referenced without flags are registered as online.
    """

    def _make(
        skills: Iterable[tuple[UUID, UUID]] = (),
        needs: Iterable[tuple[UUID, UUID]] = (),
        categories: Iterable[SkillCategoryInfo] = (),
    ) -> SkillBook:
        skills = list(skills)
        needs = list(needs)
        known = {category.category_id: category for category in categories}
        for _, category_id in skills + needs:
            known.setdefault(category_id, SkillCategoryInfo(category_id, is_online=True))
        return SkillBook(
            [SkillDeclaration(user_id, category_id) for user_id, category_id in skills],
            [SkillDeclaration(user_id, category_id) for user_id, category_id in needs],
            known.values(),
        )

    return _make


@pytest.fixture
def recording_channel() -> RecordingChannel:
    return RecordingChannel()


@pytest.fixture
def make_graph_repository() -> Callable[..., FakeGraphRepository]:
    return FakeGraphRepository


@pytest.fixture
def make_chain_repository() -> Callable[..., FakeChainRepository]:
    return FakeChainRepository


@pytest.fixture
def make_notification_repository() -> Callable[..., FakeNotificationRepository]:
    return FakeNotificationRepository


def pytest_configure(config):
    """Register custom markers."""
    config.addinivalue_line("markers", "unit: Unit tests")
    config.addinivalue_line("markers", "integration: Integration tests")
    config.addinivalue_line("markers", "slow: Slow tests")
