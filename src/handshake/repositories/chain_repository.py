"""Match chain persistence."""

from uuid import UUID

from sqlalchemy import or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from handshake.common.logging import get_logger
from handshake.models.chain import OPEN_STATUSES, ChainStatus, MatchChain, MatchChainLink

logger = get_logger(__name__)


class ChainRepository:
    """Reads and writes match chains with their links."""

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def open_participant_keys(self) -> set[str]:
        """Participant keys of every proposed, active or broken chain."""
        result = await self.db.execute(
            select(MatchChain.participant_key).where(MatchChain.status.in_(OPEN_STATUSES))
        )
        return set(result.scalars().all())

    async def participant_key_taken(self, participant_key: str, exclude_chain_id: UUID | None = None) -> bool:
        """Whether an open chain already covers this participant set."""
        query = select(MatchChain.id).where(
            MatchChain.participant_key == participant_key,
            MatchChain.status.in_(OPEN_STATUSES),
        )
        if exclude_chain_id is not None:
            query = query.where(MatchChain.id != exclude_chain_id)

        result = await self.db.execute(query.limit(1))
        return result.scalar_one_or_none() is not None

    async def create_chain(self, chain: MatchChain) -> MatchChain | None:
        """Insert a chain with its links inside a savepoint.

        Returns:
            The chain, or None when a concurrent insert already took
            its participant set.
        """
        try:
            async with self.db.begin_nested():
                self.db.add(chain)
                await self.db.flush()
        except IntegrityError:
            logger.debug(
                "Chain already exists for participant set",
                participant_key=chain.participant_key,
            )
            return None

        return chain

    async def get_chain(self, chain_id: UUID) -> MatchChain | None:
        result = await self.db.execute(
            select(MatchChain)
            .where(MatchChain.id == chain_id)
            .options(selectinload(MatchChain.links))
        )
        return result.scalar_one_or_none()

    async def chains_for_user(
        self,
        user_id: UUID,
        statuses: tuple[ChainStatus, ...] = (ChainStatus.PROPOSED, ChainStatus.ACTIVE),
        limit: int = 20,
    ) -> list[MatchChain]:
        """Chains the user gives or receives in, newest first."""
        participating = select(MatchChainLink.chain_id).where(
            or_(MatchChainLink.giver_id == user_id, MatchChainLink.receiver_id == user_id)
        )
        result = await self.db.execute(
            select(MatchChain)
            .where(MatchChain.id.in_(participating), MatchChain.status.in_(statuses))
            .options(selectinload(MatchChain.links))
            .order_by(MatchChain.created_at.desc())
            .limit(limit)
        )
        return list(result.scalars().all())

    async def save(self, chain: MatchChain) -> MatchChain:
        """Flush pending changes to a chain and its links."""
        await self.db.flush()
        return chain
