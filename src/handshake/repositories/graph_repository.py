"""Graph snapshot loading.

Reads connections, the user directory and skill declarations into the
in-memory structures the graph algorithms work on.
"""

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from handshake.common.logging import get_logger
from handshake.graph.connection_graph import ConnectionGraph, UserNode
from handshake.graph.skill_edges import SkillBook, SkillCategoryInfo, SkillDeclaration
from handshake.models.connection import Connection
from handshake.models.user import SkillCategory, User, UserNeed, UserSkill

logger = get_logger(__name__)


class GraphRepository:
    """Loads graph snapshots from the database.

    Each call issues fresh queries; nothing is cached between calls.
    """

    def __init__(self, db: AsyncSession) -> None:
        self.db = db

    async def load_connection_graph(self) -> ConnectionGraph:
        """Load every connection and the full user directory."""
        result = await self.db.execute(
            select(Connection.user_a_id, Connection.user_b_id)
        )
        connections = [(row.user_a_id, row.user_b_id) for row in result]

        result = await self.db.execute(
            select(
                User.id,
                User.deleted_at,
                User.city,
                User.country_code,
                User.latitude,
                User.longitude,
                User.created_at,
                User.remaining_budget,
            )
        )
        users = [
            UserNode(
                user_id=row.id,
                is_live=row.deleted_at is None,
                city=row.city,
                country_code=row.country_code,
                latitude=row.latitude,
                longitude=row.longitude,
                created_at=row.created_at,
                budget=row.remaining_budget or 0.0,
            )
            for row in result
        ]

        logger.debug(
            "Loaded connection graph",
            connections=len(connections),
            users=len(users),
        )
        return ConnectionGraph(connections, users)

    async def load_skill_book(self) -> SkillBook:
        """Load every skill and need declaration with category flags."""
        result = await self.db.execute(select(UserSkill.user_id, UserSkill.category_id))
        skills = [SkillDeclaration(row.user_id, row.category_id) for row in result]

        result = await self.db.execute(select(UserNeed.user_id, UserNeed.category_id))
        needs = [SkillDeclaration(row.user_id, row.category_id) for row in result]

        result = await self.db.execute(
            select(SkillCategory.id, SkillCategory.is_online, SkillCategory.is_other)
        )
        categories = [
            SkillCategoryInfo(row.id, is_online=row.is_online, is_other=row.is_other)
            for row in result
        ]

        return SkillBook(skills, needs, categories)
