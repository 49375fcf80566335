"""User directory and skill declaration models.

Users are the nodes of the handshake graph. Skill and need
declarations feed the derived skill-edge graph used for clearing
chains.
"""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, ForeignKey, Index, String, Text, UniqueConstraint, func
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship

from handshake.models.base import Base, BaseModel, SoftDeleteModel, UUIDMixin


class User(SoftDeleteModel):
    """A member of the handshake network.

    Soft-deleted users stay in the table so that connections and
    chain history remain referentially intact; every traversal
    filters them out of its results.
    """

    __tablename__ = "users"

    name: Mapped[str] = mapped_column(
        String(255),
        nullable=False,
    )

    # Geography (used by the skill-edge visibility predicate)
    city: Mapped[str | None] = mapped_column(
        String(255),
        nullable=True,
    )

    country_code: Mapped[str | None] = mapped_column(
        String(2),
        nullable=True,
        index=True,
    )

    latitude: Mapped[float | None] = mapped_column(
        nullable=True,
    )

    longitude: Mapped[float | None] = mapped_column(
        nullable=True,
    )

    # Aggregated per cluster by the analytics view
    remaining_budget: Mapped[float | None] = mapped_column(
        nullable=True,
    )

    skills: Mapped[list["UserSkill"]] = relationship(
        "UserSkill",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    needs: Mapped[list["UserNeed"]] = relationship(
        "UserNeed",
        back_populates="user",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<User {self.id} {self.name}>"


class SkillCategory(BaseModel):
    """A category of help a user can offer or request."""

    __tablename__ = "skill_categories"

    key: Mapped[str] = mapped_column(
        String(100),
        nullable=False,
        unique=True,
    )

    group: Mapped[str | None] = mapped_column(
        String(50),
        nullable=True,
    )

    sort_order: Mapped[int] = mapped_column(
        default=0,
        nullable=False,
    )

    # Online categories match regardless of geography
    is_online: Mapped[bool] = mapped_column(
        default=False,
        nullable=False,
    )

    # Free-text placeholder category, never matched
    is_other: Mapped[bool] = mapped_column(
        default=False,
        nullable=False,
    )

    def __repr__(self) -> str:
        return f"<SkillCategory {self.key}>"


class UserSkill(Base, UUIDMixin):
    """A category the user can help with."""

    __tablename__ = "user_skills"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("skill_categories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    note: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    user: Mapped["User"] = relationship("User", back_populates="skills")
    category: Mapped["SkillCategory"] = relationship("SkillCategory")

    __table_args__ = (
        UniqueConstraint("user_id", "category_id", name="uq_user_skills_user_category"),
    )


class UserNeed(Base, UUIDMixin):
    """A category the user needs help with."""

    __tablename__ = "user_needs"

    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    category_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("skill_categories.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    note: Mapped[str | None] = mapped_column(
        Text,
        nullable=True,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    user: Mapped["User"] = relationship("User", back_populates="needs")
    category: Mapped["SkillCategory"] = relationship("SkillCategory")

    __table_args__ = (
        UniqueConstraint("user_id", "category_id", name="uq_user_needs_user_category"),
    )


class IgnoreEntry(Base, UUIDMixin):
    """One user ignoring another.

    Either direction removes the pair from each other's
    collection notification fan-out.
    """

    __tablename__ = "ignore_entries"

    from_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    to_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
    )

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    __table_args__ = (
        UniqueConstraint("from_user_id", "to_user_id", name="uq_ignore_entries_pair"),
        Index("ix_ignore_entries_to_user", "to_user_id"),
    )
