"""Initial schema - users, connections, skills, match chains, notifications

Revision ID: 001
Revises:
Create Date: 2026-10-18 00:00:00.000000

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    # Users table
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("name", sa.String(255), nullable=False),
        sa.Column("city", sa.String(255), nullable=True),
        sa.Column("country_code", sa.String(2), nullable=True),
        sa.Column("latitude", sa.Float(), nullable=True),
        sa.Column("longitude", sa.Float(), nullable=True),
        sa.Column("remaining_budget", sa.Float(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_index("ix_users_id", "users", ["id"])
    op.create_index("ix_users_country_code", "users", ["country_code"])
    op.create_index("ix_users_created_at", "users", ["created_at"])
    op.create_index("ix_users_deleted_at", "users", ["deleted_at"])

    # Skill categories table
    op.create_table(
        "skill_categories",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("key", sa.String(100), nullable=False),
        sa.Column("group", sa.String(50), nullable=True),
        sa.Column("sort_order", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_online", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("is_other", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("key"),
    )

    op.create_index("ix_skill_categories_id", "skill_categories", ["id"])
    op.create_index("ix_skill_categories_created_at", "skill_categories", ["created_at"])

    # Skill and need declarations
    for table in ("user_skills", "user_needs"):
        op.create_table(
            table,
            sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("category_id", postgresql.UUID(as_uuid=True), nullable=False),
            sa.Column("note", sa.Text(), nullable=True),
            sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
            sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
            sa.ForeignKeyConstraint(["category_id"], ["skill_categories.id"], ondelete="CASCADE"),
            sa.PrimaryKeyConstraint("id"),
            sa.UniqueConstraint("user_id", "category_id", name=f"uq_{table}_user_category"),
        )

        op.create_index(f"ix_{table}_id", table, ["id"])
        op.create_index(f"ix_{table}_user_id", table, ["user_id"])
        op.create_index(f"ix_{table}_category_id", table, ["category_id"])

    # Connections table
    op.create_table(
        "connections",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_a_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_b_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_a_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_b_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("user_a_id", "user_b_id", name="uq_connections_pair"),
        sa.CheckConstraint("user_a_id < user_b_id", name="ck_connections_canonical_order"),
    )

    op.create_index("ix_connections_id", "connections", ["id"])
    op.create_index("ix_connections_user_a", "connections", ["user_a_id"])
    op.create_index("ix_connections_user_b_id", "connections", ["user_b_id"])

    # Ignore entries table
    op.create_table(
        "ignore_entries",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("from_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("to_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["from_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["to_user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("from_user_id", "to_user_id", name="uq_ignore_entries_pair"),
    )

    op.create_index("ix_ignore_entries_id", "ignore_entries", ["id"])
    op.create_index("ix_ignore_entries_to_user", "ignore_entries", ["to_user_id"])

    # Match chains table
    op.create_table(
        "match_chains",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="proposed"),
        sa.Column("length", sa.Integer(), nullable=False),
        sa.Column("cycle_key", sa.String(64), nullable=False),
        sa.Column("participant_key", sa.String(255), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.PrimaryKeyConstraint("id"),
        sa.CheckConstraint("length >= 2 AND length <= 5", name="ck_match_chains_length"),
    )

    op.create_index("ix_match_chains_id", "match_chains", ["id"])
    op.create_index("ix_match_chains_status", "match_chains", ["status"])
    op.create_index("ix_match_chains_cycle_key", "match_chains", ["cycle_key"])
    op.create_index("ix_match_chains_created_at", "match_chains", ["created_at"])

    # One open chain per participant set
    op.create_index(
        "uq_match_chains_open_participants",
        "match_chains",
        ["participant_key"],
        unique=True,
        postgresql_where=sa.text("status IN ('proposed', 'active', 'broken')"),
    )

    # Match chain links table
    op.create_table(
        "match_chain_links",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("chain_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("position", sa.Integer(), nullable=False),
        sa.Column("giver_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("receiver_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("category_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("giver_confirmed", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("receiver_confirmed", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("giver_completed", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("receiver_completed", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("offer_terms", postgresql.JSONB(), nullable=True),
        sa.ForeignKeyConstraint(["chain_id"], ["match_chains.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["giver_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["receiver_id"], ["users.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["category_id"], ["skill_categories.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("chain_id", "position", name="uq_match_chain_links_position"),
        sa.CheckConstraint("giver_id != receiver_id", name="ck_match_chain_links_distinct"),
    )

    op.create_index("ix_match_chain_links_id", "match_chain_links", ["id"])
    op.create_index("ix_match_chain_links_chain_id", "match_chain_links", ["chain_id"])
    op.create_index("ix_match_chain_links_giver_id", "match_chain_links", ["giver_id"])
    op.create_index("ix_match_chain_links_receiver_id", "match_chain_links", ["receiver_id"])

    # Notifications table
    op.create_table(
        "notifications",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("collection_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("type", sa.String(30), nullable=False),
        sa.Column("status", sa.String(20), nullable=False, server_default="unread"),
        sa.Column("handshake_path", postgresql.ARRAY(postgresql.UUID(as_uuid=True)), nullable=False),
        sa.Column("wave", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("now()")),
        sa.ForeignKeyConstraint(["user_id"], ["users.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint(
            "user_id", "collection_id", "type", "wave",
            name="uq_notifications_user_collection_type_wave",
        ),
    )

    op.create_index("ix_notifications_id", "notifications", ["id"])
    op.create_index("ix_notifications_user_id", "notifications", ["user_id"])
    op.create_index("ix_notifications_collection_id", "notifications", ["collection_id"])
    op.create_index("ix_notifications_created_at", "notifications", ["created_at"])
    op.create_index("ix_notifications_status_expires", "notifications", ["status", "expires_at"])


def downgrade() -> None:
    op.drop_table("notifications")
    op.drop_table("match_chain_links")
    op.drop_table("match_chains")
    op.drop_table("ignore_entries")
    op.drop_table("connections")
    op.drop_table("user_needs")
    op.drop_table("user_skills")
    op.drop_table("skill_categories")
    op.drop_table("users")
