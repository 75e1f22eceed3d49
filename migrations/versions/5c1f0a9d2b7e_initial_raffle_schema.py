"""initial raffle schema

Revision ID: 5c1f0a9d2b7e
Revises:
Create Date: 2026-10-17 09:12:41.318204

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "5c1f0a9d2b7e"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _timestamp(name: str, nullable: bool = False) -> sa.Column:
    return sa.Column(name, sa.DateTime(timezone=True), nullable=nullable)


def upgrade() -> None:
    """Create raffle tables."""
    op.create_table(
        "raffle_user",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("external_id", sa.String(length=64), nullable=False),
        sa.Column("username", sa.Text(), nullable=True),
        sa.Column("display_name", sa.Text(), nullable=True),
        sa.Column("is_follower", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("is_subscriber", sa.Boolean(), nullable=False, server_default=sa.false()),
        sa.Column("sub_months", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("resub_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_cheer_bits", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_donations", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("total_gifted_subs", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("carry_over_weight", sa.Float(), nullable=False, server_default="0"),
        sa.Column("session_bonus", sa.Float(), nullable=False, server_default="0"),
        sa.Column("total_weight", sa.Float(), nullable=False, server_default="1"),
        sa.Column("current_weight", sa.Float(), nullable=False, server_default="1"),
        sa.Column("needs_resync", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("last_synced_at", nullable=True),
        _timestamp("created_at"),
        _timestamp("last_updated"),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("external_id"),
    )

    op.create_table(
        "raffle_session",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("name", sa.Text(), nullable=True),
        sa.Column("status", sa.String(length=16), nullable=False),
        _timestamp("created_at"),
        _timestamp("ended_at", nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_raffle_session_status", "raffle_session", ["status"])
    op.create_index(
        "uq_raffle_session_single_active",
        "raffle_session",
        ["status"],
        unique=True,
        postgresql_where=sa.text("status = 'ACTIVE'"),
        sqlite_where=sa.text("status = 'ACTIVE'"),
    )

    op.create_table(
        "raffle_entry",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        sa.Column("user_id", sa.Integer(), nullable=True),
        sa.Column("name", sa.Text(), nullable=False),
        sa.Column("link", sa.Text(), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("is_winner", sa.Boolean(), nullable=False, server_default=sa.false()),
        _timestamp("created_at"),
        _timestamp("won_at", nullable=True),
        sa.ForeignKeyConstraint(["session_id"], ["raffle_session.id"], ondelete="CASCADE"),
        sa.ForeignKeyConstraint(["user_id"], ["raffle_user.id"], ondelete="SET NULL"),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_raffle_entry_session_winner", "raffle_entry", ["session_id", "is_winner"])
    op.create_index("ix_raffle_entry_user_id", "raffle_entry", ["user_id"])

    op.create_table(
        "weight_settings",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("base_weight", sa.Float(), nullable=False),
        sa.Column("sub_months_multiplier", sa.Float(), nullable=False),
        sa.Column("sub_months_cap", sa.Integer(), nullable=False),
        sa.Column("resub_multiplier", sa.Float(), nullable=False),
        sa.Column("resub_cap", sa.Integer(), nullable=False),
        sa.Column("cheer_bits_divisor", sa.Float(), nullable=False),
        sa.Column("cheer_bits_cap", sa.Float(), nullable=False),
        sa.Column("donations_divisor", sa.Float(), nullable=False),
        sa.Column("donations_cap", sa.Float(), nullable=False),
        sa.Column("gifted_subs_multiplier", sa.Float(), nullable=False),
        sa.Column("gifted_subs_cap", sa.Float(), nullable=False),
        sa.Column("carry_over_multiplier", sa.Float(), nullable=False),
        sa.Column("carry_over_max_bonus", sa.Float(), nullable=False),
        sa.Column("loyalty_max_bonus", sa.Float(), nullable=False),
        sa.Column("support_max_bonus", sa.Float(), nullable=False),
        _timestamp("updated_at"),
        sa.PrimaryKeyConstraint("id"),
    )

    op.create_table(
        "processed_support_event",
        sa.Column("dedupe_key", sa.String(length=255), nullable=False),
        sa.Column("event_type", sa.String(length=32), nullable=False),
        sa.Column("external_user_id", sa.String(length=64), nullable=False),
        _timestamp("processed_at"),
        sa.PrimaryKeyConstraint("dedupe_key"),
    )

    op.create_table(
        "system_flag",
        sa.Column("key", sa.String(length=64), nullable=False),
        sa.Column("value", sa.Text(), nullable=False),
        sa.Column("session_id", sa.Integer(), nullable=False),
        _timestamp("updated_at"),
        sa.ForeignKeyConstraint(["session_id"], ["raffle_session.id"]),
        sa.PrimaryKeyConstraint("key"),
    )


def downgrade() -> None:
    """Drop raffle tables."""
    op.drop_table("system_flag")
    op.drop_table("processed_support_event")
    op.drop_table("weight_settings")
    op.drop_index("ix_raffle_entry_user_id", table_name="raffle_entry")
    op.drop_index("ix_raffle_entry_session_winner", table_name="raffle_entry")
    op.drop_table("raffle_entry")
    op.drop_index("uq_raffle_session_single_active", table_name="raffle_session")
    op.drop_index("ix_raffle_session_status", table_name="raffle_session")
    op.drop_table("raffle_session")
    op.drop_table("raffle_user")
