"""initial schema

Revision ID: 20260101_000001
Revises:
Create Date: 2026-01-01 00:00:01.000000
"""
from __future__ import annotations

from alembic import op
import sqlalchemy as sa
from sqlalchemy.dialects import postgresql

# revision identifiers, used by Alembic.
revision = "20260101_000001"
down_revision = None
branch_labels = None
depends_on = None


def upgrade() -> None:
    """Create users, music profiles, swipe decisions, and suggestion queues."""
    op.create_table(
        "users",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("email", sa.String(length=255), nullable=False),
        sa.Column("name", sa.String(length=255), nullable=False, server_default=""),
        sa.Column("age", sa.Integer(), nullable=True),
        sa.Column("gender", sa.String(length=32), nullable=True),
        sa.Column("sexual_orientation", sa.String(length=32), nullable=True),
        sa.Column("bio", sa.Text(), nullable=True),
        sa.Column("location", sa.String(length=255), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_users"),
    )
    op.create_index("ix_users_email", "users", ["email"], unique=True)

    op.create_table(
        "music_profiles",
        sa.Column("id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("user_id", postgresql.UUID(as_uuid=True), nullable=True),
        sa.Column("genres", postgresql.JSONB(), nullable=False),
        sa.Column("artists", postgresql.JSONB(), nullable=False),
        sa.Column("songs", postgresql.JSONB(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("id", name="pk_music_profiles"),
        sa.ForeignKeyConstraint(
            ["user_id"], ["users.id"], name="fk_music_profiles_user_id_users", ondelete="CASCADE"
        ),
        sa.UniqueConstraint("user_id", name="uq_music_profile_user"),
    )

    op.create_table(
        "swipe_decisions",
        sa.Column("from_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("to_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("is_like", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("updated_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.PrimaryKeyConstraint("from_user_id", "to_user_id", name="pk_swipe_decisions"),
        sa.ForeignKeyConstraint(
            ["from_user_id"], ["users.id"], name="fk_swipe_decisions_from_user_id_users", ondelete="CASCADE"
        ),
        sa.ForeignKeyConstraint(
            ["to_user_id"], ["users.id"], name="fk_swipe_decisions_to_user_id_users", ondelete="CASCADE"
        ),
    )
    op.create_index("ix_swipe_decisions_to_user", "swipe_decisions", ["to_user_id", "is_like"], unique=False)

    op.create_table(
        "suggestion_queue_entries",
        sa.Column("owner_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("candidate_user_id", postgresql.UUID(as_uuid=True), nullable=False),
        sa.Column("compatibility_score", sa.Numeric(5, 2), nullable=False),
        sa.Column("queue_position", sa.Integer(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), server_default=sa.func.now()),
        sa.Column("enriched_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("owner_user_id", "candidate_user_id", name="pk_suggestion_queue_entries"),
        sa.ForeignKeyConstraint(
            ["owner_user_id"],
            ["users.id"],
            name="fk_suggestion_queue_entries_owner_user_id_users",
            ondelete="CASCADE",
        ),
        sa.ForeignKeyConstraint(
            ["candidate_user_id"],
            ["users.id"],
            name="fk_suggestion_queue_entries_candidate_user_id_users",
            ondelete="CASCADE",
        ),
        sa.CheckConstraint(
            "compatibility_score >= 0 AND compatibility_score <= 100",
            name="ck_suggestion_queue_entries_compatibility_score_range",
        ),
    )
    op.create_index(
        "ix_suggestion_queue_owner_rank",
        "suggestion_queue_entries",
        ["owner_user_id", "compatibility_score", "queue_position"],
        unique=False,
    )


def downgrade() -> None:
    """Drop all tables created by the initial schema."""
    op.drop_index("ix_suggestion_queue_owner_rank", table_name="suggestion_queue_entries")
    op.drop_table("suggestion_queue_entries")
    op.drop_index("ix_swipe_decisions_to_user", table_name="swipe_decisions")
    op.drop_table("swipe_decisions")
    op.drop_table("music_profiles")
    op.drop_index("ix_users_email", table_name="users")
    op.drop_table("users")
