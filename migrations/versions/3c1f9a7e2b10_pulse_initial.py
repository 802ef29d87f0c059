"""pulse initial schema

Revision ID: 3c1f9a7e2b10
Revises:
Create Date: 2026-10-18 09:12:44.512031

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "3c1f9a7e2b10"
down_revision: Union[str, Sequence[str], None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Create the post, reaction, reveal and outbox tables."""
    op.create_table(
        "pulse_post",
        sa.Column("id", sa.String(length=36), nullable=False),
        sa.Column("author_id", sa.String(length=64), nullable=False),
        sa.Column("content", sa.Text(), nullable=False),
        sa.Column("category", sa.String(length=32), nullable=False),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("deleted_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("swept_at", sa.DateTime(timezone=True), nullable=True),
        sa.PrimaryKeyConstraint("id"),
    )
    op.create_index("ix_pulse_post_created_id", "pulse_post", ["created_at", "id"])
    op.create_index("ix_pulse_post_category", "pulse_post", ["category"])
    op.create_index("ix_pulse_post_author_id", "pulse_post", ["author_id"])
    op.create_index("ix_pulse_post_expires_at", "pulse_post", ["expires_at"])

    op.create_table(
        "pulse_reaction",
        sa.Column("post_id", sa.String(length=36), nullable=False),
        sa.Column("viewer_id", sa.String(length=64), nullable=False),
        sa.Column("reaction_type", sa.String(length=16), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False),
        sa.CheckConstraint(
            "reaction_type IN ('fire', 'skull', 'heart')",
            name="ck_pulse_reaction_type",
        ),
        sa.ForeignKeyConstraint(["post_id"], ["pulse_post.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("post_id", "viewer_id"),
    )
    op.create_index("ix_pulse_reaction_post_id", "pulse_reaction", ["post_id"])

    op.create_table(
        "reveal_request",
        sa.Column("post_id", sa.String(length=36), nullable=False),
        sa.Column("requester_id", sa.String(length=64), nullable=False),
        sa.Column("author_id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.ForeignKeyConstraint(["post_id"], ["pulse_post.id"], ondelete="CASCADE"),
        sa.PrimaryKeyConstraint("post_id", "requester_id"),
    )
    op.create_index(
        "ix_reveal_request_requester_author",
        "reveal_request",
        ["requester_id", "author_id"],
    )
    op.create_index("ix_reveal_request_post_id", "reveal_request", ["post_id"])

    op.create_table(
        "reveal_match",
        sa.Column("user_low_id", sa.String(length=64), nullable=False),
        sa.Column("user_high_id", sa.String(length=64), nullable=False),
        sa.Column("low_post_id", sa.String(length=36), nullable=False),
        sa.Column("high_post_id", sa.String(length=36), nullable=False),
        sa.Column("matched_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_low_id", "user_high_id"),
    )
    op.create_index("ix_reveal_match_high", "reveal_match", ["user_high_id"])

    op.create_table(
        "notification_outbox",
        sa.Column("id", sa.Integer(), autoincrement=True, nullable=False),
        sa.Column("recipient_id", sa.String(length=64), nullable=False),
        sa.Column("kind", sa.VARCHAR(length=32), nullable=False),
        sa.Column("payload", sa.JSON(), nullable=False),
        sa.Column("dedupe_key", sa.String(length=200), nullable=False),
        sa.Column("status", sa.VARCHAR(length=16), nullable=False),
        sa.Column("attempts", sa.SmallInteger(), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("last_attempt_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("last_error", sa.Text(), nullable=True),
        sa.PrimaryKeyConstraint("id"),
        sa.UniqueConstraint("dedupe_key"),
    )
    op.create_index("ix_notification_outbox_status", "notification_outbox", ["status"])


def downgrade() -> None:
    """Drop every Pulse table."""
    op.drop_index("ix_notification_outbox_status", table_name="notification_outbox")
    op.drop_table("notification_outbox")
    op.drop_index("ix_reveal_match_high", table_name="reveal_match")
    op.drop_table("reveal_match")
    op.drop_index("ix_reveal_request_post_id", table_name="reveal_request")
    op.drop_index("ix_reveal_request_requester_author", table_name="reveal_request")
    op.drop_table("reveal_request")
    op.drop_index("ix_pulse_reaction_post_id", table_name="pulse_reaction")
    op.drop_table("pulse_reaction")
    op.drop_index("ix_pulse_post_expires_at", table_name="pulse_post")
    op.drop_index("ix_pulse_post_author_id", table_name="pulse_post")
    op.drop_index("ix_pulse_post_category", table_name="pulse_post")
    op.drop_index("ix_pulse_post_created_id", table_name="pulse_post")
    op.drop_table("pulse_post")
