"""reveal pair lock rows

Revision ID: 8d2e4b6a1f37
Revises: 3c1f9a7e2b10
Create Date: 2026-10-19 10:03:27.118406

"""
from __future__ import annotations

from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

# revision identifiers, used by Alembic.
revision: str = "8d2e4b6a1f37"
down_revision: Union[str, Sequence[str], None] = "3c1f9a7e2b10"
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    """Add the per-pair lock table used by reveal resolution and purging."""
    op.create_table(
        "reveal_pair_lock",
        sa.Column("user_low_id", sa.String(length=64), nullable=False),
        sa.Column("user_high_id", sa.String(length=64), nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False),
        sa.PrimaryKeyConstraint("user_low_id", "user_high_id"),
    )


def downgrade() -> None:
    """Drop the per-pair lock table."""
    op.drop_table("reveal_pair_lock")
