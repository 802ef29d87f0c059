# src/campus_pulse/models/reaction.py
"""Models capturing reactions on pulse posts."""

from __future__ import annotations

from datetime import datetime
from enum import StrEnum

from sqlalchemy import CheckConstraint, ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from campus_pulse.db.session import Base
from campus_pulse.db.time import utcnow
from campus_pulse.db.types import UTCDateTime


class ReactionType(StrEnum):
    """Reactions a viewer can leave on a post."""

    FIRE = "fire"
    SKULL = "skull"
    HEART = "heart"


class PulseReaction(Base):
    """Single reaction slot of a viewer on a post.

    Counts are never stored; they are aggregated from these rows.
    """

    __tablename__ = "pulse_reaction"
    __table_args__ = (
        CheckConstraint(
            "reaction_type IN ('fire', 'skull', 'heart')",
            name="ck_pulse_reaction_type",
        ),
        Index("ix_pulse_reaction_post_id", "post_id"),
    )

    # Composite primary key keeps one reaction per viewer per post.
    post_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("pulse_post.id", ondelete="CASCADE"),
        primary_key=True,
    )
    viewer_id: Mapped[str] = mapped_column(String(64), primary_key=True)

    reaction_type: Mapped[str] = mapped_column(String(16), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(
        UTCDateTime,
        nullable=False,
        default=utcnow,
        onupdate=utcnow,
    )
