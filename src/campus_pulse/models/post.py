# src/campus_pulse/models/post.py
"""SQLAlchemy model for ephemeral pulse posts."""

from __future__ import annotations

import uuid
from datetime import datetime
from enum import StrEnum

from sqlalchemy import Boolean, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from campus_pulse.db.session import Base
from campus_pulse.db.time import utcnow
from campus_pulse.db.types import UTCDateTime


class PostCategory(StrEnum):
    """Closed set of topics a pulse can be filed under."""

    MISSED_CONNECTION = "missed_connection"
    CAMPUS_THOUGHT = "campus_thought"
    DATING_RANT = "dating_rant"
    HOT_TAKE = "hot_take"
    LOOKING_FOR = "looking_for"
    CONFESSION = "confession"
    GENERAL = "general"


def _new_post_id() -> str:
    return str(uuid.uuid4())


class PulsePost(Base):
    """Short-lived post shown on the campus feed.

    A post is live while it has not been deleted and its expiry lies in the
    future. The sweeper stamps ``swept_at`` once it notices the expiry and
    hard deletes the row after the reveal retention window.
    """

    __tablename__ = "pulse_post"
    __table_args__ = (
        Index("ix_pulse_post_created_id", "created_at", "id"),
        Index("ix_pulse_post_category", "category"),
        Index("ix_pulse_post_author_id", "author_id"),
        Index("ix_pulse_post_expires_at", "expires_at"),
    )

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=_new_post_id)
    author_id: Mapped[str] = mapped_column(String(64), nullable=False)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    category: Mapped[str] = mapped_column(String(32), nullable=False)
    # Fixed at creation; never updated.
    is_anonymous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)

    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    expires_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False)
    deleted_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    swept_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)

    def is_live(self, now: datetime) -> bool:
        """Return whether the post accepts reactions and reveal requests at ``now``."""
        return self.deleted_at is None and now < self.expires_at

    def retired_at(self) -> datetime:
        """Return the moment the post stopped being live (or will)."""
        if self.deleted_at is not None and self.deleted_at < self.expires_at:
            return self.deleted_at
        return self.expires_at
