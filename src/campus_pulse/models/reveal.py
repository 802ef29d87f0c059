# src/campus_pulse/models/reveal.py
"""Models for identity reveal requests and resolved matches."""

from __future__ import annotations

from datetime import datetime

from sqlalchemy import ForeignKey, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from campus_pulse.db.session import Base
from campus_pulse.db.time import utcnow
from campus_pulse.db.types import UTCDateTime


class RevealRequest(Base):
    """A viewer asking the author of an anonymous post to reveal themselves."""

    __tablename__ = "reveal_request"
    __table_args__ = (
        Index("ix_reveal_request_requester_author", "requester_id", "author_id"),
        Index("ix_reveal_request_post_id", "post_id"),
    )

    post_id: Mapped[str] = mapped_column(
        String(36),
        ForeignKey("pulse_post.id", ondelete="CASCADE"),
        primary_key=True,
    )
    requester_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Copied from the post so reciprocity lookups need no join.
    author_id: Mapped[str] = mapped_column(String(64), nullable=False)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


class RevealMatch(Base):
    """Resolved mutual reveal between two users.

    The pair is stored sorted so that the primary key admits a single row
    per unordered pair. Matches outlive the posts that produced them.
    """

    __tablename__ = "reveal_match"
    __table_args__ = (
        Index("ix_reveal_match_high", "user_high_id"),
    )

    user_low_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_high_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    # Post authored by each side that the other side requested on.
    low_post_id: Mapped[str] = mapped_column(String(36), nullable=False)
    high_post_id: Mapped[str] = mapped_column(String(36), nullable=False)
    matched_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)

    def counterpart_of(self, user_id: str) -> str:
        """Return the other member of the pair."""
        return self.user_high_id if user_id == self.user_low_id else self.user_low_id


class RevealPairLock(Base):
    """Row locked with SELECT ... FOR UPDATE while a user pair is being resolved.

    Serializes reciprocity checks across processes when no Redis lock is
    shared between them. One row per unordered pair, created on first use.
    """

    __tablename__ = "reveal_pair_lock"

    user_low_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    user_high_id: Mapped[str] = mapped_column(String(64), primary_key=True)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)


def ordered_pair(first: str, second: str) -> tuple[str, str]:
    """Return the two user ids sorted lexicographically."""
    return (first, second) if first <= second else (second, first)
