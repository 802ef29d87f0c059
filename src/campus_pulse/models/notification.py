# src/campus_pulse/models/notification.py
"""SQLAlchemy model for the notification outbox."""

from __future__ import annotations

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, VARCHAR, Index, Integer, SmallInteger, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from campus_pulse.db.session import Base
from campus_pulse.db.time import utcnow
from campus_pulse.db.types import UTCDateTime


class NotificationOutbox(Base):
    """Notification queued in the same transaction as the event causing it."""

    __tablename__ = "notification_outbox"
    __table_args__ = (
        Index("ix_notification_outbox_status", "status"),
    )

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    recipient_id: Mapped[str] = mapped_column(String(64), nullable=False)
    kind: Mapped[str] = mapped_column(VARCHAR(32), nullable=False)  # e.g. 'reveal_mutual'
    payload: Mapped[dict[str, Any]] = mapped_column(JSON, nullable=False, default=dict)
    # One row per logical event; a second insert fails on this constraint.
    dedupe_key: Mapped[str] = mapped_column(String(200), unique=True, nullable=False)
    status: Mapped[str] = mapped_column(
        VARCHAR(16), nullable=False, default="pending"
    )  # 'pending', 'sending', 'sent', 'failed', 'skipped'
    attempts: Mapped[int] = mapped_column(SmallInteger, nullable=False, default=0)
    created_at: Mapped[datetime] = mapped_column(UTCDateTime, nullable=False, default=utcnow)
    last_attempt_at: Mapped[datetime | None] = mapped_column(UTCDateTime, nullable=True)
    last_error: Mapped[str | None] = mapped_column(Text, nullable=True)
