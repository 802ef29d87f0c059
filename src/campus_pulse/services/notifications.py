"""Transactional notification outbox.

Rows are queued inside the transaction that causes them and delivered once
that transaction has committed. The unique ``dedupe_key`` turns "notify
exactly once per event" into a storage constraint; delivery claims rows
with a conditional update so concurrent dispatchers never send one twice.
"""

from __future__ import annotations

import logging
from collections.abc import Iterable, Mapping
from datetime import datetime, timedelta
from typing import Any

from sqlalchemy import and_, delete, or_, select, update
from sqlalchemy.orm import Session

from campus_pulse.core.settings import settings
from campus_pulse.db.time import utcnow
from campus_pulse.models.notification import NotificationOutbox
from campus_pulse.services.collaborators import CollaboratorError, Notifier

logger = logging.getLogger(__name__)

STATUS_PENDING = "pending"
STATUS_SENDING = "sending"
STATUS_SENT = "sent"
STATUS_FAILED = "failed"
STATUS_SKIPPED = "skipped"

KIND_REVEAL_MUTUAL = "reveal_mutual"
KIND_REVEAL_REQUESTED = "reveal_requested"
KIND_REACTION = "reaction"


def enqueue_notification(
    db: Session,
    *,
    recipient_id: str,
    kind: str,
    payload: Mapping[str, Any],
    dedupe_key: str,
) -> NotificationOutbox | None:
    """Queue a notification in the caller's transaction.

    Returns ``None`` when a row with the same ``dedupe_key`` already exists.
    A concurrent insert of the same key surfaces as ``IntegrityError`` on
    flush and is left to the caller's retry loop.
    """
    existing = db.execute(
        select(NotificationOutbox.id).where(NotificationOutbox.dedupe_key == dedupe_key)
    ).scalar_one_or_none()
    if existing is not None:
        return None

    row = NotificationOutbox(
        recipient_id=recipient_id,
        kind=kind,
        payload=dict(payload),
        dedupe_key=dedupe_key,
        status=STATUS_PENDING,
        attempts=0,
        created_at=utcnow(),
    )
    db.add(row)
    db.flush()
    return row


def _claim(db: Session, outbox_id: int, now: datetime) -> bool:
    result = db.execute(
        update(NotificationOutbox)
        .where(
            NotificationOutbox.id == outbox_id,
            NotificationOutbox.status.in_((STATUS_PENDING, STATUS_FAILED)),
        )
        .values(
            status=STATUS_SENDING,
            attempts=NotificationOutbox.attempts + 1,
            last_attempt_at=now,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount == 1


def _finish(db: Session, outbox_id: int, status: str, error: str | None = None) -> None:
    db.execute(
        update(NotificationOutbox)
        .where(NotificationOutbox.id == outbox_id, NotificationOutbox.status == STATUS_SENDING)
        .values(status=status, last_error=error)
        .execution_options(synchronize_session=False)
    )
    db.commit()


def deliver_notifications(
    db: Session,
    notifier: Notifier,
    outbox_ids: Iterable[int],
) -> int:
    """Dispatch the given outbox rows and return how many were sent.

    Must be called outside any open write transaction: each row is claimed
    and finished in its own short commit.
    """
    sent = 0
    for outbox_id in outbox_ids:
        if not _claim(db, outbox_id, utcnow()):
            continue
        row = db.get(NotificationOutbox, outbox_id, populate_existing=True)
        if row is None:
            continue
        recipient_id, kind, payload = row.recipient_id, row.kind, dict(row.payload or {})

        if not notifier.enabled:
            logger.info("Skipping %s notification %d: notifier disabled", kind, outbox_id)
            _finish(db, outbox_id, STATUS_SKIPPED)
            continue

        try:
            notifier.send_notification(recipient_id, kind, payload)
        except CollaboratorError as exc:
            logger.warning("Notification %d (%s) failed: %s", outbox_id, kind, exc)
            _finish(db, outbox_id, STATUS_FAILED, str(exc))
            continue

        _finish(db, outbox_id, STATUS_SENT)
        sent += 1
    return sent


def redeliver_notifications(
    db: Session,
    notifier: Notifier,
    *,
    now: datetime | None = None,
) -> int:
    """Retry undelivered rows and recover ones abandoned mid-send."""
    now = now or utcnow()
    stale_before = now - timedelta(seconds=settings.notification_stale_seconds)

    # A dispatcher that died between claim and finish leaves the row in
    # 'sending'; hand it back to the retry pool.
    db.execute(
        update(NotificationOutbox)
        .where(
            NotificationOutbox.status == STATUS_SENDING,
            NotificationOutbox.last_attempt_at < stale_before,
        )
        .values(status=STATUS_FAILED, last_error="abandoned while sending")
        .execution_options(synchronize_session=False)
    )
    db.commit()

    ids = list(
        db.execute(
            select(NotificationOutbox.id)
            .where(
                or_(
                    NotificationOutbox.status == STATUS_PENDING,
                    and_(
                        NotificationOutbox.status == STATUS_FAILED,
                        NotificationOutbox.attempts < settings.notification_max_attempts,
                    ),
                )
            )
            .order_by(NotificationOutbox.id)
        ).scalars()
    )
    db.commit()
    if not ids:
        return 0
    return deliver_notifications(db, notifier, ids)


def prune_notifications(db: Session, *, now: datetime | None = None) -> int:
    """Delete finished rows old enough that their event can no longer recur."""
    now = now or utcnow()
    horizon = timedelta(hours=settings.post_lifetime_hours + settings.deleted_retention_hours)
    result = db.execute(
        delete(NotificationOutbox)
        .where(
            NotificationOutbox.status.in_((STATUS_SENT, STATUS_SKIPPED)),
            NotificationOutbox.created_at < now - horizon,
        )
        .execution_options(synchronize_session=False)
    )
    db.commit()
    return result.rowcount or 0
