"""Expiry sweeper: retires expired posts and purges them after a grace period.

The sweeper runs as a background task inside the API process and can also
be triggered through the cron endpoint or ``campus-pulse-manage sweep``.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import ExitStack
from dataclasses import asdict, dataclass
from datetime import datetime, timedelta

from sqlalchemy import delete, select, update
from sqlalchemy.exc import OperationalError, SQLAlchemyError
from sqlalchemy.orm import Session

from campus_pulse.core.errors import PulseError
from campus_pulse.core.settings import settings
from campus_pulse.db.session import SessionLocal
from campus_pulse.db.time import utcnow
from campus_pulse.models.post import PulsePost
from campus_pulse.models.reaction import PulseReaction
from campus_pulse.models.reveal import RevealRequest, ordered_pair
from campus_pulse.repositories.post_repo import PostRepository
from campus_pulse.services.collaborators import CollaboratorError, Notifier, get_notifier
from campus_pulse.services.notifications import prune_notifications, redeliver_notifications
from campus_pulse.services.pair_lock import (
    PairLockService,
    PairLockTimeout,
    ensure_pair_row,
    get_pair_lock_service,
    lock_pair_row,
)

logger = logging.getLogger(__name__)


@dataclass
class SweepReport:
    """Counts from one sweep run."""

    marked: int = 0
    purged: int = 0
    skipped: int = 0
    redelivered: int = 0

    def as_dict(self) -> dict[str, int]:
        return asdict(self)


class ExpirySweeper:
    """Marks expired posts and purges retired ones together with their rows."""

    def __init__(
        self,
        db: Session,
        *,
        pair_locks: PairLockService,
        notifier: Notifier,
    ) -> None:
        self.db = db
        self.pair_locks = pair_locks
        self.notifier = notifier
        self.repo = PostRepository(db)

    def run(self, now: datetime | None = None) -> SweepReport:
        """Run mark, purge and redelivery once."""
        moment = now or utcnow()
        report = SweepReport()
        report.marked = self.mark_expired(moment)
        report.purged, report.skipped = self.purge_retired(moment)
        report.redelivered = redeliver_notifications(self.db, self.notifier, now=moment)
        prune_notifications(self.db, now=moment)
        if report.marked or report.purged or report.skipped or report.redelivered:
            logger.info(
                "Sweep finished: marked=%d purged=%d skipped=%d redelivered=%d",
                report.marked,
                report.purged,
                report.skipped,
                report.redelivered,
            )
        return report

    def mark_expired(self, now: datetime) -> int:
        """Stamp ``swept_at`` on posts that expired without being deleted."""
        result = self.db.execute(
            update(PulsePost)
            .where(
                PulsePost.expires_at <= now,
                PulsePost.deleted_at.is_(None),
                PulsePost.swept_at.is_(None),
            )
            .values(swept_at=now)
            .execution_options(synchronize_session=False)
        )
        self.db.commit()
        return result.rowcount or 0

    def purge_retired(self, now: datetime) -> tuple[int, int]:
        """Hard delete posts past their retention window.

        A post is skipped, and left for the next run, when any reveal pair on
        it is locked by an in-flight reveal check.
        """
        candidates = self.repo.list_purgeable(
            swept_before=now - timedelta(minutes=settings.reveal_retention_minutes),
            deleted_before=now - timedelta(hours=settings.deleted_retention_hours),
        )
        post_ids = [(post.id, post.author_id) for post in candidates]
        self.db.commit()

        purged = skipped = 0
        for post_id, author_id in post_ids:
            try:
                if self._purge_one(post_id, author_id):
                    purged += 1
            except (PairLockTimeout, OperationalError) as exc:
                self.db.rollback()
                skipped += 1
                logger.debug("Post %s left for the next sweep: %s", post_id, exc)
        return purged, skipped

    def _purge_one(self, post_id: str, author_id: str) -> bool:
        requester_ids = self.db.execute(
            select(RevealRequest.requester_id).where(RevealRequest.post_id == post_id)
        ).scalars()
        pairs = sorted({ordered_pair(author_id, requester_id) for requester_id in requester_ids})
        self.db.rollback()
        for low, high in pairs:
            ensure_pair_row(self.db, low, high)
        self.db.rollback()

        with ExitStack() as stack:
            for low, high in pairs:
                stack.enter_context(self.pair_locks.hold(low, high, blocking=False))
            for low, high in pairs:
                lock_pair_row(self.db, low, high, nowait=True)

            # Requests added after the pair list was read would escape the
            # locks above; bail out and retry on the next run.
            current = set(
                self.db.execute(
                    select(RevealRequest.requester_id).where(RevealRequest.post_id == post_id)
                ).scalars()
            )
            if {ordered_pair(author_id, requester_id) for requester_id in current} - set(pairs):
                self.db.rollback()
                raise PairLockTimeout(f"New reveal requests appeared on post {post_id}")

            self.db.execute(delete(PulseReaction).where(PulseReaction.post_id == post_id))
            self.db.execute(delete(RevealRequest).where(RevealRequest.post_id == post_id))
            result = self.db.execute(delete(PulsePost).where(PulsePost.id == post_id))
            self.db.commit()
        return (result.rowcount or 0) > 0


def run_sweep(now: datetime | None = None) -> SweepReport:
    """Run one sweep with a fresh session and the process-wide collaborators."""
    with SessionLocal() as db:
        sweeper = ExpirySweeper(
            db,
            pair_locks=get_pair_lock_service(),
            notifier=get_notifier(),
        )
        return sweeper.run(now)


class ExpirySweepWorker:
    """Periodically runs the sweeper in a worker thread."""

    def __init__(self, interval_seconds: float | None = None) -> None:
        if interval_seconds is None:
            interval_seconds = settings.sweep_interval_seconds
        self.interval = max(0.1, float(interval_seconds))
        self._task: asyncio.Task[None] | None = None
        self._stopping = asyncio.Event()
        self.last_report: SweepReport | None = None

    async def start(self) -> None:
        """Start the background sweep loop."""
        if self._task is None or self._task.done():
            self._stopping.clear()
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        """Stop the background sweep loop."""
        if self._task is None:
            return
        self._stopping.set()
        await self._task
        self._task = None

    async def _run(self) -> None:
        backoff = min(self.interval * 4, 30.0)

        while not self._stopping.is_set():
            delay = self.interval
            try:
                self.last_report = await asyncio.to_thread(run_sweep)
            except SQLAlchemyError as e:
                logger.warning("ExpirySweepWorker encountered a database error: %s", e)
                delay = backoff
            except (PulseError, CollaboratorError) as e:
                logger.warning("ExpirySweepWorker encountered a service error: %s", e)
                delay = backoff
            except (OSError, ConnectionError, TimeoutError) as e:
                logger.warning("ExpirySweepWorker encountered network error: %s", e)
                delay = backoff
            except (ValueError, TypeError, KeyError, AttributeError) as e:
                logger.error(
                    "ExpirySweepWorker encountered data processing error: %s", e, exc_info=True
                )
                delay = backoff

            try:
                await asyncio.wait_for(self._stopping.wait(), timeout=delay)
            except TimeoutError:
                continue
