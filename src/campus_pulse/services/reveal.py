"""Reveal coordination: mutual, consent-based identity disclosure.

A reveal request records that a viewer wants to learn who wrote an
anonymous post. Two users become mutual once each has requested on a live
or recently live post written by the other, across any posts. The
reciprocity check and the promotion to mutual run in one transaction while
holding the pair lock, so two reciprocal requests racing each other resolve
exactly once.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from campus_pulse.core.errors import InvalidRequestError, NotFoundError, TransientError
from campus_pulse.core.settings import settings
from campus_pulse.db.time import utcnow
from campus_pulse.models.post import PulsePost
from campus_pulse.models.reveal import RevealMatch, RevealRequest, ordered_pair
from campus_pulse.schemas.user import UserProfile
from campus_pulse.services.collaborators import CollaboratorError, Notifier, ProfileDirectory
from campus_pulse.services.notifications import (
    KIND_REVEAL_MUTUAL,
    KIND_REVEAL_REQUESTED,
    deliver_notifications,
    enqueue_notification,
)
from campus_pulse.services.pair_lock import PairLockService, ensure_pair_row, lock_pair_row
from campus_pulse.services.post_service import get_post
from campus_pulse.services.retry import run_with_retries

logger = logging.getLogger(__name__)


@dataclass
class RevealOutcome:
    """Caller-facing state of a reveal request."""

    requested: bool
    mutual: bool
    reveal_count: int = 0
    requester_profile: UserProfile | None = None
    author_profile: UserProfile | None = None


@dataclass
class RevealMatchSummary:
    """One resolved match from the point of view of a single user."""

    counterpart_id: str
    matched_at: datetime
    post_id: str
    counterpart_profile: UserProfile | None = None


@dataclass
class _Resolution:
    mutual: bool
    reveal_count: int
    new_match: bool = False
    queued: list[int] = field(default_factory=list)


def recently_live_cutoff(now: datetime) -> datetime:
    """Return the earliest retirement time that still counts as recently live."""
    return now - timedelta(minutes=settings.reveal_retention_minutes)


def is_recently_live(post: PulsePost, now: datetime) -> bool:
    """Return whether ``post`` is live or retired within the retention window."""
    return post.is_live(now) or post.retired_at() > recently_live_cutoff(now)


class RevealCoordinator:
    """Handles reveal requests, status lookups and match listings."""

    def __init__(
        self,
        db: Session,
        *,
        profiles: ProfileDirectory,
        notifier: Notifier,
        pair_locks: PairLockService,
    ) -> None:
        self.db = db
        self.profiles = profiles
        self.notifier = notifier
        self.pair_locks = pair_locks

    def request_reveal(
        self,
        post_id: str,
        requester_id: str,
        *,
        now: datetime | None = None,
    ) -> RevealOutcome:
        """Record a reveal request and promote the pair to mutual if reciprocated.

        Repeating the call returns the same result and queues nothing new.

        Raises:
            NotFoundError: If the post is missing, deleted, or expired.
            InvalidRequestError: If the post is public or the requester wrote it.
            TransientError: If storage kept conflicting, or profiles for a
                stored match could not be fetched.
        """
        moment = now or utcnow()
        post = get_post(self.db, post_id, refresh=True)
        if post is None or not post.is_live(moment):
            raise NotFoundError("Post not found")
        if not post.is_anonymous:
            raise InvalidRequestError("Only anonymous posts can be revealed")
        if post.author_id == requester_id:
            raise InvalidRequestError("Authors cannot request a reveal on their own post")
        author_id = post.author_id
        # End the read transaction so the locked one below sees fresh rows.
        self.db.rollback()

        def work() -> _Resolution:
            ensure_pair_row(self.db, requester_id, author_id)
            with self.pair_locks.hold(requester_id, author_id):
                return self._resolve(post_id, requester_id, author_id, now or utcnow())

        resolution = run_with_retries(self.db, work, operation="request_reveal")

        if resolution.new_match:
            logger.info("Mutual reveal resolved for post %s", post_id)
        if resolution.queued:
            deliver_notifications(self.db, self.notifier, resolution.queued)

        outcome = RevealOutcome(
            requested=True,
            mutual=resolution.mutual,
            reveal_count=resolution.reveal_count,
        )
        if resolution.mutual:
            outcome.requester_profile, outcome.author_profile = self._fetch_pair_profiles(
                requester_id, author_id
            )
        return outcome

    def _resolve(
        self,
        post_id: str,
        requester_id: str,
        author_id: str,
        now: datetime,
    ) -> _Resolution:
        """Run the locked transaction. Commits on success."""
        db = self.db
        lock_pair_row(db, requester_id, author_id)
        post = get_post(db, post_id, refresh=True)
        if post is None or not post.is_live(now):
            raise NotFoundError("Post not found")

        created = self._ensure_request(post_id, requester_id, author_id, now)
        low, high = ordered_pair(requester_id, author_id)
        match = self._get_match(low, high)
        resolution = _Resolution(mutual=match is not None, reveal_count=0)

        if match is None:
            reciprocal = self._find_reciprocal(
                requester_id=author_id,
                author_id=requester_id,
                now=now,
            )
            if reciprocal is not None:
                # low_post_id is the post written by `low` that `high` asked about.
                if requester_id == low:
                    low_post_id, high_post_id = reciprocal.post_id, post_id
                else:
                    low_post_id, high_post_id = post_id, reciprocal.post_id
                db.add(
                    RevealMatch(
                        user_low_id=low,
                        user_high_id=high,
                        low_post_id=low_post_id,
                        high_post_id=high_post_id,
                        matched_at=now,
                    )
                )
                db.flush()
                for recipient_id, counterpart_id, asked_post_id in (
                    (requester_id, author_id, post_id),
                    (author_id, requester_id, reciprocal.post_id),
                ):
                    row = enqueue_notification(
                        db,
                        recipient_id=recipient_id,
                        kind=KIND_REVEAL_MUTUAL,
                        payload={"counterpart_id": counterpart_id, "post_id": asked_post_id},
                        dedupe_key=f"{KIND_REVEAL_MUTUAL}:{low}:{high}:{recipient_id}",
                    )
                    if row is not None:
                        resolution.queued.append(row.id)
                resolution.mutual = True
                resolution.new_match = True

        if created and not resolution.mutual:
            row = enqueue_notification(
                db,
                recipient_id=author_id,
                kind=KIND_REVEAL_REQUESTED,
                payload={"post_id": post_id},
                dedupe_key=f"{KIND_REVEAL_REQUESTED}:{post_id}:{requester_id}",
            )
            if row is not None:
                resolution.queued.append(row.id)

        resolution.reveal_count = self._count_requests(post_id)
        db.commit()
        return resolution

    def _ensure_request(
        self,
        post_id: str,
        requester_id: str,
        author_id: str,
        now: datetime,
    ) -> bool:
        existing = self.db.execute(
            select(RevealRequest)
            .where(RevealRequest.post_id == post_id, RevealRequest.requester_id == requester_id)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if existing is not None:
            return False
        self.db.add(
            RevealRequest(
                post_id=post_id,
                requester_id=requester_id,
                author_id=author_id,
                created_at=now,
            )
        )
        self.db.flush()
        return True

    def _get_match(self, low: str, high: str) -> RevealMatch | None:
        return self.db.execute(
            select(RevealMatch)
            .where(RevealMatch.user_low_id == low, RevealMatch.user_high_id == high)
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _find_reciprocal(
        self,
        *,
        requester_id: str,
        author_id: str,
        now: datetime,
    ) -> RevealRequest | None:
        """Return a request by ``requester_id`` on a recently live post by ``author_id``."""
        cutoff = recently_live_cutoff(now)
        stmt = (
            select(RevealRequest)
            .join(PulsePost, PulsePost.id == RevealRequest.post_id)
            .where(
                RevealRequest.requester_id == requester_id,
                RevealRequest.author_id == author_id,
                PulsePost.author_id == author_id,
                PulsePost.expires_at > cutoff,
                or_(PulsePost.deleted_at.is_(None), PulsePost.deleted_at > cutoff),
            )
            .order_by(RevealRequest.created_at.desc())
            .limit(1)
        )
        return self.db.execute(stmt).scalars().first()

    def _count_requests(self, post_id: str) -> int:
        return int(
            self.db.execute(
                select(func.count())
                .select_from(RevealRequest)
                .where(RevealRequest.post_id == post_id)
            ).scalar_one()
        )

    def _fetch_pair_profiles(
        self,
        requester_id: str,
        author_id: str,
    ) -> tuple[UserProfile, UserProfile]:
        try:
            return (
                self.profiles.get_user_profile(requester_id),
                self.profiles.get_user_profile(author_id),
            )
        except CollaboratorError as exc:
            logger.warning("Profile lookup for a mutual reveal failed: %s", exc)
            raise TransientError("Profiles are temporarily unavailable, try again") from exc

    def get_reveal_status(
        self,
        post_id: str,
        viewer_id: str,
        *,
        now: datetime | None = None,
    ) -> RevealOutcome:
        """Return the viewer's reveal state on a live or recently live post.

        Raises:
            NotFoundError: If the post is gone or retired beyond the window.
            TransientError: If profiles for a mutual pair could not be fetched.
        """
        moment = now or utcnow()
        post = get_post(self.db, post_id, refresh=True)
        if post is None or not is_recently_live(post, moment):
            raise NotFoundError("Post not found")

        author_id = post.author_id
        reveal_count = self._count_requests(post_id)
        if viewer_id == author_id:
            return RevealOutcome(requested=False, mutual=False, reveal_count=reveal_count)

        requested = (
            self.db.execute(
                select(RevealRequest.post_id).where(
                    RevealRequest.post_id == post_id,
                    RevealRequest.requester_id == viewer_id,
                )
            ).first()
            is not None
        )
        mutual = requested and self._get_match(*ordered_pair(viewer_id, author_id)) is not None
        outcome = RevealOutcome(requested=requested, mutual=mutual, reveal_count=reveal_count)
        if mutual:
            outcome.requester_profile, outcome.author_profile = self._fetch_pair_profiles(
                viewer_id, author_id
            )
        return outcome

    def list_matches(self, viewer_id: str) -> list[RevealMatchSummary]:
        """Return everyone the viewer has mutually revealed with, newest first."""
        matches = self.db.execute(
            select(RevealMatch)
            .where(
                or_(RevealMatch.user_low_id == viewer_id, RevealMatch.user_high_id == viewer_id)
            )
            .order_by(RevealMatch.matched_at.desc())
        ).scalars()

        summaries: list[RevealMatchSummary] = []
        for match in matches:
            counterpart_id = match.counterpart_of(viewer_id)
            # The post the viewer asked about is the one the counterpart wrote.
            post_id = (
                match.high_post_id
                if counterpart_id == match.user_high_id
                else match.low_post_id
            )
            summaries.append(
                RevealMatchSummary(
                    counterpart_id=counterpart_id,
                    matched_at=match.matched_at,
                    post_id=post_id,
                )
            )

        for summary in summaries:
            try:
                summary.counterpart_profile = self.profiles.get_user_profile(
                    summary.counterpart_id
                )
            except CollaboratorError as exc:
                logger.warning("Profile lookup for match listing failed: %s", exc)
                raise TransientError("Profiles are temporarily unavailable, try again") from exc
        return summaries
