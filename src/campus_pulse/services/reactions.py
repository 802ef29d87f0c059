"""Reaction ledger: one reaction slot per viewer per post."""

from __future__ import annotations

import logging
from collections.abc import Iterable
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from campus_pulse.core.errors import ValidationError
from campus_pulse.core.settings import settings
from campus_pulse.db.time import utcnow
from campus_pulse.models.reaction import PulseReaction, ReactionType
from campus_pulse.services.collaborators import Notifier
from campus_pulse.services.notifications import (
    KIND_REACTION,
    deliver_notifications,
    enqueue_notification,
)
from campus_pulse.services.post_service import get_live_post
from campus_pulse.services.retry import run_with_retries

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReactionOutcome:
    """Result of a toggle: the viewer's active reaction and fresh counts."""

    active: ReactionType | None
    counts: dict[str, int]


def _empty_counts() -> dict[str, int]:
    return {reaction.value: 0 for reaction in ReactionType}


def get_counts(db: Session, post_id: str) -> dict[str, int]:
    """Return counts for every reaction type on a post, zeros included."""
    return get_counts_for_posts(db, [post_id]).get(post_id, _empty_counts())


def get_counts_for_posts(db: Session, post_ids: Iterable[str]) -> dict[str, dict[str, int]]:
    """Return reaction counts keyed by post id for a batch of posts."""
    ids = list(post_ids)
    counts = {post_id: _empty_counts() for post_id in ids}
    if not ids:
        return counts
    rows = db.execute(
        select(PulseReaction.post_id, PulseReaction.reaction_type, func.count())
        .where(PulseReaction.post_id.in_(ids))
        .group_by(PulseReaction.post_id, PulseReaction.reaction_type)
    )
    for post_id, reaction_type, total in rows:
        counts[post_id][reaction_type] = int(total)
    return counts


def get_viewer_reactions(
    db: Session,
    viewer_id: str,
    post_ids: Iterable[str],
) -> dict[str, ReactionType]:
    """Return the viewer's active reaction per post, omitting posts without one."""
    ids = list(post_ids)
    if not ids:
        return {}
    rows = db.execute(
        select(PulseReaction.post_id, PulseReaction.reaction_type).where(
            PulseReaction.viewer_id == viewer_id,
            PulseReaction.post_id.in_(ids),
        )
    )
    return {post_id: ReactionType(reaction_type) for post_id, reaction_type in rows}


def toggle_reaction(
    db: Session,
    *,
    post_id: str,
    viewer_id: str,
    reaction_type: str | ReactionType,
    notifier: Notifier | None = None,
    now: datetime | None = None,
) -> ReactionOutcome:
    """Create, remove, or replace the viewer's reaction on a live post.

    No reaction creates one, the same type removes it, a different type
    replaces it. A racing insert on the same key is rolled back and re-run.

    Raises:
        ValidationError: If ``reaction_type`` is unknown.
        NotFoundError: If the post is not live.
        TransientError: If the toggle kept conflicting.
    """
    try:
        wanted = ReactionType(reaction_type)
    except ValueError as exc:
        raise ValidationError(f"Unknown reaction type: {reaction_type}") from exc

    def work() -> tuple[ReactionOutcome, list[int]]:
        moment = now or utcnow()
        post = get_live_post(db, post_id, now=moment, refresh=True)
        existing = db.execute(
            select(PulseReaction)
            .where(PulseReaction.post_id == post_id, PulseReaction.viewer_id == viewer_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

        queued: list[int] = []
        if existing is None:
            db.add(
                PulseReaction(
                    post_id=post_id,
                    viewer_id=viewer_id,
                    reaction_type=wanted.value,
                    created_at=moment,
                    updated_at=moment,
                )
            )
            active: ReactionType | None = wanted
            if settings.notify_on_reaction and post.author_id != viewer_id:
                row = enqueue_notification(
                    db,
                    recipient_id=post.author_id,
                    kind=KIND_REACTION,
                    payload={"post_id": post_id, "reaction": wanted.value},
                    dedupe_key=f"reaction:{post_id}:{viewer_id}",
                )
                if row is not None:
                    queued.append(row.id)
        elif existing.reaction_type == wanted.value:
            db.delete(existing)
            active = None
        else:
            existing.reaction_type = wanted.value
            existing.updated_at = moment
            active = wanted

        db.flush()
        counts = get_counts(db, post_id)
        db.commit()
        return ReactionOutcome(active=active, counts=counts), queued

    outcome, queued = run_with_retries(db, work, operation="toggle_reaction")
    if queued and notifier is not None:
        deliver_notifications(db, notifier, queued)
    return outcome
