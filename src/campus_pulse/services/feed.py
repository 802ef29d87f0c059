"""Read side: the feed as seen by one viewer."""

from __future__ import annotations

import logging
from collections.abc import Sequence
from datetime import datetime

from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from campus_pulse.core.errors import ValidationError
from campus_pulse.core.settings import settings
from campus_pulse.db.time import utcnow
from campus_pulse.models.post import PostCategory, PulsePost
from campus_pulse.models.reveal import RevealMatch, RevealRequest, ordered_pair
from campus_pulse.repositories.post_repo import PostRepository
from campus_pulse.schemas.post import FeedPage, PostView
from campus_pulse.schemas.user import UserProfile
from campus_pulse.services.collaborators import CollaboratorError, ProfileDirectory
from campus_pulse.services.post_service import get_live_post, parse_category
from campus_pulse.services.reactions import get_counts_for_posts, get_viewer_reactions
from campus_pulse.utils.cursor import decode_cursor, encode_cursor
from campus_pulse.utils.pseudonym import pseudonym_for

logger = logging.getLogger(__name__)


class FeedAssembler:
    """Builds paginated, viewer-annotated views of live posts."""

    def __init__(self, db: Session, *, profiles: ProfileDirectory) -> None:
        self.db = db
        self.profiles = profiles
        self.repo = PostRepository(db)

    def list_feed(
        self,
        viewer_id: str,
        *,
        category: str | PostCategory | None = None,
        cursor: str | None = None,
        limit: int | None = None,
        now: datetime | None = None,
    ) -> FeedPage:
        """Return one page of live posts, newest first.

        Raises:
            ValidationError: If the cursor, category or limit is invalid.
        """
        page_size = settings.feed_page_size if limit is None else limit
        if page_size < 1:
            raise ValidationError("limit must be positive")
        page_size = min(page_size, settings.feed_max_page_size)
        parsed_category = parse_category(category) if category is not None else None
        before = decode_cursor(cursor) if cursor else None

        posts = self.repo.list_live(
            now=now or utcnow(),
            limit=page_size + 1,
            category=parsed_category.value if parsed_category else None,
            before=before,
        )
        next_cursor = None
        if len(posts) > page_size:
            posts = posts[:page_size]
            last = posts[-1]
            next_cursor = encode_cursor(last.created_at, last.id)

        return FeedPage(items=self.build_views(posts, viewer_id), next_cursor=next_cursor)

    def get_post_view(
        self,
        post_id: str,
        viewer_id: str,
        *,
        now: datetime | None = None,
    ) -> PostView:
        """Return a single live post annotated for the viewer."""
        post = get_live_post(self.db, post_id, now=now)
        return self.build_views([post], viewer_id)[0]

    def build_views(self, posts: Sequence[PulsePost], viewer_id: str) -> list[PostView]:
        """Annotate posts with counts and the viewer's own reaction and reveal state."""
        if not posts:
            return []
        post_ids = [post.id for post in posts]
        counts = get_counts_for_posts(self.db, post_ids)
        viewer_reactions = get_viewer_reactions(self.db, viewer_id, post_ids)
        requested_ids = self._requested_post_ids(viewer_id, post_ids)
        reveal_counts = self._reveal_counts(post_ids)
        matched_authors = self._matched_authors(
            viewer_id, {post.author_id for post in posts if post.id in requested_ids}
        )
        profile_cache: dict[str, UserProfile] = {}

        views: list[PostView] = []
        for post in posts:
            is_owner = post.author_id == viewer_id
            reveal_state = "none"
            if post.id in requested_ids:
                reveal_state = "mutual" if post.author_id in matched_authors else "requested"

            author = None
            if not post.is_anonymous or is_owner or reveal_state == "mutual":
                author = self._profile(post.author_id, profile_cache)

            reaction = viewer_reactions.get(post.id)
            views.append(
                PostView(
                    id=post.id,
                    content=post.content,
                    category=PostCategory(post.category),
                    is_anonymous=post.is_anonymous,
                    is_owner=is_owner,
                    author=author,
                    pseudonym=pseudonym_for(post.id, post.author_id),
                    reactions=counts[post.id],
                    viewer_reaction=reaction.value if reaction else None,
                    reveal_state=reveal_state,
                    reveal_count=reveal_counts.get(post.id, 0),
                    created_at=post.created_at,
                    expires_at=post.expires_at,
                )
            )
        return views

    def _requested_post_ids(self, viewer_id: str, post_ids: list[str]) -> set[str]:
        rows = self.db.execute(
            select(RevealRequest.post_id).where(
                RevealRequest.requester_id == viewer_id,
                RevealRequest.post_id.in_(post_ids),
            )
        ).scalars()
        return set(rows)

    def _reveal_counts(self, post_ids: list[str]) -> dict[str, int]:
        rows = self.db.execute(
            select(RevealRequest.post_id, func.count())
            .where(RevealRequest.post_id.in_(post_ids))
            .group_by(RevealRequest.post_id)
        )
        return {post_id: int(total) for post_id, total in rows}

    def _matched_authors(self, viewer_id: str, author_ids: set[str]) -> set[str]:
        author_ids.discard(viewer_id)
        if not author_ids:
            return set()
        pairs = [ordered_pair(viewer_id, author_id) for author_id in author_ids]
        lows = {low for low, _ in pairs}
        highs = {high for _, high in pairs}
        rows = self.db.execute(
            select(RevealMatch.user_low_id, RevealMatch.user_high_id).where(
                RevealMatch.user_low_id.in_(lows),
                RevealMatch.user_high_id.in_(highs),
                or_(
                    RevealMatch.user_low_id == viewer_id,
                    RevealMatch.user_high_id == viewer_id,
                ),
            )
        )
        matched = set()
        for low, high in rows:
            counterpart = high if low == viewer_id else low
            if counterpart in author_ids:
                matched.add(counterpart)
        return matched

    def _profile(self, user_id: str, cache: dict[str, UserProfile]) -> UserProfile:
        if user_id not in cache:
            try:
                cache[user_id] = self.profiles.get_user_profile(user_id)
            except CollaboratorError as exc:
                logger.warning("Profile lookup for feed author failed: %s", exc)
                cache[user_id] = UserProfile(id=user_id)
        return cache[user_id]
