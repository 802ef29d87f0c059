"""Service-level helpers for the post store."""
from __future__ import annotations

import logging
from datetime import datetime, timedelta

from sqlalchemy.orm import Session

from campus_pulse.core.errors import AuthorizationError, NotFoundError, ValidationError
from campus_pulse.core.settings import settings
from campus_pulse.db.time import utcnow
from campus_pulse.models.post import PostCategory, PulsePost
from campus_pulse.repositories.post_repo import PostRepository

logger = logging.getLogger(__name__)


def normalize_content(content: str) -> str:
    """Return trimmed post content.

    Raises:
        ValidationError: If the trimmed text is empty or too long.
    """
    trimmed = content.strip()
    if not trimmed:
        raise ValidationError("Post content must not be empty")
    # len() counts code points, which is what the limit is expressed in.
    if len(trimmed) > settings.post_max_chars:
        raise ValidationError(f"Post content exceeds {settings.post_max_chars} characters")
    return trimmed


def parse_category(category: str | PostCategory) -> PostCategory:
    """Return ``category`` as a member of the closed category set."""
    try:
        return PostCategory(category)
    except ValueError as exc:
        raise ValidationError(f"Unknown category: {category}") from exc


def create_post(
    db: Session,
    *,
    author_id: str,
    content: str,
    category: str | PostCategory,
    is_anonymous: bool = True,
    now: datetime | None = None,
) -> PulsePost:
    """Validate and persist a new post.

    Args:
        db: Session used to persist the post.
        author_id: Identity of the caller.
        content: Raw text; stored trimmed.
        category: One of :class:`PostCategory`.
        is_anonymous: Whether the author is hidden behind a pseudonym.
        now: Creation time, defaults to the current UTC time.

    Returns:
        The committed post.

    Raises:
        ValidationError: If the content or category is invalid.
    """
    text = normalize_content(content)
    parsed_category = parse_category(category)
    created_at = now or utcnow()

    post = PostRepository(db).create(
        author_id=author_id,
        content=text,
        category=parsed_category.value,
        is_anonymous=is_anonymous,
        created_at=created_at,
        expires_at=created_at + timedelta(hours=settings.post_lifetime_hours),
    )
    db.commit()
    db.refresh(post)
    return post


def get_post(db: Session, post_id: str, *, refresh: bool = False) -> PulsePost | None:
    """Return a post whether or not it is still live."""
    return PostRepository(db).get_by_id(post_id, refresh=refresh)


def get_live_post(
    db: Session,
    post_id: str,
    *,
    now: datetime | None = None,
    refresh: bool = False,
) -> PulsePost:
    """Return a live post.

    Raises:
        NotFoundError: If the post is missing, deleted, or expired.
    """
    post = get_post(db, post_id, refresh=refresh)
    if post is None or not post.is_live(now or utcnow()):
        raise NotFoundError("Post not found")
    return post


def delete_post(
    db: Session,
    *,
    post_id: str,
    requester_id: str,
    now: datetime | None = None,
) -> None:
    """Soft delete a post owned by ``requester_id``.

    Deleting an already deleted post succeeds without changing it.

    Raises:
        NotFoundError: If the post does not exist.
        AuthorizationError: If the requester is not the author.
    """
    post = get_post(db, post_id, refresh=True)
    if post is None:
        raise NotFoundError("Post not found")
    if post.author_id != requester_id:
        raise AuthorizationError("Only the author can delete this post")
    if post.deleted_at is not None:
        return

    post.deleted_at = now or utcnow()
    db.commit()
    logger.info("Post %s deleted by its author", post_id)
