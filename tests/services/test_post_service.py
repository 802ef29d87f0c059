# mypy: ignore-errors
# tests/services/test_post_service.py
"""Tests for the post store."""

from datetime import timedelta

import pytest

from campus_pulse.core.errors import AuthorizationError, NotFoundError, ValidationError
from campus_pulse.db.time import utcnow
from campus_pulse.models import PostCategory
from campus_pulse.services import post_service


def test_confession_at_limit_expires_in_24h(db_session) -> None:
    """A 280 character anonymous confession lives exactly one day."""
    now = utcnow()
    post = post_service.create_post(
        db_session,
        author_id="alice",
        content="y" * 280,
        category="confession",
        is_anonymous=True,
        now=now,
    )
    assert post.expires_at - post.created_at == timedelta(hours=24)
    assert post.category == PostCategory.CONFESSION
    assert post.is_live(now)
    assert not post.is_live(now + timedelta(hours=24))


def test_length_counts_code_points(db_session) -> None:
    """Multi-byte characters count once each."""
    post = post_service.create_post(
        db_session,
        author_id="alice",
        content="🔥" * 280,
        category="hot_take",
    )
    assert len(post.content) == 280


@pytest.mark.parametrize("content", ["", "    ", "z" * 281, " " + "z" * 282 + " "])
def test_invalid_content_rejected(db_session, content) -> None:
    """Empty or overlong content never reaches the store."""
    with pytest.raises(ValidationError):
        post_service.create_post(
            db_session,
            author_id="alice",
            content=content,
            category="general",
        )


def test_content_trimmed_before_length_check(db_session) -> None:
    """Surrounding whitespace does not count against the limit."""
    post = post_service.create_post(
        db_session,
        author_id="alice",
        content="   " + "z" * 280 + "\n",
        category="general",
    )
    assert post.content == "z" * 280


def test_unknown_category_rejected(db_session) -> None:
    with pytest.raises(ValidationError):
        post_service.create_post(
            db_session,
            author_id="alice",
            content="hi",
            category="sports",
        )


def test_delete_by_non_author(db_session, make_post) -> None:
    post_id = make_post(author_id="alice")
    with pytest.raises(AuthorizationError):
        post_service.delete_post(db_session, post_id=post_id, requester_id="bob")
    assert post_service.get_post(db_session, post_id, refresh=True).deleted_at is None


def test_delete_sets_deleted_at_once(db_session, make_post) -> None:
    """A second delete keeps the original timestamp."""
    post_id = make_post(author_id="alice")
    first = utcnow() - timedelta(minutes=5)
    post_service.delete_post(db_session, post_id=post_id, requester_id="alice", now=first)
    post_service.delete_post(db_session, post_id=post_id, requester_id="alice")
    post = post_service.get_post(db_session, post_id, refresh=True)
    assert post.deleted_at == first


def test_delete_unknown_post(db_session) -> None:
    with pytest.raises(NotFoundError):
        post_service.delete_post(db_session, post_id="missing", requester_id="alice")


def test_get_live_post_rejects_expired(db_session, make_post) -> None:
    post_id = make_post(now=utcnow() - timedelta(hours=24, seconds=1))
    assert post_service.get_post(db_session, post_id) is not None
    with pytest.raises(NotFoundError):
        post_service.get_live_post(db_session, post_id)
