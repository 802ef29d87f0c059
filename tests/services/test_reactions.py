# mypy: ignore-errors
# tests/services/test_reactions.py
"""Tests for the reaction ledger."""

import threading

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from campus_pulse.core.errors import NotFoundError, ValidationError
from campus_pulse.core.settings import settings
from campus_pulse.db.session import Base
from campus_pulse.models import NotificationOutbox, PulseReaction, ReactionType
from campus_pulse.services import post_service
from campus_pulse.services.reactions import (
    get_counts,
    get_viewer_reactions,
    toggle_reaction,
)


def test_toggle_sequence(db_session, make_post) -> None:
    """Create, replace, then remove."""
    post_id = make_post()
    outcome = toggle_reaction(db_session, post_id=post_id, viewer_id="bob", reaction_type="fire")
    assert outcome.active is ReactionType.FIRE

    outcome = toggle_reaction(db_session, post_id=post_id, viewer_id="bob", reaction_type="skull")
    assert outcome.active is ReactionType.SKULL
    assert outcome.counts == {"fire": 0, "skull": 1, "heart": 0}

    outcome = toggle_reaction(db_session, post_id=post_id, viewer_id="bob", reaction_type="skull")
    assert outcome.active is None
    assert outcome.counts == {"fire": 0, "skull": 0, "heart": 0}
    assert db_session.scalar(select(func.count()).select_from(PulseReaction)) == 0


def test_unknown_type(db_session, make_post) -> None:
    post_id = make_post()
    with pytest.raises(ValidationError):
        toggle_reaction(db_session, post_id=post_id, viewer_id="bob", reaction_type="poop")


def test_missing_post(db_session) -> None:
    with pytest.raises(NotFoundError):
        toggle_reaction(db_session, post_id="gone", viewer_id="bob", reaction_type="fire")


def test_viewer_reactions_batch(db_session, make_post) -> None:
    first = make_post(content="one")
    second = make_post(content="two")
    toggle_reaction(db_session, post_id=first, viewer_id="bob", reaction_type="heart")
    assert get_viewer_reactions(db_session, "bob", [first, second]) == {
        first: ReactionType.HEART
    }
    assert get_counts(db_session, second) == {"fire": 0, "skull": 0, "heart": 0}


def test_reaction_notification_once(db_session, make_post, notifier, monkeypatch) -> None:
    """With reaction notifications on, the author hears about a viewer once."""
    monkeypatch.setattr(settings, "notify_on_reaction", True)
    post_id = make_post(author_id="alice")
    for reaction in ("fire", "fire", "heart"):
        toggle_reaction(
            db_session,
            post_id=post_id,
            viewer_id="bob",
            reaction_type=reaction,
            notifier=notifier,
        )
    # Reacting to your own post never notifies.
    toggle_reaction(
        db_session,
        post_id=post_id,
        viewer_id="alice",
        reaction_type="fire",
        notifier=notifier,
    )
    assert notifier.sent == [("alice", "reaction", {"post_id": post_id, "reaction": "fire"})]
    assert db_session.scalar(select(func.count()).select_from(NotificationOutbox)) == 1


def test_concurrent_double_tap(tmp_path) -> None:
    """Two racing toggles of the same type leave no reaction behind."""
    engine = create_engine(
        f"sqlite:///{tmp_path / 'reactions.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    Sessions = sessionmaker(bind=engine)
    try:
        with Sessions() as setup:
            post_id = post_service.create_post(
                setup,
                author_id="alice",
                content="double tap me",
                category="general",
            ).id

        barrier = threading.Barrier(2)
        errors = []

        def tap() -> None:
            with Sessions() as session:
                barrier.wait()
                try:
                    toggle_reaction(
                        session,
                        post_id=post_id,
                        viewer_id="bob",
                        reaction_type="fire",
                    )
                except Exception as exc:  # surfaced below
                    errors.append(exc)

        threads = [threading.Thread(target=tap) for _ in range(2)]
        for thread in threads:
            thread.start()
        for thread in threads:
            thread.join()

        assert errors == []
        with Sessions() as check:
            assert get_counts(check, post_id) == {"fire": 0, "skull": 0, "heart": 0}
    finally:
        engine.dispose()
