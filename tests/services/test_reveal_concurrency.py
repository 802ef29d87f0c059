# mypy: ignore-errors
# tests/services/test_reveal_concurrency.py
"""Racing reciprocal reveal requests against a shared database file."""

import threading

import pytest
from sqlalchemy import create_engine, func, select
from sqlalchemy.orm import sessionmaker

from campus_pulse.db.session import Base
from campus_pulse.models import NotificationOutbox, RevealMatch
from campus_pulse.services import post_service
from campus_pulse.services.pair_lock import PairLockService
from campus_pulse.services.reveal import RevealCoordinator


@pytest.fixture()
def file_sessions(tmp_path):
    engine = create_engine(
        f"sqlite:///{tmp_path / 'reveal.db'}",
        connect_args={"check_same_thread": False, "timeout": 30},
    )
    Base.metadata.create_all(engine)
    try:
        yield sessionmaker(bind=engine)
    finally:
        engine.dispose()


@pytest.mark.parametrize("shared_locks", [True, False], ids=["one-process", "per-worker-locks"])
@pytest.mark.parametrize("round_", range(5))
def test_racing_reciprocal_requests_resolve_once(
    file_sessions, profiles, notifier, round_, shared_locks
) -> None:
    """A->B and B->A at the same time yield one match and one notice each.

    Without shared locks each worker has its own lock service, as separate
    processes without Redis do, and only the database orders them.
    """
    with file_sessions() as setup:
        alice_post = post_service.create_post(
            setup, author_id="alice", content="a", category="general"
        ).id
        bob_post = post_service.create_post(
            setup, author_id="bob", content="b", category="general"
        ).id

    shared = PairLockService(None, timeout_seconds=10.0)
    barrier = threading.Barrier(2)
    results = {}
    errors = []

    def request(requester_id, post_id):
        with file_sessions() as session:
            coordinator = RevealCoordinator(
                session,
                profiles=profiles,
                notifier=notifier,
                pair_locks=shared if shared_locks else PairLockService(None, timeout_seconds=10.0),
            )
            barrier.wait()
            try:
                results[requester_id] = coordinator.request_reveal(post_id, requester_id)
            except Exception as exc:  # surfaced below
                errors.append(exc)

    threads = [
        threading.Thread(target=request, args=("alice", bob_post)),
        threading.Thread(target=request, args=("bob", alice_post)),
    ]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert errors == []
    assert sorted(result.mutual for result in results.values()) == [False, True]

    with file_sessions() as check:
        assert check.scalar(select(func.count()).select_from(RevealMatch)) == 1
        mutual_rows = check.scalars(
            select(NotificationOutbox.recipient_id).where(
                NotificationOutbox.kind == "reveal_mutual"
            )
        ).all()
        assert sorted(mutual_rows) == ["alice", "bob"]

    assert notifier.kinds_for("alice").count("reveal_mutual") == 1
    assert notifier.kinds_for("bob").count("reveal_mutual") == 1
