# mypy: ignore-errors
# tests/services/test_retry.py
"""Tests for the transaction retry helper."""

import pytest
from sqlalchemy.exc import IntegrityError, OperationalError

from campus_pulse.core.errors import NotFoundError, TransientError
from campus_pulse.services.pair_lock import PairLockTimeout
from campus_pulse.services.retry import run_with_retries


class _Session:
    def __init__(self):
        self.rollbacks = 0

    def rollback(self):
        self.rollbacks += 1


def test_returns_first_success() -> None:
    session = _Session()
    assert run_with_retries(session, lambda: 42, operation="noop") == 42
    assert session.rollbacks == 0


def test_retries_conflicts_then_succeeds() -> None:
    session = _Session()
    failures = [
        IntegrityError("INSERT", {}, Exception("duplicate")),
        PairLockTimeout("busy"),
    ]

    def work():
        if failures:
            raise failures.pop(0)
        return "done"

    result = run_with_retries(session, work, operation="flaky", backoff_seconds=0)
    assert result == "done"
    assert session.rollbacks == 2


def test_exhaustion_is_transient() -> None:
    session = _Session()
    attempts = []

    def work():
        attempts.append(1)
        raise OperationalError("UPDATE", {}, Exception("database is locked"))

    with pytest.raises(TransientError) as excinfo:
        run_with_retries(session, work, operation="stuck", max_retries=2, backoff_seconds=0)
    assert len(attempts) == 3
    assert isinstance(excinfo.value.__cause__, OperationalError)


def test_domain_errors_are_not_retried() -> None:
    session = _Session()
    attempts = []

    def work():
        attempts.append(1)
        raise NotFoundError("Post not found")

    with pytest.raises(NotFoundError):
        run_with_retries(session, work, operation="lookup")
    assert attempts == [1]
    assert session.rollbacks == 1
