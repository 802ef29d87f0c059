# mypy: ignore-errors
# tests/services/test_pair_lock.py
"""Tests for the pair lock service."""

import threading
import time

import pytest
from redis.exceptions import LockError

from sqlalchemy import select

from campus_pulse.models import RevealPairLock
from campus_pulse.services.pair_lock import (
    PairLockService,
    PairLockTimeout,
    ensure_pair_row,
    lock_pair_row,
)


def test_key_is_order_independent() -> None:
    assert PairLockService.key_for("bob", "alice") == PairLockService.key_for("alice", "bob")


def test_non_blocking_hold_fails_when_busy() -> None:
    locks = PairLockService(None, timeout_seconds=1.0)
    with locks.hold("alice", "bob"):
        with pytest.raises(PairLockTimeout):
            with locks.hold("bob", "alice", blocking=False):
                pass
        # A different pair is independent.
        with locks.hold("alice", "carol", blocking=False):
            pass


def test_blocking_hold_times_out() -> None:
    locks = PairLockService(None, timeout_seconds=0.05)
    held = threading.Event()
    release = threading.Event()

    def holder() -> None:
        with locks.hold("alice", "bob"):
            held.set()
            release.wait(5)

    thread = threading.Thread(target=holder)
    thread.start()
    held.wait(5)
    try:
        with pytest.raises(PairLockTimeout):
            with locks.hold("alice", "bob"):
                pass
    finally:
        release.set()
        thread.join()


def test_blocking_hold_waits_for_release() -> None:
    locks = PairLockService(None, timeout_seconds=5.0)
    order = []
    held = threading.Event()

    def holder() -> None:
        with locks.hold("alice", "bob"):
            held.set()
            time.sleep(0.05)
            order.append("holder")

    thread = threading.Thread(target=holder)
    thread.start()
    held.wait(5)
    with locks.hold("bob", "alice"):
        order.append("waiter")
    thread.join()
    assert order == ["holder", "waiter"]


def test_idle_locks_are_released() -> None:
    locks = PairLockService(None)
    with locks.hold("alice", "bob"):
        assert len(locks._local) == 1
    assert len(locks._local) == 0


class _FakeRedisLock:
    def __init__(self, store, key, expire_on_release=False):
        self.store = store
        self.key = key
        self.expire_on_release = expire_on_release

    def acquire(self, blocking=True):
        if self.key in self.store:
            return False
        self.store.add(self.key)
        return True

    def release(self):
        self.store.discard(self.key)
        if self.expire_on_release:
            raise LockError("Cannot release an unlocked lock")


class _FakeRedis:
    def __init__(self, expire_on_release=False):
        self.held = set()
        self.requested = []
        self.expire_on_release = expire_on_release

    def lock(self, key, timeout=None, blocking_timeout=None):
        self.requested.append((key, timeout, blocking_timeout))
        return _FakeRedisLock(self.held, key, self.expire_on_release)


def test_redis_backed_lock() -> None:
    fake = _FakeRedis()
    locks = PairLockService(redis_client=fake, timeout_seconds=2.0, ttl_seconds=30)
    assert locks.distributed is True
    with locks.hold("bob", "alice"):
        assert fake.held == {"pulse:pair-lock:alice:bob"}
        with pytest.raises(PairLockTimeout):
            with locks.hold("alice", "bob", blocking=False):
                pass
    assert fake.held == set()
    assert fake.requested[0] == ("pulse:pair-lock:alice:bob", 30, 2.0)


def test_redis_lock_expired_before_release_is_tolerated() -> None:
    locks = PairLockService(redis_client=_FakeRedis(expire_on_release=True))
    with locks.hold("alice", "bob"):
        pass


def test_pair_row_is_created_once(db_session) -> None:
    """Either order of the pair maps to a single lock row."""
    ensure_pair_row(db_session, "bob", "alice")
    ensure_pair_row(db_session, "alice", "bob")
    rows = db_session.scalars(select(RevealPairLock)).all()
    assert [(row.user_low_id, row.user_high_id) for row in rows] == [("alice", "bob")]

    lock_pair_row(db_session, "bob", "alice")
    db_session.rollback()


def test_locking_a_missing_pair_row(db_session) -> None:
    with pytest.raises(PairLockTimeout):
        lock_pair_row(db_session, "alice", "carol", nowait=True)
