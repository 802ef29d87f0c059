"""Advisory locks keyed on an unordered pair of users.

The reveal coordinator holds the pair lock while it checks reciprocity and
the sweeper takes the same lock before purging a post, so neither can run
in the middle of the other. Redis provides the lock when ``REDIS_URL`` is
configured; otherwise a per-process registry of thread locks is used.

The process-level lock alone does not order workers that share a database
without sharing Redis, so the locked transactions also take a row lock on
``reveal_pair_lock`` through :func:`lock_pair_row`.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import redis
from redis.exceptions import LockError, RedisError
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from campus_pulse.core.settings import settings
from campus_pulse.db.time import utcnow
from campus_pulse.models.reveal import RevealPairLock, ordered_pair

logger = logging.getLogger(__name__)


class PairLockTimeout(RuntimeError):
    """Raised when a pair lock could not be acquired in time."""


class _LocalLockRegistry:
    """Reference-counted thread locks so idle pairs do not accumulate."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    def checkout(self, key: str) -> threading.Lock:
        with self._guard:
            lock, users = self._locks.get(key, (threading.Lock(), 0))
            self._locks[key] = (lock, users + 1)
            return lock

    def checkin(self, key: str) -> None:
        with self._guard:
            lock, users = self._locks[key]
            if users <= 1:
                del self._locks[key]
            else:
                self._locks[key] = (lock, users - 1)

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)


class PairLockService:
    """Hands out mutually exclusive sections per unordered user pair."""

    def __init__(
        self,
        redis_url: str | None = None,
        *,
        timeout_seconds: float | None = None,
        ttl_seconds: int | None = None,
        redis_client: Any | None = None,
    ) -> None:
        self.timeout_seconds = (
            settings.pair_lock_timeout_seconds if timeout_seconds is None else timeout_seconds
        )
        self.ttl_seconds = settings.pair_lock_ttl_seconds if ttl_seconds is None else ttl_seconds
        self._redis = redis_client
        if self._redis is None and redis_url:
            self._redis = redis.from_url(redis_url)
        self._local = _LocalLockRegistry()

    @property
    def distributed(self) -> bool:
        """Return True when locks are shared across processes through Redis."""
        return self._redis is not None

    @staticmethod
    def key_for(first_user_id: str, second_user_id: str) -> str:
        """Return the lock key for the unordered pair."""
        low, high = ordered_pair(first_user_id, second_user_id)
        return f"pulse:pair-lock:{low}:{high}"

    @contextmanager
    def hold(
        self,
        first_user_id: str,
        second_user_id: str,
        *,
        blocking: bool = True,
    ) -> Iterator[None]:
        """Hold the pair lock for the duration of the block.

        Raises:
            PairLockTimeout: If the lock is busy (immediately when not
                ``blocking``, otherwise after the configured timeout).
        """
        key = self.key_for(first_user_id, second_user_id)
        if self._redis is not None:
            with self._hold_redis(key, blocking=blocking):
                yield
            return

        lock = self._local.checkout(key)
        try:
            acquired = (
                lock.acquire(timeout=self.timeout_seconds) if blocking else lock.acquire(False)
            )
            if not acquired:
                raise PairLockTimeout(f"Pair lock {key} is busy")
            try:
                yield
            finally:
                lock.release()
        finally:
            self._local.checkin(key)

    @contextmanager
    def _hold_redis(self, key: str, *, blocking: bool) -> Iterator[None]:
        lock = self._redis.lock(
            key,
            timeout=self.ttl_seconds,
            blocking_timeout=self.timeout_seconds,
        )
        try:
            acquired = lock.acquire(blocking=blocking)
        except RedisError as exc:
            raise PairLockTimeout(f"Pair lock {key} unavailable: {exc}") from exc
        if not acquired:
            raise PairLockTimeout(f"Pair lock {key} is busy")
        try:
            yield
        finally:
            try:
                lock.release()
            except LockError:
                # The TTL elapsed before release; the work already finished.
                logger.warning("Pair lock %s expired before release", key)


class _PairLockSingleton:
    """Singleton wrapper for PairLockService."""

    _instance: PairLockService | None = None

    @classmethod
    def get_instance(cls) -> PairLockService:
        """Get or create the singleton PairLockService instance."""
        if cls._instance is None:
            cls._instance = PairLockService(settings.redis_url)
        return cls._instance


def get_pair_lock_service() -> PairLockService:
    """Return the process-wide pair lock service."""
    return _PairLockSingleton.get_instance()


def ensure_pair_row(db: Session, first_user_id: str, second_user_id: str) -> None:
    """Create the lock row for the pair if it does not exist yet.

    Creation is committed on its own so that the row can be locked by the
    transaction that follows.
    """
    low, high = ordered_pair(first_user_id, second_user_id)
    existing = db.execute(
        select(RevealPairLock.user_low_id).where(
            RevealPairLock.user_low_id == low,
            RevealPairLock.user_high_id == high,
        )
    ).first()
    if existing is not None:
        return
    db.add(RevealPairLock(user_low_id=low, user_high_id=high, created_at=utcnow()))
    try:
        db.commit()
    except IntegrityError:
        # A concurrent caller created it first.
        db.rollback()


def lock_pair_row(
    db: Session,
    first_user_id: str,
    second_user_id: str,
    *,
    nowait: bool = False,
) -> None:
    """Lock the pair's row until the current transaction ends.

    Raises:
        PairLockTimeout: If the row has not been created with :func:`ensure_pair_row`.
        sqlalchemy.exc.OperationalError: If ``nowait`` is set and the row is locked.
    """
    low, high = ordered_pair(first_user_id, second_user_id)
    row = db.execute(
        select(RevealPairLock)
        .where(RevealPairLock.user_low_id == low, RevealPairLock.user_high_id == high)
        .with_for_update(nowait=nowait)
        .execution_options(populate_existing=True)
    ).scalar_one_or_none()
    if row is None:
        raise PairLockTimeout(f"Pair lock row {low}:{high} is missing")
