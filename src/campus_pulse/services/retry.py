"""Bounded local retries for contended transactions."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from typing import TypeVar

from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from campus_pulse.core.errors import PulseError, TransientError
from campus_pulse.core.settings import settings
from campus_pulse.services.pair_lock import PairLockTimeout

logger = logging.getLogger(__name__)

T = TypeVar("T")

RETRYABLE_ERRORS = (OperationalError, IntegrityError, PairLockTimeout)


def run_with_retries(
    db: Session,
    work: Callable[[], T],
    *,
    operation: str,
    max_retries: int | None = None,
    backoff_seconds: float | None = None,
) -> T:
    """Run ``work`` until it commits, rolling back between attempts.

    ``work`` must perform its whole transaction, commit included. Storage
    conflicts and lock timeouts are retried; domain errors roll back and
    propagate immediately.

    Raises:
        TransientError: If every attempt hit a retryable failure.
    """
    retries = settings.transaction_max_retries if max_retries is None else max_retries
    backoff = (
        settings.transaction_retry_backoff_seconds if backoff_seconds is None else backoff_seconds
    )
    attempts = max(0, retries) + 1
    last_error: Exception | None = None

    for attempt in range(1, attempts + 1):
        try:
            return work()
        except RETRYABLE_ERRORS as exc:
            db.rollback()
            last_error = exc
            logger.debug("%s attempt %d/%d failed: %s", operation, attempt, attempts, exc)
            if attempt < attempts and backoff > 0:
                time.sleep(backoff * attempt)
        except PulseError:
            db.rollback()
            raise

    raise TransientError(f"{operation} did not complete, try again") from last_error
