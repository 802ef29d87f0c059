# src/campus_pulse/services/__init__.py
"""Business logic services for the Campus Pulse application."""

from .feed import FeedAssembler
from .pair_lock import PairLockService
from .reveal import RevealCoordinator
from .sweeper import ExpirySweeper, ExpirySweepWorker

__all__ = [
    "FeedAssembler",
    "PairLockService",
    "RevealCoordinator",
    "ExpirySweeper",
    "ExpirySweepWorker",
]
