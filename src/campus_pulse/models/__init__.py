# src/campus_pulse/models/__init__.py
"""SQLAlchemy models for the Campus Pulse application."""

from .notification import NotificationOutbox
from .post import PostCategory, PulsePost
from .reaction import PulseReaction, ReactionType
from .reveal import RevealMatch, RevealPairLock, RevealRequest, ordered_pair

__all__ = [
    "NotificationOutbox",
    "PostCategory", "PulsePost",
    "PulseReaction", "ReactionType",
    "RevealMatch", "RevealPairLock", "RevealRequest", "ordered_pair",
]
