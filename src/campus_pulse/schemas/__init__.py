# src/campus_pulse/schemas/__init__.py
"""
Pydantic schemas for API request/response models.

These schemas define the structure of API data for serialization and validation.
"""

from .post import FeedPage, PostCreate, PostView
from .reaction import ReactionResult, ReactionToggle
from .reveal import RevealMatchView, RevealResult
from .user import UserProfile

__all__ = [
    "FeedPage", "PostCreate", "PostView",
    "ReactionResult", "ReactionToggle",
    "RevealMatchView", "RevealResult",
    "UserProfile",
]
