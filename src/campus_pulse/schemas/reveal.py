# src/campus_pulse/schemas/reveal.py
"""Reveal schemas."""

from datetime import datetime

from pydantic import BaseModel

from .user import UserProfile


class RevealResult(BaseModel):
    """State of the caller's reveal request on a post."""

    requested: bool
    mutual: bool
    reveal_count: int = 0
    requester_profile: UserProfile | None = None
    author_profile: UserProfile | None = None


class RevealMatchView(BaseModel):
    """A user the viewer has mutually revealed with."""

    counterpart: UserProfile
    matched_at: datetime
    # Post of the counterpart that the viewer asked about.
    post_id: str
