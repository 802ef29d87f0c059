# src/campus_pulse/schemas/post.py
"""Post and feed schemas."""

from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field

from campus_pulse.models.post import PostCategory

from .user import UserProfile

RevealState = Literal["none", "requested", "mutual"]


class PostCreate(BaseModel):
    """Schema for creating a new pulse.

    Length is checked on the trimmed content by the service, so only the
    type is enforced here.
    """

    content: str = Field(..., description="Post text, trimmed before storage")
    category: PostCategory = Field(PostCategory.GENERAL, description="Feed category")
    is_anonymous: bool = Field(True, description="Hide the author behind a pseudonym")


class PostView(BaseModel):
    """A post as seen by one viewer."""

    id: str
    content: str
    category: PostCategory
    is_anonymous: bool
    is_owner: bool
    author: UserProfile | None = None
    pseudonym: str
    reactions: dict[str, int]
    viewer_reaction: str | None = None
    reveal_state: RevealState = "none"
    reveal_count: int = 0
    created_at: datetime
    expires_at: datetime


class FeedPage(BaseModel):
    """One page of the feed."""

    items: list[PostView]
    next_cursor: str | None = None
