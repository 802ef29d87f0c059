# src/campus_pulse/schemas/reaction.py
"""Reaction schemas."""

from pydantic import BaseModel, ConfigDict, Field

from campus_pulse.models.reaction import ReactionType


class ReactionToggle(BaseModel):
    """Schema for toggling a reaction on a post."""

    reaction_type: ReactionType = Field(..., alias="type", description="fire, skull or heart")

    model_config = ConfigDict(populate_by_name=True)


class ReactionResult(BaseModel):
    """Viewer's active reaction and the post's counts after a toggle."""

    active: ReactionType | None
    counts: dict[str, int]
