# src/campus_pulse/schemas/user.py
"""User profile schemas supplied by the profile collaborator."""

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class UserProfile(BaseModel):
    """Public identity of a user, disclosed only when allowed."""

    id: str
    name: str | None = None
    avatar_url: str | None = Field(
        default=None,
        validation_alias=AliasChoices("avatar_url", "avatarUrl"),
    )

    model_config = ConfigDict(populate_by_name=True)
