"""Suggestion feed response schemas."""

from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field

from tunematch.schema.user import UserProfileRead


class SuggestedUser(UserProfileRead):
    """A candidate profile together with its current compatibility score."""
    compatibility_score: float


class SuggestionResponse(BaseModel):
    success: bool
    status: Literal["returned", "exhausted", "profile_missing", "failed"]
    count: int = 0
    queue_size: int = 0
    users: list[SuggestedUser] = Field(default_factory=list)
    message: str
