"""Swipe decision and match schemas."""

from __future__ import annotations

from uuid import UUID

from pydantic import BaseModel, Field

from tunematch.schema.user import UserProfileRead


class SwipeCreate(BaseModel):
    """Payload for recording a like or pass."""
    from_user_id: UUID
    to_user_id: UUID
    is_like: bool


class DecisionResponse(BaseModel):
    success: bool
    is_match: bool = False
    message: str


class MatchListResponse(BaseModel):
    user_id: UUID
    count: int
    matches: list[UserProfileRead] = Field(default_factory=list)


class SwipeStats(BaseModel):
    """Aggregate swipe counters for one user."""
    user_id: UUID
    total_swipes: int
    likes: int
    passes: int
    matches: int
    like_rate: float
