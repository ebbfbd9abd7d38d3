"""User and music profile request/response schemas."""

from __future__ import annotations

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, EmailStr, Field, field_validator

from tunematch.models.types import normalize_labels
from tunematch.schema.base import ORMModel


def _coerce_labels(value: str | list[str] | None) -> list[str]:
    """Accept comma-separated strings as well as lists."""
    if value is None:
        return []
    if isinstance(value, str):
        value = value.split(",")
    return normalize_labels(value)


class MusicProfilePayload(BaseModel):
    """Full replacement of a user's music profile."""
    genres: list[str] = Field(default_factory=list)
    artists: list[str] = Field(default_factory=list)
    songs: list[str] = Field(default_factory=list)

    @field_validator("genres", "artists", "songs", mode="before")
    @classmethod
    def _normalize_labels(cls, value: str | list[str] | None) -> list[str]:
        return _coerce_labels(value)


class MusicProfileRead(ORMModel):
    genres: list[str] = Field(default_factory=list)
    artists: list[str] = Field(default_factory=list)
    songs: list[str] = Field(default_factory=list)


class UserCreate(BaseModel):
    """Payload for registering a new user."""
    email: EmailStr
    name: str = Field(min_length=1, max_length=255)
    age: int | None = Field(default=None, ge=18, le=120)
    gender: str | None = Field(default=None, max_length=32)
    sexual_orientation: str | None = Field(default=None, max_length=32)
    bio: str | None = None
    location: str | None = Field(default=None, max_length=255)
    music_profile: MusicProfilePayload | None = None


class UserProfileRead(ORMModel):
    """Public profile fields shown to other users."""
    id: UUID
    name: str
    age: int | None = None
    gender: str | None = None
    sexual_orientation: str | None = None
    bio: str | None = None
    location: str | None = None
    music_profile: MusicProfileRead | None = None


class UserRead(UserProfileRead):
    email: EmailStr
    created_at: datetime
