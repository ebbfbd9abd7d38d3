"""Shared helpers for API tests."""

from __future__ import annotations

import uuid
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from tunematch.models.user import MusicProfile, User


async def make_user(
    session: AsyncSession,
    *,
    name: str | None = None,
    gender: str | None = "female",
    orientation: str | None = "male",
    genres: Sequence[str] | None = ("pop", "rock"),
    artists: Sequence[str] | None = ("X", "Y"),
    songs: Sequence[str] | None = ("s1", "s2"),
    with_profile: bool = True,
) -> User:
    """Persist a user, with a music profile unless ``with_profile`` is False."""
    suffix = uuid.uuid4().hex[:8]
    user = User(
        email=f"user_{suffix}@example.com",
        name=name or f"User {suffix}",
        age=30,
        gender=gender,
        sexual_orientation=orientation,
    )
    if with_profile:
        user.music_profile = MusicProfile(
            genres=list(genres or ()), artists=list(artists or ()), songs=list(songs or ())
        )
    session.add(user)
    await session.commit()
    return user


async def make_owner_and_candidates(session: AsyncSession, candidate_count: int) -> tuple[User, list[User]]:
    """Owner with mutual attraction to every candidate.

    Candidates alternate between artists ``[X]`` (score 84.0) and ``[X, Y]``
    (score 100.0) against the owner.
    """
    owner = await make_user(session, name="Owner", gender="female", orientation="male")
    candidates = []
    for index in range(candidate_count):
        artists = ("X",) if index % 2 == 0 else ("X", "Y")
        candidates.append(
            await make_user(session, name=f"Candidate {index:02d}", gender="male", orientation="female", artists=artists)
        )
    return owner, candidates
