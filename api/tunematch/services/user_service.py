from __future__ import annotations

import uuid
from typing import Iterable

from fastapi import HTTPException, status
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from tunematch.models.user import MusicProfile, User
from tunematch.schema.user import MusicProfilePayload, UserCreate


async def get_user_by_email(session: AsyncSession, email: str) -> User | None:
    result = await session.execute(select(User).where(User.email == email.lower()))
    return result.scalar_one_or_none()


async def get_user_by_id(session: AsyncSession, user_id: str | uuid.UUID) -> User | None:
    try:
        user_uuid = uuid.UUID(str(user_id))
    except ValueError:
        return None
    result = await session.execute(select(User).where(User.id == user_uuid).execution_options(populate_existing=True))
    return result.scalar_one_or_none()


async def get_users_by_ids(session: AsyncSession, user_ids: Iterable[uuid.UUID]) -> dict[uuid.UUID, User]:
    """Load users (with music profiles) keyed by id; unknown ids are absent."""
    ids = list(user_ids)
    if not ids:
        return {}
    result = await session.execute(select(User).where(User.id.in_(ids)).execution_options(populate_existing=True))
    return {user.id: user for user in result.scalars().all()}


async def get_music_profile(session: AsyncSession, user_id: uuid.UUID) -> MusicProfile | None:
    result = await session.execute(select(MusicProfile).where(MusicProfile.user_id == user_id))
    return result.scalar_one_or_none()


async def create_user(session: AsyncSession, payload: UserCreate) -> User:
    existing = await get_user_by_email(session, payload.email)
    if existing:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Email already registered")
    user = User(
        email=payload.email.lower(),
        name=payload.name.strip(),
        age=payload.age,
        gender=payload.gender,
        sexual_orientation=payload.sexual_orientation,
        bio=payload.bio,
        location=payload.location,
    )
    if payload.music_profile is not None:
        user.music_profile = MusicProfile(
            genres=payload.music_profile.genres,
            artists=payload.music_profile.artists,
            songs=payload.music_profile.songs,
        )
    session.add(user)
    await session.commit()
    await session.refresh(user, attribute_names=["music_profile"])
    return user


async def replace_music_profile(
    session: AsyncSession, user_id: uuid.UUID, payload: MusicProfilePayload
) -> MusicProfile:
    """Overwrite all three label lists of a user's profile, creating it if needed.

    Queued suggestions and recorded decisions are left untouched.
    """
    user = await get_user_by_id(session, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    profile = user.music_profile
    if profile is None:
        profile = MusicProfile(user_id=user.id)
        session.add(profile)
    profile.genres = list(payload.genres)
    profile.artists = list(payload.artists)
    profile.songs = list(payload.songs)
    await session.commit()
    await session.refresh(profile)
    return profile
