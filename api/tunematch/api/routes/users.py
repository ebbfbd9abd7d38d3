"""User profile endpoints."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from tunematch.api.deps import get_db
from tunematch.models.user import User
from tunematch.schema.user import MusicProfilePayload, MusicProfileRead, UserCreate, UserRead
from tunematch.services import user_service

router = APIRouter()


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
async def create_user(payload: UserCreate, session: AsyncSession = Depends(get_db)) -> User:
    """Register a user, optionally with an initial music profile."""
    return await user_service.create_user(session, payload)


@router.get("/{user_id}", response_model=UserRead)
async def read_user(user_id: uuid.UUID, session: AsyncSession = Depends(get_db)) -> User:
    user = await user_service.get_user_by_id(session, user_id)
    if not user:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    return user


@router.put("/{user_id}/music-profile", response_model=MusicProfileRead)
async def replace_music_profile(
    user_id: uuid.UUID,
    payload: MusicProfilePayload,
    session: AsyncSession = Depends(get_db),
):
    """Replace all genres, artists, and songs of a user's music profile."""
    return await user_service.replace_music_profile(session, user_id, payload)
