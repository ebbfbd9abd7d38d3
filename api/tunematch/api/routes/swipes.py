"""Swipe decision, match, and statistics endpoints."""

import uuid

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.ext.asyncio import AsyncSession

from tunematch.api.deps import get_db
from tunematch.schema.swipe import DecisionResponse, MatchListResponse, SwipeCreate, SwipeStats
from tunematch.schema.user import UserProfileRead
from tunematch.services import swipe_service, user_service
from tunematch.services.swipe_service import SelfReferenceError, UnknownUserError

router = APIRouter()


async def _record(session: AsyncSession, from_user_id: uuid.UUID, to_user_id: uuid.UUID, is_like: bool) -> DecisionResponse:
    try:
        outcome = await swipe_service.record_decision(session, from_user_id, to_user_id, is_like)
    except SelfReferenceError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except UnknownUserError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail=str(exc)) from exc
    if outcome.is_match:
        message = "It's a match!"
    else:
        message = "Like recorded" if is_like else "Pass recorded"
    return DecisionResponse(success=True, is_match=outcome.is_match, message=message)


@router.post("/swipes", response_model=DecisionResponse)
async def create_swipe(payload: SwipeCreate, session: AsyncSession = Depends(get_db)) -> DecisionResponse:
    """Record a like or pass; recording again overwrites the earlier decision."""
    return await _record(session, payload.from_user_id, payload.to_user_id, payload.is_like)


@router.post("/swipes/{from_user_id}/like/{to_user_id}", response_model=DecisionResponse)
async def like_user(
    from_user_id: uuid.UUID, to_user_id: uuid.UUID, session: AsyncSession = Depends(get_db)
) -> DecisionResponse:
    return await _record(session, from_user_id, to_user_id, True)


@router.post("/swipes/{from_user_id}/pass/{to_user_id}", response_model=DecisionResponse)
async def pass_user(
    from_user_id: uuid.UUID, to_user_id: uuid.UUID, session: AsyncSession = Depends(get_db)
) -> DecisionResponse:
    return await _record(session, from_user_id, to_user_id, False)


@router.get("/swipes/stats/{user_id}", response_model=SwipeStats)
async def read_swipe_stats(user_id: uuid.UUID, session: AsyncSession = Depends(get_db)) -> SwipeStats:
    if not await user_service.get_user_by_id(session, user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    stats = await swipe_service.swipe_stats(session, user_id)
    return SwipeStats(user_id=user_id, **stats)


@router.get("/matches/{user_id}", response_model=MatchListResponse)
async def list_matches(user_id: uuid.UUID, session: AsyncSession = Depends(get_db)) -> MatchListResponse:
    """List users who liked ``user_id`` back."""
    if not await user_service.get_user_by_id(session, user_id):
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="User not found")
    matches = await swipe_service.list_matches(session, user_id)
    return MatchListResponse(
        user_id=user_id,
        count=len(matches),
        matches=[UserProfileRead.model_validate(user) for user in matches],
    )
