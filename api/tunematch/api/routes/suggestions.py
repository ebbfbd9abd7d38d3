"""Suggestion feed endpoints."""

import logging

from fastapi import APIRouter, Depends, Query, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from tunematch.api.deps import get_db
from tunematch.schema.suggestion import SuggestedUser, SuggestionResponse
from tunematch.schema.user import MusicProfileRead
from tunematch.services import suggestion_service
from tunematch.services.suggestion_service import ProfileMissing, SuggestedCandidate, SuggestionStatus

router = APIRouter()
logger = logging.getLogger("tunematch.api.suggestions")


def _to_suggested_user(item: SuggestedCandidate) -> SuggestedUser:
    user = item.user
    return SuggestedUser(
        id=user.id,
        name=user.name,
        age=user.age,
        gender=user.gender,
        sexual_orientation=user.sexual_orientation,
        bio=user.bio,
        location=user.location,
        music_profile=MusicProfileRead.model_validate(user.music_profile) if user.music_profile else None,
        compatibility_score=item.compatibility_score,
    )


@router.get("", response_model=SuggestionResponse)
async def get_suggestions(
    user_id: str = Query(..., min_length=1),
    count: int | None = Query(default=None),
    session: AsyncSession = Depends(get_db),
):
    """Return the requesting user's best queued candidates, refilling the queue when low."""
    try:
        result = await suggestion_service.get_suggestions(session, user_id, count)
    except ProfileMissing as exc:
        body = SuggestionResponse(
            success=False,
            status=SuggestionStatus.PROFILE_MISSING.value,
            message=exc.reason,
        )
        return JSONResponse(status_code=status.HTTP_404_NOT_FOUND, content=body.model_dump(mode="json"))
    except Exception:  # noqa: BLE001
        logger.exception("Failed to serve suggestions for %s", user_id)
        await session.rollback()
        return SuggestionResponse(
            success=False,
            status=SuggestionStatus.FAILED.value,
            message="Suggestions are temporarily unavailable",
        )

    return SuggestionResponse(
        success=True,
        status=result.status.value,
        count=result.count,
        queue_size=result.queue_size,
        users=[_to_suggested_user(item) for item in result.users],
        message=result.message,
    )
