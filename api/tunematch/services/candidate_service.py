"""Candidate sourcing for suggestion queue refills."""

from __future__ import annotations

import uuid
from typing import Collection

from sqlalchemy import and_, exists, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from tunematch.core.config import settings
from tunematch.models.decision import SwipeDecision
from tunematch.models.suggestion import SuggestionQueueEntry
from tunematch.models.user import MusicProfile, User


def batch_size_for(requested_count: int) -> int:
    """Candidates to score per refill: a multiple of the request, capped."""
    return max(1, min(settings.suggestion_batch_cap, requested_count * settings.suggestion_batch_multiplier))


def _eligible(owner_user_id: uuid.UUID, exclude_ids: Collection[uuid.UUID], stmt):
    # Both subqueries correlate against the outer User row.
    decided = exists().where(
        and_(SwipeDecision.from_user_id == owner_user_id, SwipeDecision.to_user_id == User.id)
    )
    queued = exists().where(
        and_(
            SuggestionQueueEntry.owner_user_id == owner_user_id,
            SuggestionQueueEntry.candidate_user_id == User.id,
        )
    )
    stmt = (
        stmt.join(MusicProfile, MusicProfile.user_id == User.id)
        .where(User.id != owner_user_id)
        .where(~decided)
        .where(~queued)
    )
    if exclude_ids:
        stmt = stmt.where(User.id.not_in(list(exclude_ids)))
    return stmt


async def fetch_candidates(
    session: AsyncSession,
    owner_user_id: uuid.UUID,
    batch_size: int,
    exclude_ids: Collection[uuid.UUID] = (),
) -> list[User]:
    """Return up to ``batch_size`` users with a music profile not yet seen by the owner.

    The owner, everyone the owner has decided on, and everyone already in the
    owner's queue are skipped, along with any extra ``exclude_ids``. Order
    carries no meaning; callers rank by score.
    """
    if batch_size <= 0:
        return []
    stmt = _eligible(owner_user_id, exclude_ids, select(User)).order_by(User.created_at, User.id).limit(batch_size)
    result = await session.execute(stmt.execution_options(populate_existing=True))
    return list(result.scalars().all())


async def count_remaining(
    session: AsyncSession, owner_user_id: uuid.UUID, exclude_ids: Collection[uuid.UUID] = ()
) -> int:
    stmt = _eligible(owner_user_id, exclude_ids, select(func.count(User.id)).select_from(User))
    return int(await session.scalar(stmt) or 0)
