"""Swipe decisions, derived matches, and swipe statistics.

A match is never stored: it is recomputed from two reciprocal likes whenever it
is read, so there is no flag that can drift out of sync with the decisions.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import and_, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from tunematch.models.decision import SwipeDecision
from tunematch.models.user import User
from tunematch.services import queue_store, user_service

logger = logging.getLogger("tunematch.services.swipe")


class SelfReferenceError(ValueError):
    """Raised when a user tries to record a decision about themselves."""


class UnknownUserError(LookupError):
    """Raised when either side of a decision does not exist."""

    def __init__(self, user_id: uuid.UUID) -> None:
        super().__init__(f"User {user_id} not found")
        self.user_id = user_id


@dataclass(slots=True)
class DecisionOutcome:
    decision: SwipeDecision
    is_match: bool
    removed_from_queue: bool


async def _get_decision(session: AsyncSession, from_user_id: uuid.UUID, to_user_id: uuid.UUID) -> SwipeDecision | None:
    return await session.get(SwipeDecision, (from_user_id, to_user_id), populate_existing=True)


async def record_decision(
    session: AsyncSession,
    from_user_id: uuid.UUID,
    to_user_id: uuid.UUID,
    is_like: bool,
) -> DecisionOutcome:
    """Store (or change) a like/pass and retire the candidate from the queue."""
    if from_user_id == to_user_id:
        raise SelfReferenceError("Cannot record a decision about yourself")
    users = await user_service.get_users_by_ids(session, [from_user_id, to_user_id])
    for user_id in (from_user_id, to_user_id):
        if user_id not in users:
            raise UnknownUserError(user_id)

    decision = await _get_decision(session, from_user_id, to_user_id)
    if decision is None:
        decision = SwipeDecision(from_user_id=from_user_id, to_user_id=to_user_id, is_like=is_like)
        session.add(decision)
    else:
        decision.is_like = is_like
        decision.updated_at = datetime.utcnow()
    removed = await queue_store.remove_entry(session, from_user_id, to_user_id)
    try:
        await session.commit()
    except IntegrityError:
        # A concurrent request created the pair first; apply this decision on top of it.
        await session.rollback()
        decision = await _get_decision(session, from_user_id, to_user_id)
        if decision is None:
            raise
        decision.is_like = is_like
        decision.updated_at = datetime.utcnow()
        removed = await queue_store.remove_entry(session, from_user_id, to_user_id)
        await session.commit()

    matched = is_like and await is_match(session, from_user_id, to_user_id)
    logger.info(
        "Recorded %s from %s to %s%s",
        "like" if is_like else "pass",
        from_user_id,
        to_user_id,
        " (match)" if matched else "",
    )
    return DecisionOutcome(decision=decision, is_match=matched, removed_from_queue=removed)


async def decided_candidate_ids(session: AsyncSession, owner_user_id: uuid.UUID) -> set[uuid.UUID]:
    """Everyone the owner has liked or passed; they never re-enter the owner's queue."""
    result = await session.execute(
        select(SwipeDecision.to_user_id).where(SwipeDecision.from_user_id == owner_user_id)
    )
    return set(result.scalars().all())


async def is_match(session: AsyncSession, user_a: uuid.UUID, user_b: uuid.UUID) -> bool:
    count = await session.scalar(
        select(func.count())
        .select_from(SwipeDecision)
        .where(
            SwipeDecision.is_like.is_(True),
            (
                and_(SwipeDecision.from_user_id == user_a, SwipeDecision.to_user_id == user_b)
                | and_(SwipeDecision.from_user_id == user_b, SwipeDecision.to_user_id == user_a)
            ),
        )
    )
    return int(count or 0) == 2


def _mutual_like_ids(user_id: uuid.UUID):
    outgoing = aliased(SwipeDecision)
    incoming = aliased(SwipeDecision)
    return (
        select(outgoing.to_user_id)
        .join(
            incoming,
            and_(incoming.from_user_id == outgoing.to_user_id, incoming.to_user_id == outgoing.from_user_id),
        )
        .where(outgoing.from_user_id == user_id, outgoing.is_like.is_(True), incoming.is_like.is_(True))
    )


async def list_matches(session: AsyncSession, user_id: uuid.UUID) -> list[User]:
    """Users with whom ``user_id`` has exchanged likes, ordered by name."""
    result = await session.execute(
        select(User).where(User.id.in_(_mutual_like_ids(user_id))).order_by(User.name, User.id)
    )
    return list(result.scalars().all())


async def swipe_stats(session: AsyncSession, user_id: uuid.UUID) -> dict[str, int | float]:
    result = await session.execute(
        select(SwipeDecision.is_like, func.count())
        .where(SwipeDecision.from_user_id == user_id)
        .group_by(SwipeDecision.is_like)
    )
    counts = {bool(row[0]): int(row[1]) for row in result.all()}
    likes = counts.get(True, 0)
    passes = counts.get(False, 0)
    total = likes + passes
    matches = await session.scalar(select(func.count()).select_from(_mutual_like_ids(user_id).subquery()))
    return {
        "total_swipes": total,
        "likes": likes,
        "passes": passes,
        "matches": int(matches or 0),
        "like_rate": round(likes / total, 4) if total else 0.0,
    }
