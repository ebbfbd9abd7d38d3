"""Serve ranked suggestions and keep each user's queue topped up.

A request reads the queue, refills it when fewer than twice the requested
number of servable entries remain, and returns the best entries in rank
order. Refills score a bounded batch of unseen candidates locally and hand
the strongest new entries to background enrichment without waiting for it.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, field

from sqlalchemy.ext.asyncio import AsyncSession

from tunematch.core.config import settings
from tunematch.models.user import User
from tunematch.scoring.similarity import AttractionProfile, TasteProfile, compatibility_score
from tunematch.services import candidate_service, queue_store, user_service
from tunematch.services.queue_store import PendingEntry
from tunematch.services.task_queue import task_queue

logger = logging.getLogger("tunematch.services.suggestions")


class ProfileMissing(LookupError):
    """The requesting user, or their music profile, does not exist."""

    def __init__(self, user_id: uuid.UUID | str, reason: str = "User profile not found") -> None:
        super().__init__(reason)
        self.user_id = user_id
        self.reason = reason


class SuggestionStatus(str, enum.Enum):
    RETURNED = "returned"
    EXHAUSTED = "exhausted"
    PROFILE_MISSING = "profile_missing"
    FAILED = "failed"


@dataclass(slots=True)
class SuggestedCandidate:
    user: User
    compatibility_score: float


@dataclass(slots=True)
class RefillOutcome:
    scored: int = 0
    inserted: list[uuid.UUID] = field(default_factory=list)
    enrichment_scheduled: list[uuid.UUID] = field(default_factory=list)


@dataclass(slots=True)
class SuggestionResult:
    status: SuggestionStatus
    users: list[SuggestedCandidate]
    queue_size: int
    message: str
    refill: RefillOutcome | None = None

    @property
    def count(self) -> int:
        return len(self.users)


def clamp_count(count: int | None) -> int:
    """Clamp a requested count into [1, suggestion_max_count]; None means the default."""
    if count is None:
        count = settings.suggestion_default_count
    return max(1, min(int(count), settings.suggestion_max_count))


def needs_refill(servable: int, requested: int) -> bool:
    return servable < requested * settings.suggestion_refill_multiplier


def _rank_key(item: PendingEntry) -> tuple[float, str]:
    return (-item.compatibility_score, str(item.candidate_user_id))


async def refill_queue(
    session: AsyncSession,
    owner: User,
    requested: int,
) -> RefillOutcome:
    """Score one batch of unseen candidates and append them to the owner's queue."""
    outcome = RefillOutcome()
    if await candidate_service.count_remaining(session, owner.id) == 0:
        logger.debug("No unseen candidates remain for %s", owner.id)
        return outcome

    batch = await candidate_service.fetch_candidates(session, owner.id, candidate_service.batch_size_for(requested))
    owner_taste = TasteProfile.from_model(owner.music_profile)
    owner_attraction = AttractionProfile.from_user(owner)
    start = await queue_store.next_position(session, owner.id)

    pending = [
        PendingEntry(
            owner_user_id=owner.id,
            candidate_user_id=candidate.id,
            compatibility_score=compatibility_score(
                owner_taste,
                TasteProfile.from_model(candidate.music_profile),
                owner_attraction,
                AttractionProfile.from_user(candidate),
            ),
            queue_position=0,
        )
        for candidate in batch
        if candidate.id != owner.id
    ]
    pending.sort(key=_rank_key)
    for offset, item in enumerate(pending):
        item.queue_position = start + offset
    outcome.scored = len(pending)

    outcome.inserted = await queue_store.insert_if_absent(session, pending)
    logger.info("Refilled queue for %s: scored %d, inserted %d", owner.id, outcome.scored, len(outcome.inserted))

    inserted = set(outcome.inserted)
    outcome.enrichment_scheduled = [
        item.candidate_user_id
        for item in pending
        if item.candidate_user_id in inserted and item.compatibility_score >= settings.enrichment_min_score
    ][: settings.enrichment_max_entries]
    if outcome.enrichment_scheduled:
        try:
            await task_queue.enqueue_enrichment(
                owner_user_id=owner.id, candidate_ids=outcome.enrichment_scheduled
            )
        except Exception as exc:  # noqa: BLE001
            logger.warning("Could not schedule enrichment for %s: %s", owner.id, exc)
    return outcome


async def _load_owner(session: AsyncSession, owner_user_id: uuid.UUID | str) -> User:
    owner = await user_service.get_user_by_id(session, owner_user_id)
    if owner is None:
        raise ProfileMissing(owner_user_id, "User not found")
    if owner.music_profile is None:
        raise ProfileMissing(owner_user_id, "User has no music profile")
    return owner


async def get_suggestions(
    session: AsyncSession,
    owner_user_id: uuid.UUID | str,
    count: int | None = None,
) -> SuggestionResult:
    """Return up to ``count`` ranked candidates for the owner, refilling first if low.

    Raises ``ProfileMissing`` when the owner or their music profile is absent.
    An empty result is reported as ``exhausted``.
    """
    requested = clamp_count(count)
    owner = await _load_owner(session, owner_user_id)
    min_score = settings.suggestion_min_score

    servable = await queue_store.count_entries(session, owner.id, min_score=min_score)
    refill: RefillOutcome | None = None
    if needs_refill(servable, requested):
        refill = await refill_queue(session, owner, requested)

    entries = await queue_store.top_entries(session, owner.id, requested, min_score=min_score)
    users = await user_service.get_users_by_ids(session, [entry.candidate_user_id for entry in entries])
    suggested: list[SuggestedCandidate] = []
    for entry in entries:
        candidate = users.get(entry.candidate_user_id)
        if candidate is None or candidate.music_profile is None:
            logger.debug("Queued candidate %s is no longer servable", entry.candidate_user_id)
            continue
        suggested.append(SuggestedCandidate(user=candidate, compatibility_score=float(entry.compatibility_score)))

    queue_size = await queue_store.count_entries(session, owner.id, min_score=min_score)
    status = SuggestionStatus.RETURNED if suggested else SuggestionStatus.EXHAUSTED
    if suggested:
        message = f"Returned {len(suggested)} users ({queue_size} in queue)"
    else:
        message = "No more suggestions available right now"
    return SuggestionResult(status=status, users=suggested, queue_size=queue_size, message=message, refill=refill)
