"""Refill and serving behaviour of the suggestion queue."""

from __future__ import annotations

import asyncio
import uuid

import pytest
from sqlalchemy import delete, select

from tunematch.models.suggestion import SuggestionQueueEntry
from tunematch.models.user import MusicProfile
from tunematch.schema.user import MusicProfilePayload
from tunematch.services import queue_store, suggestion_service, swipe_service, user_service
from tunematch.services.queue_store import PendingEntry
from tunematch.services.suggestion_service import ProfileMissing, SuggestionStatus
from tunematch.tests.utils import make_owner_and_candidates, make_user


@pytest.mark.asyncio
async def test_owner_alone_is_exhausted_and_nothing_is_queued(session, enrichment_calls):
    owner = await make_user(session, name="Lonely")

    result = await suggestion_service.get_suggestions(session, owner.id, 5)

    assert result.status is SuggestionStatus.EXHAUSTED
    assert result.users == []
    assert result.queue_size == 0
    assert await queue_store.count_entries(session, owner.id) == 0
    assert enrichment_calls == []


@pytest.mark.asyncio
async def test_refill_scores_one_batch_and_returns_best(session, enrichment_calls):
    owner, candidates = await make_owner_and_candidates(session, 20)

    result = await suggestion_service.get_suggestions(session, owner.id, 5)

    assert result.status is SuggestionStatus.RETURNED
    assert result.refill is not None
    assert result.refill.scored == 15
    assert len(result.refill.inserted) == 15
    assert await queue_store.count_entries(session, owner.id) == 15
    assert result.queue_size == 15
    assert result.message == "Returned 5 users (15 in queue)"

    scores = [item.compatibility_score for item in result.users]
    assert len(scores) == 5
    assert scores == sorted(scores, reverse=True)
    assert scores == [100.0] * 5

    (call,) = enrichment_calls
    assert call["owner_user_id"] == owner.id
    assert len(call["candidate_ids"]) == 10
    assert set(call["candidate_ids"]) <= set(result.refill.inserted)


@pytest.mark.asyncio
async def test_positions_follow_rank_order(session):
    owner, _ = await make_owner_and_candidates(session, 6)

    await suggestion_service.get_suggestions(session, owner.id, 2)

    entries = await queue_store.top_entries(session, owner.id)
    assert [entry.queue_position for entry in entries] == list(range(6))
    assert [entry.compatibility_score for entry in entries] == [100.0] * 3 + [84.0] * 3


@pytest.mark.asyncio
async def test_refill_is_idempotent_when_queue_is_full(session, enrichment_calls):
    owner, _ = await make_owner_and_candidates(session, 20)
    first = await suggestion_service.get_suggestions(session, owner.id, 5)

    second = await suggestion_service.get_suggestions(session, owner.id, 5)

    assert second.refill is None
    assert await queue_store.count_entries(session, owner.id) == 15
    assert [item.user.id for item in second.users] == [item.user.id for item in first.users]
    assert len(enrichment_calls) == 1


@pytest.mark.asyncio
async def test_later_refill_continues_positions(session):
    owner, _ = await make_owner_and_candidates(session, 20)
    await suggestion_service.get_suggestions(session, owner.id, 5)

    # Asking for more than half the queue forces another batch.
    result = await suggestion_service.get_suggestions(session, owner.id, 10)

    assert result.refill is not None
    assert len(result.refill.inserted) == 5
    entries = await queue_store.top_entries(session, owner.id)
    assert sorted(entry.queue_position for entry in entries) == list(range(20))


@pytest.mark.asyncio
async def test_concurrent_refills_never_duplicate_entries(session_factory):
    async with session_factory() as setup_session:
        owner, _ = await make_owner_and_candidates(setup_session, 15)

    async def _request():
        async with session_factory() as request_session:
            return await suggestion_service.get_suggestions(request_session, owner.id, 5)

    first, second = await asyncio.gather(_request(), _request())

    assert first.status is SuggestionStatus.RETURNED
    assert second.status is SuggestionStatus.RETURNED
    async with session_factory() as check_session:
        rows = (
            await check_session.execute(
                select(SuggestionQueueEntry).where(SuggestionQueueEntry.owner_user_id == owner.id)
            )
        ).scalars().all()
    assert len(rows) == 15
    assert len({row.candidate_user_id for row in rows}) == 15


@pytest.mark.asyncio
async def test_decided_candidates_never_reappear(session):
    owner, candidates = await make_owner_and_candidates(session, 6)
    liked, passed = candidates[1], candidates[3]
    await swipe_service.record_decision(session, owner.id, liked.id, True)
    await swipe_service.record_decision(session, owner.id, passed.id, False)

    result = await suggestion_service.get_suggestions(session, owner.id, 10)

    returned = {item.user.id for item in result.users}
    assert liked.id not in returned
    assert passed.id not in returned
    assert liked.id not in await queue_store.queued_candidate_ids(session, owner.id)
    assert len(returned) == 4


@pytest.mark.asyncio
async def test_swiping_removes_candidate_from_future_results(session):
    owner, _ = await make_owner_and_candidates(session, 6)
    first = await suggestion_service.get_suggestions(session, owner.id, 3)
    top = first.users[0].user

    await swipe_service.record_decision(session, owner.id, top.id, False)
    second = await suggestion_service.get_suggestions(session, owner.id, 10)

    assert top.id not in {item.user.id for item in second.users}
    assert len(second.users) == 5


@pytest.mark.asyncio
async def test_low_scores_stay_queued_but_are_not_served(session, enrichment_calls):
    owner = await make_user(session, name="Owner", gender="female", orientation="male")
    # Disjoint taste and no mutual attraction: score 0.
    await make_user(session, genres=("metal",), artists=("Z",), songs=("z",), gender="female", orientation="female")

    result = await suggestion_service.get_suggestions(session, owner.id, 5)

    assert result.status is SuggestionStatus.EXHAUSTED
    assert await queue_store.count_entries(session, owner.id) == 1
    assert result.queue_size == 0
    assert enrichment_calls == []

    again = await suggestion_service.get_suggestions(session, owner.id, 5)
    assert again.refill is not None
    assert again.refill.scored == 0
    assert await queue_store.count_entries(session, owner.id) == 1


@pytest.mark.asyncio
async def test_only_high_scores_are_sent_for_enrichment(session, enrichment_calls):
    owner = await make_user(session, name="Owner", gender="female", orientation="male")
    strong = await make_user(session, gender="male", orientation="female")
    # Partial overlap scores 44: queued, but neither served nor enriched.
    weak = await make_user(
        session, gender="male", orientation="female", genres=("pop",), artists=("Q",), songs=("s1",)
    )

    await suggestion_service.get_suggestions(session, owner.id, 5)

    (call,) = enrichment_calls
    assert call["candidate_ids"] == [strong.id]
    entries = {entry.candidate_user_id: entry for entry in await queue_store.top_entries(session, owner.id)}
    assert entries[weak.id].compatibility_score < 60


@pytest.mark.asyncio
async def test_enrichment_dispatch_failure_does_not_fail_request(session, monkeypatch):
    owner, _ = await make_owner_and_candidates(session, 4)

    async def _broken(**kwargs):
        raise RuntimeError("redis went away")

    monkeypatch.setattr(suggestion_service.task_queue, "enqueue_enrichment", _broken)

    result = await suggestion_service.get_suggestions(session, owner.id, 2)

    assert result.status is SuggestionStatus.RETURNED
    assert await queue_store.count_entries(session, owner.id) == 4


@pytest.mark.asyncio
async def test_missing_owner_profile_raises(session):
    owner = await make_user(session, with_profile=False)

    with pytest.raises(ProfileMissing):
        await suggestion_service.get_suggestions(session, owner.id, 5)
    with pytest.raises(ProfileMissing):
        await suggestion_service.get_suggestions(session, uuid.uuid4(), 5)
    with pytest.raises(ProfileMissing):
        await suggestion_service.get_suggestions(session, "not-a-uuid", 5)


@pytest.mark.asyncio
async def test_vanished_candidate_profile_is_dropped_from_results(session):
    owner, candidates = await make_owner_and_candidates(session, 2)
    vanished = candidates[1]
    await queue_store.insert_if_absent(
        session,
        [
            PendingEntry(owner.id, vanished.id, 100.0, 0),
            PendingEntry(owner.id, candidates[0].id, 84.0, 1),
        ],
    )
    await session.execute(delete(MusicProfile).where(MusicProfile.user_id == vanished.id))
    await session.commit()
    session.expire_all()

    result = await suggestion_service.get_suggestions(session, owner.id, 5)

    assert [item.user.id for item in result.users] == [candidates[0].id]


@pytest.mark.parametrize(("requested", "expected"), [(None, 10), (0, 1), (-3, 1), (7, 7), (500, 50)])
def test_clamp_count(requested, expected):
    assert suggestion_service.clamp_count(requested) == expected


@pytest.mark.asyncio
async def test_decided_candidate_stays_excluded_after_profile_change(session):
    owner, candidates = await make_owner_and_candidates(session, 3)
    passed = candidates[0]
    await swipe_service.record_decision(session, owner.id, passed.id, False)
    # A profile identical to the owner's would now score 100.
    await user_service.replace_music_profile(
        session,
        passed.id,
        MusicProfilePayload(genres=["pop", "rock"], artists=["X", "Y"], songs=["s1", "s2"]),
    )

    result = await suggestion_service.get_suggestions(session, owner.id, 10)

    assert passed.id not in {item.user.id for item in result.users}
    assert passed.id not in await queue_store.queued_candidate_ids(session, owner.id)
    assert len(result.users) == 2
