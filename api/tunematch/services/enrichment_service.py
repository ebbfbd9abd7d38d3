"""Background re-scoring of queued suggestions with the external model."""

from __future__ import annotations

import asyncio
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Sequence

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from tunematch.core.config import settings
from tunematch.scoring.gemini import GeminiCompatibilityClient
from tunematch.scoring.similarity import TasteProfile
from tunematch.services import queue_store, user_service

logger = logging.getLogger("tunematch.services.enrichment")


@dataclass(slots=True)
class EnrichmentSummary:
    owner_user_id: uuid.UUID
    updated: list[uuid.UUID] = field(default_factory=list)
    skipped: list[uuid.UUID] = field(default_factory=list)
    failed: list[uuid.UUID] = field(default_factory=list)
    missing_entry: list[uuid.UUID] = field(default_factory=list)

    def as_dict(self) -> dict[str, int | str]:
        return {
            "owner_user_id": str(self.owner_user_id),
            "updated": len(self.updated),
            "skipped": len(self.skipped),
            "failed": len(self.failed),
            "missing_entry": len(self.missing_entry),
        }


class _Pacer:
    """Keeps consecutive provider calls at least ``interval`` seconds apart."""

    def __init__(self, interval: float) -> None:
        self.interval = max(0.0, interval)
        self._last: float | None = None

    async def wait(self) -> None:
        if self._last is not None and self.interval:
            remaining = self.interval - (time.monotonic() - self._last)
            if remaining > 0:
                await asyncio.sleep(remaining)
        self._last = time.monotonic()


async def _enrich_one(
    session: AsyncSession,
    client: GeminiCompatibilityClient,
    owner_user_id: uuid.UUID,
    candidate_id: uuid.UUID,
    pacer: _Pacer,
    summary: EnrichmentSummary,
) -> None:
    # Profiles may have been edited since the refill; always read them fresh.
    session.expire_all()
    owner_profile = await user_service.get_music_profile(session, owner_user_id)
    candidate_profile = await user_service.get_music_profile(session, candidate_id)
    if owner_profile is None or candidate_profile is None:
        logger.info("Skipping enrichment for %s -> %s: music profile missing", owner_user_id, candidate_id)
        summary.skipped.append(candidate_id)
        return

    await pacer.wait()
    value = await client.score(
        TasteProfile.from_model(owner_profile),
        TasteProfile.from_model(candidate_profile),
        context={"owner_user_id": str(owner_user_id), "candidate_user_id": str(candidate_id)},
    )
    if value is None:
        summary.failed.append(candidate_id)
        return
    if await queue_store.update_score(session, owner_user_id, candidate_id, float(value)):
        summary.updated.append(candidate_id)
    else:
        summary.missing_entry.append(candidate_id)


async def enrich_entries(
    session_factory: async_sessionmaker[AsyncSession],
    owner_user_id: uuid.UUID,
    candidate_ids: Sequence[uuid.UUID],
    *,
    client: GeminiCompatibilityClient,
    min_interval_seconds: float | None = None,
) -> EnrichmentSummary:
    """Replace local scores with external estimates, one candidate at a time.

    Runs on its own session so it never shares state with the request that
    scheduled it. A failure for one candidate leaves that entry's local score in
    place and moves on to the next; nothing propagates to the caller.
    """
    summary = EnrichmentSummary(owner_user_id=owner_user_id)
    if not candidate_ids:
        return summary
    if not client.configured:
        logger.info("External scoring not configured; keeping local scores for %s", owner_user_id)
        summary.skipped.extend(candidate_ids)
        return summary

    interval = settings.enrichment_min_interval_seconds if min_interval_seconds is None else min_interval_seconds
    pacer = _Pacer(interval)
    async with session_factory() as session:
        for candidate_id in candidate_ids:
            try:
                await _enrich_one(session, client, owner_user_id, candidate_id, pacer, summary)
            except Exception as exc:  # noqa: BLE001
                await session.rollback()
                logger.warning("Enrichment failed for %s -> %s: %s", owner_user_id, candidate_id, exc)
                summary.failed.append(candidate_id)

    logger.info(
        "Enrichment for %s finished: %d updated, %d failed, %d skipped, %d gone",
        owner_user_id,
        len(summary.updated),
        len(summary.failed),
        len(summary.skipped),
        len(summary.missing_entry),
    )
    return summary
