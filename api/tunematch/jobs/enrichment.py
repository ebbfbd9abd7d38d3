"""Suggestion enrichment jobs."""

from __future__ import annotations

import asyncio
import logging
import uuid
from typing import Any

from tunematch.db.session import async_session, isolated_session_factory
from tunematch.scoring.gemini import GeminiCompatibilityClient, gemini_client
from tunematch.services import enrichment_service

logger = logging.getLogger("tunematch.jobs.enrichment")


def _parse_ids(owner_user_id: str, candidate_ids: list[str]) -> tuple[uuid.UUID, list[uuid.UUID]]:
    return uuid.UUID(owner_user_id), [uuid.UUID(value) for value in candidate_ids]


async def run_enrichment(*, owner_user_id: str, candidate_ids: list[str]) -> dict[str, Any]:
    """In-process variant used when no worker is available."""
    owner_id, ids = _parse_ids(owner_user_id, candidate_ids)
    summary = await enrichment_service.enrich_entries(async_session, owner_id, ids, client=gemini_client)
    return summary.as_dict()


def enrich_suggestions_job(*, owner_user_id: str, candidate_ids: list[str]) -> dict[str, Any]:
    """Re-score queued suggestions within a worker context."""
    owner_id, ids = _parse_ids(owner_user_id, candidate_ids)

    async def _run() -> dict[str, Any]:
        async with isolated_session_factory() as session_factory:
            async with GeminiCompatibilityClient.from_settings() as client:
                summary = await enrichment_service.enrich_entries(session_factory, owner_id, ids, client=client)
        return summary.as_dict()

    result = asyncio.run(_run())
    logger.info("Enrichment job complete for %s (%d updated)", owner_user_id, result["updated"])
    return result
