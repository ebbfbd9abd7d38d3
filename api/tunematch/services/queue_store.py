"""Persistence for per-user suggestion queues.

Invariants:
- At most one row per (owner, candidate); the pair is the primary key.
- Reads rank by score desc, then queue position asc, then candidate id.
- Inserts never raise on duplicates, including races between concurrent refills.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Sequence

from sqlalchemy import delete, func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from tunematch.models.suggestion import SuggestionQueueEntry

logger = logging.getLogger("tunematch.services.queue_store")

_CONFLICT_INSERTS = {"postgresql": pg_insert, "sqlite": sqlite_insert}


@dataclass(slots=True)
class PendingEntry:
    """A scored candidate ready to be written to an owner's queue."""
    owner_user_id: uuid.UUID
    candidate_user_id: uuid.UUID
    compatibility_score: float
    queue_position: int

    def as_row(self, created_at: datetime) -> dict[str, Any]:
        return {
            "owner_user_id": self.owner_user_id,
            "candidate_user_id": self.candidate_user_id,
            "compatibility_score": self.compatibility_score,
            "queue_position": self.queue_position,
            "created_at": created_at,
        }


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _ranked(stmt):
    return stmt.order_by(
        SuggestionQueueEntry.compatibility_score.desc(),
        SuggestionQueueEntry.queue_position.asc(),
        SuggestionQueueEntry.candidate_user_id.asc(),
    )


async def top_entries(
    session: AsyncSession,
    owner_user_id: uuid.UUID,
    limit: int | None = None,
    *,
    min_score: float | None = None,
) -> list[SuggestionQueueEntry]:
    """Return the owner's best entries in serving order."""
    stmt = select(SuggestionQueueEntry).where(SuggestionQueueEntry.owner_user_id == owner_user_id)
    if min_score is not None:
        stmt = stmt.where(SuggestionQueueEntry.compatibility_score >= min_score)
    # Scores are rewritten by background enrichment; never serve stale identity-map values.
    stmt = _ranked(stmt).execution_options(populate_existing=True)
    if limit is not None:
        stmt = stmt.limit(limit)
    result = await session.execute(stmt)
    return list(result.scalars().all())


async def count_entries(session: AsyncSession, owner_user_id: uuid.UUID, *, min_score: float | None = None) -> int:
    stmt = select(func.count()).select_from(SuggestionQueueEntry).where(
        SuggestionQueueEntry.owner_user_id == owner_user_id
    )
    if min_score is not None:
        stmt = stmt.where(SuggestionQueueEntry.compatibility_score >= min_score)
    return int(await session.scalar(stmt) or 0)


async def queued_candidate_ids(session: AsyncSession, owner_user_id: uuid.UUID) -> set[uuid.UUID]:
    """All candidates queued for the owner, regardless of score."""
    result = await session.execute(
        select(SuggestionQueueEntry.candidate_user_id).where(SuggestionQueueEntry.owner_user_id == owner_user_id)
    )
    return set(result.scalars().all())


async def next_position(session: AsyncSession, owner_user_id: uuid.UUID) -> int:
    """Position following the highest one already used by the owner's queue.

    Not reserved: two refills racing for the same owner read the same maximum,
    so entries they insert for different candidates can share a position.
    ``top_entries`` then orders those by candidate id.
    """
    current = await session.scalar(
        select(func.max(SuggestionQueueEntry.queue_position)).where(
            SuggestionQueueEntry.owner_user_id == owner_user_id
        )
    )
    return 0 if current is None else int(current) + 1


async def insert_if_absent(session: AsyncSession, entries: Sequence[PendingEntry]) -> list[uuid.UUID]:
    """Insert entries whose (owner, candidate) pair is not queued yet.

    Returns the candidate ids actually inserted, in input order; the inserted
    count is the length of that list. Duplicates within ``entries`` keep the
    first occurrence. Commits on success.
    """
    unique: dict[tuple[uuid.UUID, uuid.UUID], PendingEntry] = {}
    for entry in entries:
        unique.setdefault((entry.owner_user_id, entry.candidate_user_id), entry)
    if not unique:
        return []

    dialect = session.get_bind().dialect.name
    insert_factory = _CONFLICT_INSERTS.get(dialect)
    created_at = _utcnow()
    rows = [entry.as_row(created_at) for entry in unique.values()]

    if insert_factory is None:
        inserted = await _insert_with_savepoints(session, list(unique.values()), created_at)
    else:
        stmt = (
            insert_factory(SuggestionQueueEntry)
            .values(rows)
            .on_conflict_do_nothing(index_elements=["owner_user_id", "candidate_user_id"])
            .returning(SuggestionQueueEntry.owner_user_id, SuggestionQueueEntry.candidate_user_id)
        )
        try:
            result = await session.execute(stmt)
            returned = {(row[0], row[1]) for row in result.all()}
            await session.commit()
        except IntegrityError as exc:
            # Foreign keys can still fail when a candidate is deleted mid-refill.
            await session.rollback()
            logger.warning("Queue insert rejected by the database, retrying row by row: %s", exc.orig)
            inserted = await _insert_with_savepoints(session, list(unique.values()), created_at)
        else:
            inserted = [key[1] for key in unique if key in returned]

    skipped = len(unique) - len(inserted)
    if skipped:
        logger.info("Discarded %d queue entries that already existed", skipped)
    return inserted


async def _insert_with_savepoints(
    session: AsyncSession, entries: list[PendingEntry], created_at: datetime
) -> list[uuid.UUID]:
    """Portable fallback: pre-check, then insert each row under its own savepoint."""
    if not entries:
        return []
    owner_ids = {entry.owner_user_id for entry in entries}
    existing_result = await session.execute(
        select(SuggestionQueueEntry.owner_user_id, SuggestionQueueEntry.candidate_user_id).where(
            SuggestionQueueEntry.owner_user_id.in_(owner_ids),
            SuggestionQueueEntry.candidate_user_id.in_([entry.candidate_user_id for entry in entries]),
        )
    )
    existing = {(row[0], row[1]) for row in existing_result.all()}
    inserted: list[uuid.UUID] = []
    for entry in entries:
        if (entry.owner_user_id, entry.candidate_user_id) in existing:
            continue
        try:
            async with session.begin_nested():
                session.add(SuggestionQueueEntry(**entry.as_row(created_at)))
        except IntegrityError:
            logger.debug("Queue entry %s -> %s lost an insert race", entry.owner_user_id, entry.candidate_user_id)
            continue
        inserted.append(entry.candidate_user_id)
    await session.commit()
    return inserted


async def remove_entry(session: AsyncSession, owner_user_id: uuid.UUID, candidate_user_id: uuid.UUID) -> bool:
    """Delete the entry for the pair if present. The caller commits."""
    result = await session.execute(
        delete(SuggestionQueueEntry).where(
            SuggestionQueueEntry.owner_user_id == owner_user_id,
            SuggestionQueueEntry.candidate_user_id == candidate_user_id,
        )
    )
    return bool(result.rowcount)


async def update_score(
    session: AsyncSession,
    owner_user_id: uuid.UUID,
    candidate_user_id: uuid.UUID,
    new_score: float,
    *,
    enriched: bool = True,
) -> bool:
    """Rewrite the score of an existing entry in place.

    A missing entry is not an error: the owner may have decided on the
    candidate while the new score was being computed.
    """
    score = round(min(max(float(new_score), 0.0), 100.0), 2)
    values: dict[str, Any] = {"compatibility_score": score}
    if enriched:
        values["enriched_at"] = _utcnow()
    result = await session.execute(
        update(SuggestionQueueEntry)
        .where(
            SuggestionQueueEntry.owner_user_id == owner_user_id,
            SuggestionQueueEntry.candidate_user_id == candidate_user_id,
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    await session.commit()
    if not result.rowcount:
        logger.info("Queue entry %s -> %s no longer exists; score update skipped", owner_user_id, candidate_user_id)
        return False
    return True
