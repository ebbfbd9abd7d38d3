"""Persisted per-user suggestion queue."""

from __future__ import annotations

import uuid
from datetime import datetime

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Integer, Numeric
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from tunematch.db.base_class import Base


class SuggestionQueueEntry(Base):
    """One pending suggestion of ``candidate_user_id`` for ``owner_user_id``.

    The (owner, candidate) pair is the identity: score rewrites update this row
    in place and concurrent refills cannot create a second row for the pair.
    """
    __tablename__ = "suggestion_queue_entries"
    __table_args__ = (
        CheckConstraint(
            "compatibility_score >= 0 AND compatibility_score <= 100", name="compatibility_score_range"
        ),
        Index("ix_suggestion_queue_owner_rank", "owner_user_id", "compatibility_score", "queue_position"),
    )

    owner_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    candidate_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("users.id", ondelete="CASCADE"), primary_key=True
    )
    compatibility_score: Mapped[float] = mapped_column(Numeric(5, 2, asdecimal=False), nullable=False)
    queue_position: Mapped[int] = mapped_column(Integer, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=datetime.utcnow)
    enriched_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
