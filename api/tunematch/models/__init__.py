from tunematch.models.decision import SwipeDecision
from tunematch.models.suggestion import SuggestionQueueEntry
from tunematch.models.user import MusicProfile, User

__all__ = [
    "MusicProfile",
    "SuggestionQueueEntry",
    "SwipeDecision",
    "User",
]
"""SQLAlchemy ORM models for the TuneMatch API."""
