from . import (
    candidate_service,
    enrichment_service,
    queue_store,
    suggestion_service,
    swipe_service,
    user_service,
)

__all__ = [
    "candidate_service",
    "enrichment_service",
    "queue_store",
    "suggestion_service",
    "swipe_service",
    "user_service",
]
"""Service-layer helpers for API operations."""
