from .enrichment import enrich_suggestions_job, run_enrichment

__all__ = ["enrich_suggestions_job", "run_enrichment"]
"""Background job modules for RQ workers."""
