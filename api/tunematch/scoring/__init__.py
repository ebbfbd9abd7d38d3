"""Local and external compatibility scoring."""

from .similarity import AttractionProfile, TasteProfile, compatibility_score

__all__ = ["AttractionProfile", "TasteProfile", "compatibility_score"]
