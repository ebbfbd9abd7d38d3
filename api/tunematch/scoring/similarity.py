"""Deterministic local compatibility scoring between two users.

The score blends music overlap (80%) with a mutual-attraction gate (20%):

- Each taste dimension contributes the Jaccard similarity of its normalized
  label sets, scaled to 0-100. An empty set on either side scores 0.
- Dimensions are weighted genre 0.30, artist 0.40, song 0.30.
- The attraction gate is 100 only when each user is attracted to the other's
  gender, so a one-sided or unknown preference caps the total at 80.

Everything here is pure: no I/O, no state, and no input makes it raise.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Iterable

from tunematch.models.types import normalize_label

GENRE_WEIGHT = 0.30
ARTIST_WEIGHT = 0.40
SONG_WEIGHT = 0.30
MUSIC_WEIGHT = 0.8
PREFERENCE_WEIGHT = 0.2
ATTRACTED_TO_ALL = "both"


@dataclass(frozen=True, slots=True)
class TasteProfile:
    """Genre, artist, and song labels for one user."""
    genres: tuple[str, ...] = field(default_factory=tuple)
    artists: tuple[str, ...] = field(default_factory=tuple)
    songs: tuple[str, ...] = field(default_factory=tuple)

    @classmethod
    def from_model(cls, profile: Any) -> "TasteProfile":
        """Build from a ``MusicProfile`` row or any object with label attributes."""
        return cls(
            genres=tuple(getattr(profile, "genres", None) or ()),
            artists=tuple(getattr(profile, "artists", None) or ()),
            songs=tuple(getattr(profile, "songs", None) or ()),
        )


@dataclass(frozen=True, slots=True)
class AttractionProfile:
    """A user's own gender and the gender category they are attracted to."""
    gender: str | None = None
    attracted_to: str | None = None

    @classmethod
    def from_user(cls, user: Any) -> "AttractionProfile":
        return cls(gender=getattr(user, "gender", None), attracted_to=getattr(user, "sexual_orientation", None))


def _label_set(values: Iterable[str] | None) -> set[str]:
    return {label.casefold() for label in (normalize_label(value) for value in values or ()) if label}


def jaccard_similarity(left: Iterable[str] | None, right: Iterable[str] | None) -> float:
    """Return |intersection| / |union| * 100, or 0 when either side is empty."""
    left_set = _label_set(left)
    right_set = _label_set(right)
    if not left_set or not right_set:
        return 0.0
    return len(left_set & right_set) / len(left_set | right_set) * 100


def music_score(profile_a: TasteProfile, profile_b: TasteProfile) -> float:
    return (
        jaccard_similarity(profile_a.genres, profile_b.genres) * GENRE_WEIGHT
        + jaccard_similarity(profile_a.artists, profile_b.artists) * ARTIST_WEIGHT
        + jaccard_similarity(profile_a.songs, profile_b.songs) * SONG_WEIGHT
    )


def is_attracted_to(attracted_to: str | None, gender: str | None) -> bool:
    """Return True when an attraction criterion accepts the given gender."""
    criterion = normalize_label(attracted_to).casefold()
    category = normalize_label(gender).casefold()
    if not criterion or not category:
        return False
    return criterion == ATTRACTED_TO_ALL or criterion == category


def preference_score(attraction_a: AttractionProfile, attraction_b: AttractionProfile) -> float:
    mutual = is_attracted_to(attraction_a.attracted_to, attraction_b.gender) and is_attracted_to(
        attraction_b.attracted_to, attraction_a.gender
    )
    return 100.0 if mutual else 0.0


def compatibility_score(
    profile_a: TasteProfile,
    profile_b: TasteProfile,
    attraction_a: AttractionProfile,
    attraction_b: AttractionProfile,
) -> float:
    """Score two users in [0, 100], rounded to two decimals. Symmetric in (a, b)."""
    total = music_score(profile_a, profile_b) * MUSIC_WEIGHT + preference_score(attraction_a, attraction_b) * PREFERENCE_WEIGHT
    return round(min(max(total, 0.0), 100.0), 2)
