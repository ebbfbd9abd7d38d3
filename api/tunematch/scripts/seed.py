"""Seed script for demo users in local/dev environments."""

from __future__ import annotations

import argparse
import asyncio
import random

from sqlalchemy.ext.asyncio import AsyncSession

from tunematch.db.session import async_session
from tunematch.schema.user import MusicProfilePayload, UserCreate
from tunematch.services import user_service

DEMO_EMAIL_DOMAIN = "tunematch.example.com"
DEFAULT_USER_COUNT = 50

GENRES = (
    "pop", "rock", "hip hop", "jazz", "electronic", "indie", "r&b", "country",
    "classical", "metal", "folk", "reggae", "latin", "k-pop", "soul",
)
ARTISTS = (
    "Taylor Swift", "Drake", "Billie Eilish", "The Weeknd", "Radiohead", "Kendrick Lamar",
    "Dua Lipa", "Arctic Monkeys", "Bad Bunny", "SZA", "Daft Punk", "Adele",
    "Tame Impala", "Frank Ocean", "Coldplay", "Miles Davis", "Metallica", "Bon Iver",
)
SONGS = (
    "Blinding Lights", "Bohemian Rhapsody", "Bad Guy", "Levitating", "Creep", "HUMBLE.",
    "Do I Wanna Know?", "Get Lucky", "Rolling in the Deep", "Yellow", "So What",
    "Enter Sandman", "Holocene", "Pink + White", "Kill Bill", "The Less I Know the Better",
)
FIRST_NAMES = (
    "Alex", "Sam", "Jordan", "Taylor", "Casey", "Riley", "Morgan", "Jamie",
    "Avery", "Quinn", "Rowan", "Skyler", "Emerson", "Harper", "Reese", "Sage",
)
CITIES = ("Austin", "Berlin", "Lisbon", "Montreal", "Seoul", "Melbourne", "Chicago", "Mexico City")
GENDERS = ("male", "female")
ORIENTATIONS = ("male", "female", "both")


def _sample(rng: random.Random, population: tuple[str, ...], low: int, high: int) -> list[str]:
    return rng.sample(population, rng.randint(low, min(high, len(population))))


def build_demo_user(rng: random.Random, index: int) -> UserCreate:
    """Build one demo registration payload with a random music profile."""
    first_name = rng.choice(FIRST_NAMES)
    return UserCreate(
        email=f"demo{index:04d}@{DEMO_EMAIL_DOMAIN}",
        name=f"{first_name} {index}",
        age=rng.randint(18, 45),
        gender=rng.choice(GENDERS),
        sexual_orientation=rng.choice(ORIENTATIONS),
        bio=f"Listening to {rng.choice(GENRES)} on repeat.",
        location=rng.choice(CITIES),
        music_profile=MusicProfilePayload(
            genres=_sample(rng, GENRES, 2, 5),
            artists=_sample(rng, ARTISTS, 2, 6),
            songs=_sample(rng, SONGS, 2, 6),
        ),
    )


async def seed(session: AsyncSession | None = None, *, count: int = DEFAULT_USER_COUNT, seed_value: int | None = None) -> int:
    """Create ``count`` demo users, skipping emails that already exist; returns how many were created."""
    if session is None:
        async with async_session() as managed_session:
            return await _seed_session(managed_session, count, seed_value)
    return await _seed_session(session, count, seed_value)


async def _seed_session(session: AsyncSession, count: int, seed_value: int | None) -> int:
    rng = random.Random(seed_value)
    created = 0
    for index in range(count):
        payload = build_demo_user(rng, index)
        if await user_service.get_user_by_email(session, payload.email):
            continue
        await user_service.create_user(session, payload)
        created += 1
    print(f"Seed complete - created {created} of {count} demo users")
    return created


def main() -> None:
    """CLI entrypoint for seeding demo data."""
    parser = argparse.ArgumentParser(description="Populate the database with demo TuneMatch users.")
    parser.add_argument("--count", type=int, default=DEFAULT_USER_COUNT)
    parser.add_argument("--seed", type=int, default=None, help="Random seed for reproducible data")
    args = parser.parse_args()
    asyncio.run(seed(count=args.count, seed_value=args.seed))


if __name__ == "__main__":
    main()
