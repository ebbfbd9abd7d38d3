from __future__ import annotations

import pytest
from sqlalchemy import func, select

from tunematch.models.user import MusicProfile, User
from tunematch.scripts import seed as seed_script


@pytest.mark.asyncio
async def test_seed_creates_users_with_profiles(session):
    created = await seed_script.seed(session=session, count=8, seed_value=7)

    assert created == 8
    assert await session.scalar(select(func.count()).select_from(User)) == 8
    profiles = (await session.execute(select(MusicProfile))).scalars().all()
    assert len(profiles) == 8
    assert all(profile.genres and profile.artists and profile.songs for profile in profiles)


@pytest.mark.asyncio
async def test_seed_is_idempotent(session):
    await seed_script.seed(session=session, count=5, seed_value=1)
    created = await seed_script.seed(session=session, count=5, seed_value=1)

    assert created == 0
    assert await session.scalar(select(func.count()).select_from(User)) == 5
