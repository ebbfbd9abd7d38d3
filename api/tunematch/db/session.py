"""Async engine and session factories for request and background use."""

from __future__ import annotations

from contextlib import asynccontextmanager
from typing import AsyncIterator

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import NullPool

from tunematch.core.config import settings

engine = create_async_engine(settings.database_url, future=True, pool_pre_ping=True)
async_session = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


async def get_session() -> AsyncIterator[AsyncSession]:
    async with async_session() as session:
        yield session


@asynccontextmanager
async def isolated_session_factory(database_url: str | None = None) -> AsyncIterator[async_sessionmaker[AsyncSession]]:
    """Yield a sessionmaker bound to a private engine.

    RQ jobs run each unit of work under a fresh event loop, so they cannot reuse
    the pooled connections of the module-level engine.
    """
    private_engine = create_async_engine(database_url or settings.database_url, future=True, poolclass=NullPool)
    try:
        yield async_sessionmaker(private_engine, expire_on_commit=False, class_=AsyncSession)
    finally:
        await private_engine.dispose()
