"""Shared pytest fixtures for API tests and database isolation."""

from __future__ import annotations

import os
import tempfile
import uuid
from pathlib import Path

os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault(
    "DATABASE_URL", f"sqlite+aiosqlite:///{Path(tempfile.gettempdir()) / 'tunematch-import.db'}"
)

import pytest  # noqa: E402
import pytest_asyncio  # noqa: E402
from httpx import ASGITransport, AsyncClient  # noqa: E402
from sqlalchemy.engine import make_url  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402

from tunematch.api.deps import get_db  # noqa: E402
from tunematch.core.config import settings  # noqa: E402
from tunematch.db.base import Base  # noqa: E402
from tunematch.main import app  # noqa: E402
from tunematch.services.task_queue import task_queue  # noqa: E402


@pytest_asyncio.fixture()
async def engine(tmp_path: Path) -> AsyncEngine:
    database_url = settings.test_database_url or f"sqlite+aiosqlite:///{tmp_path / 'tunematch.db'}"
    url = make_url(database_url)
    schema_name: str | None = None
    test_engine = create_async_engine(database_url, future=True)
    if url.drivername.startswith("postgresql"):
        # Isolate each test in its own schema for parallel-friendly cleanup.
        schema_name = f"test_{uuid.uuid4().hex}"
        test_engine = test_engine.execution_options(schema_translate_map={None: schema_name})
    async with test_engine.begin() as conn:
        if schema_name:
            await conn.exec_driver_sql(f'CREATE SCHEMA IF NOT EXISTS "{schema_name}"')
        await conn.run_sync(Base.metadata.create_all)
    try:
        yield test_engine
    finally:
        async with test_engine.begin() as conn:
            if schema_name:
                await conn.exec_driver_sql(f'DROP SCHEMA IF EXISTS "{schema_name}" CASCADE')
            else:
                await conn.run_sync(Base.metadata.drop_all)
        await test_engine.dispose()


@pytest.fixture()
def session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)


@pytest_asyncio.fixture()
async def session(session_factory: async_sessionmaker[AsyncSession]) -> AsyncSession:
    async with session_factory() as test_session:
        yield test_session


@pytest_asyncio.fixture()
async def client(session_factory: async_sessionmaker[AsyncSession]) -> AsyncClient:
    async def _get_test_db():
        async with session_factory() as request_session:
            yield request_session

    app.dependency_overrides[get_db] = _get_test_db
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://testserver") as async_client:
        yield async_client
    app.dependency_overrides.pop(get_db, None)


@pytest.fixture(autouse=True)
def enrichment_calls(monkeypatch: pytest.MonkeyPatch) -> list[dict[str, object]]:
    """Record enrichment dispatches instead of contacting the scoring provider."""
    calls: list[dict[str, object]] = []

    async def _record(*, owner_user_id, candidate_ids):
        calls.append({"owner_user_id": owner_user_id, "candidate_ids": list(candidate_ids)})
        return None

    monkeypatch.setattr(task_queue, "enqueue_enrichment", _record)
    return calls
