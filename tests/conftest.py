"""
Pytest configuration and shared fixtures.

Every test gets its own SQLite database file, so tests never share state.
"""

from collections.abc import AsyncGenerator, Generator
from typing import Any

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from jobqueue.api.main import create_app
from jobqueue.config import get_settings
from jobqueue.db import (
    JobRepository,
    close_db,
    create_engine_for_url,
    create_schema,
    create_session_factory,
    init_db,
)


@pytest.fixture(autouse=True)
def database_url(tmp_path, monkeypatch) -> Generator[str]:
    """Point the settings at a fresh database file for each test."""
    url = f"sqlite+aiosqlite:///{tmp_path / 'jobqueue.db'}"
    monkeypatch.setenv("DATABASE_URL", url)
    monkeypatch.setenv("LOG_FORMAT", "console")
    monkeypatch.delenv("WORKER_ID", raising=False)
    get_settings.cache_clear()

    yield url

    get_settings.cache_clear()


@pytest_asyncio.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Create an async engine with the schema in place."""
    engine = create_engine_for_url(database_url)
    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the test engine."""
    return create_session_factory(async_engine)


@pytest_asyncio.fixture
async def db_session(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession]:
    """Create a database session for tests."""
    async with session_factory() as session:
        yield session

        # Rollback any uncommitted changes
        await session.rollback()


@pytest.fixture
def repo(db_session: AsyncSession) -> JobRepository:
    """Create a repository instance."""
    return JobRepository(db_session)


@pytest_asyncio.fixture
async def initialized_db(database_url: str) -> AsyncGenerator[str]:
    """Initialize the global engine and session factory used by workers and routes."""
    await init_db(database_url)

    yield database_url

    await close_db()


@pytest_asyncio.fixture
async def app(initialized_db: str) -> AsyncGenerator[FastAPI]:
    """Create a FastAPI app for testing with initialized database."""
    yield create_app()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def echo_payload() -> dict[str, Any]:
    """Create a sample job payload."""
    return {"type": "echo", "message": "Hello, World!"}
