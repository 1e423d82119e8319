"""
Pytest configuration and shared fixtures.

Tests run against a throwaway SQLite file by default. Set TEST_DATABASE_URL
to a PostgreSQL URL to run the same suite against PostgreSQL.
"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path
from uuid import uuid4

# Configure settings BEFORE importing anything that reads them
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("WORKER_ENABLED", "false")
os.environ.setdefault("API_SECRET_KEY", "test-secret-key")
os.environ.setdefault("API_PASSWORD_HASH_ROUNDS", "4")
os.environ.setdefault("LOG_FORMAT", "console")

import pytest
import pytest_asyncio
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from queuewizard.api.auth import create_access_token
from queuewizard.api.main import create_app
from queuewizard.db import (
    Base,
    create_schema,
    create_session_factory,
    get_async_session,
)
from queuewizard.db.connection import get_test_engine
from queuewizard.db.store import SqlJobStore
from tests.fakes import InMemoryJobStore


@pytest.fixture
def database_url(tmp_path: Path) -> str:
    """Get the test database URL."""
    return os.getenv(
        "TEST_DATABASE_URL",
        f"sqlite+aiosqlite:///{tmp_path / 'queuewizard_test.db'}",
    )


@pytest_asyncio.fixture
async def async_engine(database_url: str) -> AsyncGenerator[AsyncEngine]:
    """Create an async database engine with a fresh schema."""
    engine = get_test_engine(database_url)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await create_schema(engine)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(async_engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create a session factory bound to the test engine."""
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
def sql_store(session_factory: async_sessionmaker[AsyncSession]) -> SqlJobStore:
    """Create a SQL-backed job store with the default attempt ceiling."""
    return SqlJobStore(max_attempts=3, session_factory=session_factory)


@pytest.fixture
def memory_store() -> InMemoryJobStore:
    """Create an in-memory job store."""
    return InMemoryJobStore(max_attempts=3)


@pytest_asyncio.fixture
async def app(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[FastAPI]:
    """Create a FastAPI app whose sessions come from the test engine."""
    app = create_app()

    async def override_session() -> AsyncGenerator[AsyncSession]:
        async with session_factory() as session:
            try:
                yield session
                await session.commit()
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_async_session] = override_session

    yield app

    app.dependency_overrides.clear()


@pytest_asyncio.fixture
async def client(app: FastAPI) -> AsyncGenerator[AsyncClient]:
    """Create an async HTTP client for testing."""
    transport = ASGITransport(app=app)
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@pytest.fixture
def test_owner_id() -> str:
    """Generate a test owner ID."""
    return f"test-owner-{uuid4().hex[:8]}"


@pytest.fixture
def auth_headers(test_owner_id: str) -> dict[str, str]:
    """Create authentication headers for testing."""
    token = create_access_token(owner_id=test_owner_id)
    return {
        "Authorization": f"Bearer {token}",
    }
