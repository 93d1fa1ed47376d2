"""Pytest configuration."""

import os

# Settings are read at import time, so the environment must be ready first.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ.setdefault("RUN_MIGRATIONS", "false")

import pytest  # noqa: E402
from sqlalchemy import create_engine  # noqa: E402
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine  # noqa: E402
from sqlalchemy.pool import NullPool  # noqa: E402

from src.db.base import Base  # noqa: E402
from src.services.chat_service import ChatService  # noqa: E402
from src.services.chat_store import ChatStore  # noqa: E402


@pytest.fixture(autouse=True)
def mock_settings(monkeypatch):
    """Mock settings for all tests."""
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("SECRET_KEY", "test-secret-key")


@pytest.fixture
def db_path(tmp_path):
    """SQLite file shared by every connection of one test."""
    return tmp_path / "notes.db"


@pytest.fixture
async def db_engine(db_path):
    """Create test database engine with its schema."""
    # One connection per session so concurrent transactions really overlap
    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
def session_factory(db_engine):
    return async_sessionmaker(db_engine, class_=AsyncSession, expire_on_commit=False)


@pytest.fixture
def store(session_factory) -> ChatStore:
    return ChatStore(session_factory, timeout=5.0, max_attempts=3)


@pytest.fixture
def service(store) -> ChatService:
    return ChatService(store, list_limit=200, delete_batch_size=5000)


@pytest.fixture
def sync_store(db_path) -> ChatStore:
    """Store for TestClient tests.

    The schema is created synchronously because the client runs the app on
    its own event loop; the async engine only connects once a request uses it.
    """
    sync_engine = create_engine(f"sqlite:///{db_path}")
    Base.metadata.create_all(sync_engine)
    sync_engine.dispose()

    engine = create_async_engine(f"sqlite+aiosqlite:///{db_path}", poolclass=NullPool)
    return ChatStore(
        async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False),
        timeout=5.0,
    )
