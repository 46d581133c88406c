"""Pytest fixtures for testing."""
import os
from collections.abc import AsyncGenerator
from pathlib import Path

# Must be set before any app imports that trigger Settings validation
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")

import httpx
import pytest
from httpx import ASGITransport, AsyncClient
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker
from sqlalchemy.pool import StaticPool

from core.cache import ResponseCache
from core.retry import RetryPolicy
from db.session import build_engine
from models.base import Base
from services.civitai_client import CivitaiClient
from services.image_storage import ImageStorage

CIVITAI_BASE_URL = "https://civitai.com"


async def _no_sleep(_seconds: float) -> None:
    return None


@pytest.fixture
async def async_engine() -> AsyncGenerator[AsyncEngine]:
    """
    Create a fresh in-memory SQLite engine for each test.

    StaticPool keeps a single connection so every session sees the same
    in-memory database.
    """
    engine = build_engine(
        "sqlite+aiosqlite://",
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    await engine.dispose()


@pytest.fixture
async def db_session(async_engine: AsyncEngine) -> AsyncGenerator[AsyncSession]:
    """Create an async session on the test engine."""
    session_factory = async_sessionmaker(
        bind=async_engine,
        class_=AsyncSession,
        expire_on_commit=False,
    )

    async with session_factory() as session:
        yield session


@pytest.fixture
def image_storage(tmp_path: Path) -> ImageStorage:
    """Image storage in a temporary directory."""
    return ImageStorage(tmp_path / "uploads", "/uploads")


@pytest.fixture
def response_cache() -> ResponseCache:
    """An empty response cache."""
    return ResponseCache(max_size=10, default_ttl=300, cleanup_interval=60)


@pytest.fixture
def retry_policy() -> RetryPolicy:
    """Retry policy that does not actually wait between attempts."""
    return RetryPolicy(max_attempts=3, base_delay=2.0, sleep=_no_sleep)


@pytest.fixture
async def civitai_client(retry_policy: RetryPolicy) -> AsyncGenerator[CivitaiClient]:
    """Civitai client with a real httpx client (mock outbound calls with respx)."""
    async with httpx.AsyncClient() as http_client:
        yield CivitaiClient(http_client, base_url=CIVITAI_BASE_URL, retry_policy=retry_policy)


@pytest.fixture
async def client(
    db_session: AsyncSession,
    image_storage: ImageStorage,
    response_cache: ResponseCache,
    civitai_client: CivitaiClient,
) -> AsyncGenerator[AsyncClient]:
    """Create a test client with database, storage, cache and Civitai overrides."""
    # Clear the settings cache so it picks up DATABASE_URL from environment
    from core.config import get_settings

    get_settings.cache_clear()

    from api.dependencies import (
        get_async_session,
        get_civitai_client,
        get_image_storage,
        get_response_cache,
    )
    from api.main import app

    async def override_get_async_session() -> AsyncGenerator[AsyncSession]:
        yield db_session

    app.dependency_overrides[get_async_session] = override_get_async_session
    app.dependency_overrides[get_image_storage] = lambda: image_storage
    app.dependency_overrides[get_response_cache] = lambda: response_cache
    app.dependency_overrides[get_civitai_client] = lambda: civitai_client

    async with AsyncClient(
        transport=ASGITransport(app=app),
        base_url="http://test",
    ) as test_client:
        yield test_client

    app.dependency_overrides.clear()
