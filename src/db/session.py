"""Async SQLAlchemy session factory."""
import json
from collections.abc import AsyncGenerator
from typing import Any

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from core.config import get_settings


def _json_dumps(value: Any) -> str:
    # Keep non-ASCII tags readable in the column so LIKE search matches them
    return json.dumps(value, ensure_ascii=False)


def build_engine(database_url: str, **kwargs: Any) -> AsyncEngine:
    """Create an async engine with the JSON serializer used by the prompt columns."""
    return create_async_engine(database_url, json_serializer=_json_dumps, **kwargs)


settings = get_settings()

engine = build_engine(
    settings.database_url,
    echo=False,
    pool_pre_ping=True,
)

async_session_factory = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
)


async def get_async_session() -> AsyncGenerator[AsyncSession]:
    """
    Yield an async database session.

    Uses unit-of-work pattern: services use flush() for refreshing objects,
    commit happens once here at request end. Imports are the exception and
    commit per record, so earlier records survive a later failure.
    """
    async with async_session_factory() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
