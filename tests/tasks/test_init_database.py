"""Tests for the database initialization task."""
from pathlib import Path

from sqlalchemy import func, inspect, select, text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from db.session import build_engine
from models.prompt import Prompt
from tasks.init_database import ensure_database_directory, ensure_schema, init_database


async def _table_names(engine: AsyncEngine) -> list[str]:
    async with engine.connect() as conn:
        return await conn.run_sync(lambda sync_conn: inspect(sync_conn).get_table_names())


async def test__init_database__reports_integrity_and_count(
    async_engine: AsyncEngine,
    db_session: AsyncSession,
) -> None:
    db_session.add(Prompt(title="kept", content="row"))
    await db_session.commit()

    result = await init_database(async_engine)

    assert result.integrity == "ok"
    assert result.record_count == 1


async def test__init_database__reset_drops_existing_data(
    async_engine: AsyncEngine,
    db_session: AsyncSession,
) -> None:
    db_session.add(Prompt(title="doomed", content="row"))
    await db_session.commit()

    result = await init_database(async_engine, reset=True)

    assert result.record_count == 0
    count = (await db_session.execute(select(func.count()).select_from(Prompt))).scalar_one()
    assert count == 0


async def test__ensure_schema__creates_file_database(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "dir" / "prompts.db"
    engine = build_engine(f"sqlite+aiosqlite:///{db_path}")
    try:
        await ensure_schema(engine)
        assert "prompts" in await _table_names(engine)
    finally:
        await engine.dispose()

    assert db_path.exists()


async def test__ensure_schema__stamps_alembic_head_once(tmp_path: Path) -> None:
    engine = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'prompts.db'}")
    try:
        await ensure_schema(engine)
        await ensure_schema(engine)
        async with engine.connect() as conn:
            result = await conn.execute(text("SELECT version_num FROM alembic_version"))
            versions = result.scalars().all()
    finally:
        await engine.dispose()

    assert versions == ["3c1f9a7d2b40"]


def test__ensure_database_directory__ignores_memory_and_other_backends(tmp_path: Path) -> None:
    ensure_database_directory("sqlite+aiosqlite://")
    ensure_database_directory("sqlite+aiosqlite:///:memory:")
    ensure_database_directory("postgresql+asyncpg://user@localhost/db")

    target = tmp_path / "made" / "prompts.db"
    ensure_database_directory(f"sqlite+aiosqlite:///{target}")
    assert target.parent.is_dir()
