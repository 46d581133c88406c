"""
Database initialization task.

Creates the SQLite database file and the prompts table, then verifies the
database with an integrity check. A database created this way is stamped with
the Alembic head revision so later `alembic upgrade head` runs only newer
migrations.

Usage:
    python -m tasks.init_database [--reset]

With --reset every table is dropped and recreated first (all data is lost).
"""
import argparse
import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path

from alembic.runtime.migration import MigrationContext
from alembic.script import ScriptDirectory
from sqlalchemy import Connection, func, select, text
from sqlalchemy.engine import make_url
from sqlalchemy.ext.asyncio import AsyncEngine

from db.session import engine as default_engine
from models import Base, Prompt

logger = logging.getLogger(__name__)

MIGRATIONS_DIR = Path(__file__).resolve().parent.parent / "db" / "migrations"


@dataclass
class InitResult:
    """Outcome of a database initialization."""

    integrity: str
    record_count: int


def ensure_database_directory(database_url: str) -> None:
    """Create the parent directory of a file-based SQLite database."""
    url = make_url(database_url)
    if not url.drivername.startswith("sqlite") or url.database in (None, "", ":memory:"):
        return
    Path(url.database).parent.mkdir(parents=True, exist_ok=True)


def stamp_head_if_unversioned(sync_conn: Connection) -> None:
    """Record the Alembic head revision on a database that has no version yet."""
    context = MigrationContext.configure(sync_conn)
    if context.get_current_revision() is not None:
        return
    script = ScriptDirectory(str(MIGRATIONS_DIR))
    context.stamp(script, "head")
    logger.info("Stamped database at migration %s", script.get_current_head())


async def ensure_schema(engine: AsyncEngine) -> None:
    """Create any missing tables. Existing tables and data are left untouched."""
    ensure_database_directory(engine.url.render_as_string(hide_password=False))
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
        await conn.run_sync(stamp_head_if_unversioned)


async def init_database(engine: AsyncEngine, reset: bool = False) -> InitResult:
    """
    Create the schema and verify the database.

    Args:
        engine: Engine to initialize.
        reset: Drop all tables before creating them.

    Returns:
        InitResult with the integrity check result and the prompt count.
    """
    ensure_database_directory(engine.url.render_as_string(hide_password=False))
    async with engine.begin() as conn:
        if reset:
            logger.warning("Dropping all tables before initialization")
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
        await conn.run_sync(stamp_head_if_unversioned)
    logger.info("Schema created")

    async with engine.connect() as conn:
        integrity = "ok"
        if engine.dialect.name == "sqlite":
            integrity = (await conn.execute(text("PRAGMA integrity_check"))).scalar_one()
        count = (await conn.execute(select(func.count()).select_from(Prompt))).scalar_one()

    logger.info("Integrity check: %s", integrity)
    logger.info("Database ready with %d prompt(s)", count)
    return InitResult(integrity=integrity, record_count=count)


def main() -> None:
    """CLI entry point with --reset flag."""
    parser = argparse.ArgumentParser(description="Create and verify the prompt database.")
    parser.add_argument(
        "--reset",
        action="store_true",
        help="Drop and recreate all tables (deletes all data)",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )
    result = asyncio.run(init_database(default_engine, reset=args.reset))
    if result.integrity != "ok":
        raise SystemExit(f"Integrity check failed: {result.integrity}")


if __name__ == "__main__":
    main()
