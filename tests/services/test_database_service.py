"""Tests for database backup, restore and statistics."""
import json
from datetime import UTC, datetime

import pytest
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.prompt import Prompt
from services.database_service import (
    backup_filename,
    create_backup,
    get_database_info,
    parse_backup,
    refresh_connection,
    restore_backup,
)
from services.exceptions import BackupFormatError

NOW = datetime(2025, 6, 7, 8, 9, 10, tzinfo=UTC)


async def _seed(db: AsyncSession) -> list[Prompt]:
    prompts = [
        Prompt(title="one", content="first", tags=["a", "b"], is_favorited=True,
               created_at=datetime(2024, 1, 1, tzinfo=UTC)),
        Prompt(title="two", content="second", tags=["a"],
               created_at=datetime(2024, 2, 1, tzinfo=UTC)),
    ]
    db.add_all(prompts)
    await db.commit()
    return prompts


async def _titles(db: AsyncSession) -> list[str]:
    result = await db.execute(select(Prompt.title).order_by(Prompt.id))
    return list(result.scalars().all())


# =============================================================================
# Backup
# =============================================================================


async def test__create_backup__contains_every_row(db_session: AsyncSession) -> None:
    await _seed(db_session)

    backup = await create_backup(db_session, now=NOW)

    assert backup["version"] == "1.0.0"
    assert backup["database"] == "sqlite"
    assert backup["timestamp"] == NOW.isoformat()
    assert backup["metadata"]["totalRecords"] == 2
    assert backup["metadata"]["backupDate"] == "2025-06-07 08:09:10"
    rows = backup["tables"]["prompts"]
    assert [r["title"] for r in rows] == ["one", "two"]
    assert rows[0]["isFavorited"] is True
    assert rows[0]["createdAt"].startswith("2024-01-01T00:00:00")
    # Must be serializable as-is
    json.dumps(backup)


def test__backup_filename() -> None:
    assert backup_filename(NOW) == "database-backup-2025-06-07T08-09-10.json"


# =============================================================================
# parse_backup
# =============================================================================


def test__parse_backup__returns_rows() -> None:
    data = json.dumps({"tables": {"prompts": [{"title": "t"}]}}).encode()
    assert parse_backup(data) == [{"title": "t"}]


@pytest.mark.parametrize(
    ("data", "message"),
    [
        (b"not json", "not valid JSON"),
        (b"[]", "Invalid backup structure"),
        (b'{"tables": {}}', "Invalid backup structure"),
        (b'{"tables": {"prompts": {}}}', "Invalid backup structure"),
    ],
)
def test__parse_backup__rejects_bad_documents(data: bytes, message: str) -> None:
    with pytest.raises(BackupFormatError, match=message):
        parse_backup(data)


# =============================================================================
# Restore
# =============================================================================


async def test__restore_backup__round_trip_into_empty_database(db_session: AsyncSession) -> None:
    await _seed(db_session)
    backup = await create_backup(db_session, now=NOW)

    result = await restore_backup(db_session, backup["tables"]["prompts"], replace_existing=True)

    assert result.imported == 2
    assert result.skipped == 0
    assert result.replace_mode is True
    prompts = (await db_session.execute(select(Prompt).order_by(Prompt.id))).scalars().all()
    assert [p.title for p in prompts] == ["one", "two"]
    # Original timestamps survive the round trip
    assert prompts[0].created_at == datetime(2024, 1, 1, tzinfo=UTC)
    assert prompts[0].tags == ["a", "b"]
    assert prompts[0].is_favorited is True


async def test__restore_backup__without_replace_skips_duplicates(db_session: AsyncSession) -> None:
    await _seed(db_session)
    rows = [
        {"id": 1, "title": "one", "content": "first"},
        {"id": 9, "title": "new", "content": "fresh"},
    ]

    result = await restore_backup(db_session, rows, replace_existing=False)

    assert result.imported == 1
    assert result.skipped == 1
    assert result.errors == []
    assert await _titles(db_session) == ["one", "two", "new"]


async def test__restore_backup__rows_without_required_fields_are_skipped(
    db_session: AsyncSession,
) -> None:
    rows = [
        {"id": 3, "title": "", "content": "x"},
        {"id": 4, "title": "ok", "content": "fine"},
        "garbage",
    ]

    result = await restore_backup(db_session, rows)

    assert result.imported == 1
    assert result.skipped == 2
    assert result.total == 3
    assert result.errors == [
        "Record ID 3: title and content are required",
        "Skipped a record that is not an object",
    ]


async def test__restore_backup__decodes_json_string_columns(db_session: AsyncSession) -> None:
    rows = [{
        "title": "legacy",
        "content": "row",
        "tags": '["x", "y"]',
        "images": '["/uploads/a.png"]',
        "isFavorited": 1,
    }]

    await restore_backup(db_session, rows)

    prompt = (await db_session.execute(select(Prompt))).scalar_one()
    assert prompt.tags == ["x", "y"]
    assert prompt.images == ["/uploads/a.png"]
    assert prompt.is_favorited is True


async def test__restore_backup__coerces_malformed_list_columns(db_session: AsyncSession) -> None:
    rows = [
        {"title": "csv", "content": "c", "tags": "a, b, a", "imagePath": "/uploads/x.png"},
        {"title": "double", "content": "c", "tags": json.dumps(json.dumps(["x"]))},
        {"title": "scalar", "content": "c", "tags": 5, "images": {"k": "v"}, "imagePath": 3},
        {"title": "not images", "content": "c", "images": ["/uploads/evil.exe", 7]},
    ]

    result = await restore_backup(db_session, rows)

    assert result.imported == 4
    prompts = (await db_session.execute(select(Prompt).order_by(Prompt.id))).scalars().all()
    assert prompts[0].tags == ["a", "b"]
    assert prompts[0].images == ["/uploads/x.png"]
    assert prompts[1].tags == ["x"]
    assert prompts[2].tags is None
    assert prompts[2].images is None
    assert prompts[2].image_path is None
    assert prompts[3].images is None


async def test__restore_backup__string_flags_only_true_when_true(db_session: AsyncSession) -> None:
    rows = [
        {"title": "a", "content": "c", "isFavorited": "false"},
        {"title": "b", "content": "c", "isFavorited": "TRUE"},
        {"title": "c", "content": "c", "isFavorited": 0},
        {"title": "d", "content": "c", "isFavorited": [1]},
    ]

    await restore_backup(db_session, rows)

    prompts = (await db_session.execute(select(Prompt).order_by(Prompt.id))).scalars().all()
    assert [p.is_favorited for p in prompts] == [False, True, False, False]


# =============================================================================
# Info / refresh
# =============================================================================


async def test__get_database_info__statistics(db_session: AsyncSession) -> None:
    await _seed(db_session)

    info = await get_database_info(db_session)

    assert info["statistics"] == {
        "totalRecords": 2,
        "favoritedRecords": 1,
        "uniqueTags": 2,
        "newestRecord": datetime(2024, 2, 1, tzinfo=UTC).isoformat(),
        "oldestRecord": datetime(2024, 1, 1, tzinfo=UTC).isoformat(),
    }
    assert info["tagStats"] == {"a": 2, "b": 1}
    assert "records" not in info


async def test__get_database_info__include_data(db_session: AsyncSession) -> None:
    await _seed(db_session)

    info = await get_database_info(db_session, include_data=True)

    assert [r["title"] for r in info["records"]] == ["one", "two"]


async def test__get_database_info__empty_database(db_session: AsyncSession) -> None:
    info = await get_database_info(db_session)

    assert info["statistics"]["totalRecords"] == 0
    assert info["statistics"]["newestRecord"] is None
    assert info["tagStats"] == {}


async def test__refresh_connection(db_session: AsyncSession) -> None:
    await _seed(db_session)

    result = await refresh_connection(db_session)

    assert result["status"] == "connected"
    assert result["totalRecords"] == 2
