"""Database maintenance: full backups, restore, statistics and connectivity checks."""
import json
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from sqlalchemy import delete, select, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.prompt import Prompt
from schemas.import_export import EXPORT_FORMAT_VERSION
from schemas.validators import (
    has_allowed_image_extension,
    normalize_image_fields,
    normalize_tags,
    parse_string_list,
)
from services import prompt_service
from services.exceptions import BackupFormatError
from services.tag_service import get_tag_counts

logger = logging.getLogger(__name__)

BACKUP_DESCRIPTION = "Prompt Manager full database backup"


def prompt_to_backup_row(prompt: Prompt) -> dict[str, Any]:
    """Serialize every column of a prompt, including its ID and timestamps."""
    return {
        "id": prompt.id,
        "title": prompt.title,
        "content": prompt.content,
        "imagePath": prompt.image_path,
        "images": prompt.images,
        "tags": prompt.tags,
        "highlights": prompt.highlights,
        "isFavorited": prompt.is_favorited,
        "createdAt": prompt.created_at.isoformat(),
        "updatedAt": prompt.updated_at.isoformat(),
    }


async def create_backup(db: AsyncSession, now: datetime | None = None) -> dict[str, Any]:
    """Build a backup document holding every prompt ordered by ID."""
    now = now or datetime.now(UTC)
    prompts = await prompt_service.get_all_prompts(db, order="id")
    rows = [prompt_to_backup_row(p) for p in prompts]
    logger.info("Created backup with %d record(s)", len(rows))
    return {
        "version": EXPORT_FORMAT_VERSION,
        "timestamp": now.isoformat(),
        "database": "sqlite",
        "tables": {"prompts": rows},
        "metadata": {
            "totalRecords": len(rows),
            "backupDate": now.strftime("%Y-%m-%d %H:%M:%S"),
            "description": BACKUP_DESCRIPTION,
        },
    }


def backup_filename(now: datetime | None = None) -> str:
    """Download name for a backup taken at `now`."""
    stamp = (now or datetime.now(UTC)).strftime("%Y-%m-%dT%H-%M-%S")
    return f"database-backup-{stamp}.json"


def parse_backup(data: bytes) -> list[Any]:
    """
    Decode a backup document and return its prompt rows.

    Raises:
        BackupFormatError: If the document is not JSON or lacks `tables.prompts`.
    """
    try:
        document = json.loads(data.decode("utf-8-sig"))
    except (UnicodeDecodeError, json.JSONDecodeError) as e:
        raise BackupFormatError("Backup file is not valid JSON") from e

    tables = document.get("tables") if isinstance(document, dict) else None
    rows = tables.get("prompts") if isinstance(tables, dict) else None
    if not isinstance(rows, list):
        raise BackupFormatError("Invalid backup structure: expected tables.prompts to be an array")
    return rows


def _parse_datetime(value: Any) -> datetime | None:
    if not isinstance(value, str) or not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)


def _json_field(value: Any) -> Any:
    # Older backups stored JSON columns as encoded strings
    if isinstance(value, str):
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            return value
    return value


def _parse_flag(value: Any) -> bool:
    # SQLite exports hold 0/1, some older tools wrote "true"/"false"
    if isinstance(value, bool):
        return value
    if isinstance(value, int):
        return value == 1
    return isinstance(value, str) and value.strip().lower() == "true"


def _restored_columns(row: Mapping[str, Any]) -> dict[str, Any]:
    """Coerce the list and flag columns of a backup row into their stored shapes."""
    tags = normalize_tags(parse_string_list(row.get("tags")))
    images = [
        path for path in parse_string_list(row.get("images")) if has_allowed_image_extension(path)
    ]
    image_path = row.get("imagePath")
    if not isinstance(image_path, str) or not has_allowed_image_extension(image_path):
        image_path = None
    image_path, images = normalize_image_fields(image_path, images)
    return {
        "image_path": image_path,
        "images": images,
        "tags": tags or None,
        "highlights": _json_field(row.get("highlights")),
        "is_favorited": _parse_flag(row.get("isFavorited", False)),
    }


@dataclass
class RestoreResult:
    """Counts from a restore."""

    imported: int = 0
    skipped: int = 0
    total: int = 0
    replace_mode: bool = False
    errors: list[str] = field(default_factory=list)


async def restore_backup(
    db: AsyncSession,
    rows: list[Any],
    replace_existing: bool = False,
) -> RestoreResult:
    """
    Restore prompt rows from a backup.

    With `replace_existing` every current prompt is deleted first. Otherwise a
    row whose title and content match an existing prompt is skipped. Rows
    without a title or content are skipped with an error. Restored prompts keep
    their original timestamps but receive new IDs.
    """
    result = RestoreResult(total=len(rows), replace_mode=replace_existing)

    if replace_existing:
        await db.execute(delete(Prompt))
        await db.commit()
        logger.info("Cleared existing prompts before restore")

    for row in rows:
        if not isinstance(row, Mapping):
            result.errors.append("Skipped a record that is not an object")
            result.skipped += 1
            continue
        title, content = row.get("title"), row.get("content")
        if not isinstance(title, str) or not title or not isinstance(content, str) or not content:
            result.errors.append(f"Record ID {row.get('id')}: title and content are required")
            result.skipped += 1
            continue

        try:
            if not replace_existing and await prompt_service.find_duplicate(db, title, content):
                result.skipped += 1
                continue

            created_at = _parse_datetime(row.get("createdAt")) or datetime.now(UTC)
            prompt = Prompt(
                title=title,
                content=content,
                **_restored_columns(row),
                created_at=created_at,
                updated_at=_parse_datetime(row.get("updatedAt")) or created_at,
            )
            db.add(prompt)
            await db.commit()
            result.imported += 1
        except SQLAlchemyError as e:
            logger.exception("Failed to restore record '%s'", title[:50])
            await db.rollback()
            result.errors.append(f'Record "{title}": {e.__class__.__name__}')
            result.skipped += 1

    logger.info(
        "Restore finished: %d imported, %d skipped of %d (replace=%s)",
        result.imported,
        result.skipped,
        result.total,
        replace_existing,
    )
    return result


async def get_database_info(db: AsyncSession, include_data: bool = False) -> dict[str, Any]:
    """Collect record counts, tag statistics and optionally every record."""
    total = await prompt_service.count_prompts(db)
    favorited = await prompt_service.count_prompts(db, favorites_only=True)
    newest = await db.scalar(select(Prompt.created_at).order_by(Prompt.created_at.desc()).limit(1))
    oldest = await db.scalar(select(Prompt.created_at).order_by(Prompt.created_at.asc()).limit(1))
    tag_counts = await get_tag_counts(db)

    info: dict[str, Any] = {
        "statistics": {
            "totalRecords": total,
            "favoritedRecords": favorited,
            "uniqueTags": len(tag_counts),
            "newestRecord": newest.isoformat() if newest else None,
            "oldestRecord": oldest.isoformat() if oldest else None,
        },
        "tagStats": {tc.tag: tc.count for tc in tag_counts},
    }
    if include_data:
        prompts = await prompt_service.get_all_prompts(db, order="id")
        info["records"] = [prompt_to_backup_row(p) for p in prompts]
    return info


async def refresh_connection(db: AsyncSession) -> dict[str, Any]:
    """Run a trivial query to confirm the database is reachable and count records."""
    await db.execute(text("SELECT 1"))
    total = await prompt_service.count_prompts(db)
    return {
        "timestamp": datetime.now(UTC).isoformat(),
        "totalRecords": total,
        "status": "connected",
    }
