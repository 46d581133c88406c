"""Database backup, restore and maintenance endpoints."""
import json
import logging
from datetime import UTC, datetime

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_settings
from core.config import Settings
from schemas.database import (
    DatabaseInfoResponse,
    RefreshResponse,
    RestoreResponse,
    RestoreSummary,
)
from services import database_service
from services.exceptions import BackupFormatError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/database", tags=["database"])


@router.get("/backup")
async def backup_database(
    db: AsyncSession = Depends(get_async_session),
) -> Response:
    """Download a JSON backup of every prompt, including IDs and timestamps."""
    now = datetime.now(UTC)
    backup = await database_service.create_backup(db, now=now)
    filename = database_service.backup_filename(now)
    return Response(
        content=json.dumps(backup, ensure_ascii=False, indent=2),
        media_type="application/json",
        headers={"Content-Disposition": f'attachment; filename="{filename}"'},
    )


@router.post("/restore", response_model=RestoreResponse)
async def restore_database(
    file: UploadFile = File(...),
    replace_existing: str | None = Form(default=None, alias="replaceExisting"),
    db: AsyncSession = Depends(get_async_session),
    settings: Settings = Depends(get_settings),
) -> RestoreResponse:
    """
    Restore prompts from a backup file.

    With `replaceExisting=true` all current prompts are deleted first;
    otherwise prompts matching an existing title and content are skipped.

    Returns 400 for non-JSON or malformed backups and 413 for files over
    MAX_RESTORE_SIZE.
    """
    if not (file.filename or "").lower().endswith(".json"):
        raise HTTPException(status_code=400, detail="Only JSON backup files are supported")

    data = await file.read()
    if len(data) > settings.max_restore_size:
        raise HTTPException(
            status_code=413,
            detail=f"Backup exceeds the maximum size of {settings.max_restore_size} bytes",
        )

    try:
        rows = database_service.parse_backup(data)
    except BackupFormatError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    result = await database_service.restore_backup(
        db, rows, replace_existing=(replace_existing or "").lower() == "true",
    )
    return RestoreResponse(
        message="Database restore complete",
        data=RestoreSummary(
            imported=result.imported,
            skipped=result.skipped,
            total=result.total,
            replace_mode=result.replace_mode,
            errors=result.errors or None,
        ),
    )


@router.get("/info", response_model=DatabaseInfoResponse)
async def database_info(
    include_data: bool = Query(default=False, alias="includeData"),
    db: AsyncSession = Depends(get_async_session),
) -> DatabaseInfoResponse:
    """Record counts, newest/oldest creation time and tag statistics."""
    info = await database_service.get_database_info(db, include_data=include_data)
    return DatabaseInfoResponse(data=info)


@router.post("/refresh", response_model=RefreshResponse)
async def refresh_database(
    db: AsyncSession = Depends(get_async_session),
) -> RefreshResponse:
    """Check the database connection and report the record count."""
    try:
        data = await database_service.refresh_connection(db)
    except SQLAlchemyError as e:
        logger.exception("Database refresh failed")
        raise HTTPException(status_code=500, detail="Database refresh failed") from e
    return RefreshResponse(message="Database connection refreshed", data=data)
