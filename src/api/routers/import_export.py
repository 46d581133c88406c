"""Import and export endpoints."""
import logging

from fastapi import APIRouter, Depends, File, Form, HTTPException, Query, Response, UploadFile
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_image_storage, get_settings
from core.config import Settings
from schemas.import_export import ImportResponse
from services.exceptions import ImportFormatError, NoDataError
from services.image_storage import ImageStorage
from services.import_export_service import (
    ExportOptions,
    ImportOptions,
    export_prompts,
    import_file,
)

logger = logging.getLogger(__name__)

router = APIRouter(tags=["import-export"])


@router.post("/import", response_model=ImportResponse)
async def import_prompts(
    file: UploadFile = File(...),
    skip_duplicates: str | None = Form(default=None, alias="skipDuplicates"),
    update_existing: str | None = Form(default=None, alias="updateExisting"),
    validate_images: str | None = Form(default=None, alias="validateImages"),
    db: AsyncSession = Depends(get_async_session),
    storage: ImageStorage = Depends(get_image_storage),
    settings: Settings = Depends(get_settings),
) -> ImportResponse:
    """
    Import prompts from a .json, .md/.markdown or .zip file.

    Form fields `skipDuplicates`, `updateExisting` and `validateImages` take
    "true"/"false". A file that parses but has no valid records returns
    `success: false` with the per-record errors and persists nothing.

    Returns 400 for unsupported or malformed files and 413 for files over
    MAX_IMPORT_SIZE.
    """
    data = await file.read()
    if len(data) > settings.max_import_size:
        raise HTTPException(
            status_code=413,
            detail=f"File exceeds the maximum size of {settings.max_import_size} bytes",
        )
    if not data:
        raise HTTPException(status_code=400, detail="The uploaded file is empty")

    options = ImportOptions.from_form({
        "skipDuplicates": skip_duplicates,
        "updateExisting": update_existing,
        "validateImages": validate_images,
    })
    try:
        outcome = await import_file(db, storage, file.filename or "", data, options)
    except ImportFormatError as e:
        logger.info("Rejected import of %s: %s", file.filename, e)
        raise HTTPException(status_code=400, detail=str(e)) from e

    validation = outcome.validation
    return ImportResponse(
        success=outcome.success,
        message=outcome.message,
        data=outcome.counts,
        errors=validation.errors,
        warnings=validation.warnings,
        summary=validation.summary,
    )


@router.get("/export")
async def export(
    format: str = Query(default="json", description="json or markdown"),  # noqa: A002
    include_images: bool = Query(default=False, alias="includeImages"),
    zip_format: bool = Query(default=False, alias="zipFormat"),
    pretty: bool = Query(default=True),
    db: AsyncSession = Depends(get_async_session),
    storage: ImageStorage = Depends(get_image_storage),
) -> Response:
    """
    Download every prompt as JSON, Markdown, or a ZIP of Markdown plus images.

    Returns 400 for an unknown format and 404 when there are no prompts.
    """
    if format not in ("json", "markdown"):
        raise HTTPException(
            status_code=400,
            detail="Unsupported export format; use 'json' or 'markdown'",
        )

    options = ExportOptions(
        format=format,
        include_images=include_images,
        zip_format=zip_format and format == "markdown",
        pretty=pretty,
    )
    try:
        export_file = await export_prompts(db, storage, options)
    except NoDataError as e:
        raise HTTPException(status_code=404, detail=str(e)) from e

    return Response(
        content=export_file.content,
        media_type=export_file.media_type,
        headers={"Content-Disposition": f'attachment; filename="{export_file.filename}"'},
    )
