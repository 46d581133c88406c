"""Health check endpoint."""
import logging

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session, get_image_storage
from services import prompt_service
from services.image_storage import ImageStorage

logger = logging.getLogger(__name__)

router = APIRouter(tags=["health"])


class HealthResponse(BaseModel):
    """Health of the service, its database and its image directory."""

    status: str
    database: str
    uploads: str
    records: int | None = None


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_async_session),
    storage: ImageStorage = Depends(get_image_storage),
) -> HealthResponse:
    """
    Report whether the prompt database answers queries.

    A missing upload directory is reported but does not degrade the status;
    it is created on the first upload.
    """
    records = None
    try:
        records = await prompt_service.count_prompts(db)
        database = "healthy"
    except SQLAlchemyError:
        logger.exception("Database health check failed")
        database = "unhealthy"

    return HealthResponse(
        status="healthy" if database == "healthy" else "degraded",
        database=database,
        uploads="ready" if storage.root.is_dir() else "missing",
        records=records,
    )
