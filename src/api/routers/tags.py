"""Tag statistics endpoints."""
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session
from schemas.tag import TagListResponse
from services.tag_service import get_tag_counts

router = APIRouter(prefix="/tags", tags=["tags"])


@router.get("/", response_model=TagListResponse)
async def list_tags(
    db: AsyncSession = Depends(get_async_session),
) -> TagListResponse:
    """
    Get every tag with the number of prompts using it.

    Results are sorted by count DESC, then tag name ASC.
    """
    return TagListResponse(tags=await get_tag_counts(db))
