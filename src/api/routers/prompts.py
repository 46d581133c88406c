"""Prompts CRUD endpoints."""
from typing import Literal

from fastapi import APIRouter, Depends, HTTPException, Query, Response
from sqlalchemy.ext.asyncio import AsyncSession

from api.dependencies import get_async_session
from schemas.prompt import (
    FavoriteToggleResponse,
    PromptCreate,
    PromptListResponse,
    PromptResponse,
    PromptUpdate,
)
from services import prompt_service

router = APIRouter(prefix="/prompts", tags=["prompts"])


def _list_response(prompts: list) -> PromptListResponse:
    items = [PromptResponse.model_validate(p) for p in prompts]
    return PromptListResponse(items=items, total=len(items))


@router.get("/", response_model=PromptListResponse)
async def list_prompts(
    search: str | None = Query(default=None, description="Match title, content or tags"),
    favorites: bool = Query(default=False, description="Only favorited prompts"),
    sort: Literal["asc", "desc"] = Query(default="desc", description="Creation time order"),
    db: AsyncSession = Depends(get_async_session),
) -> PromptListResponse:
    """List prompts, newest first by default."""
    prompts = await prompt_service.list_prompts(
        db, search=search, favorites_only=favorites, sort=sort,
    )
    return _list_response(prompts)


@router.post("/", response_model=PromptResponse, status_code=201)
async def create_prompt(
    data: PromptCreate,
    db: AsyncSession = Depends(get_async_session),
) -> PromptResponse:
    """Create a new prompt."""
    prompt = await prompt_service.create_prompt(db, data)
    return PromptResponse.model_validate(prompt)


@router.get("/search", response_model=PromptListResponse)
async def search_prompts(
    q: str = Query(default="", description="Search text"),
    db: AsyncSession = Depends(get_async_session),
) -> PromptListResponse:
    """Search prompts by title, content and tags. Returns 400 for an empty query."""
    try:
        prompts = await prompt_service.search_prompts(db, q)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e
    return _list_response(prompts)


@router.get("/favorites", response_model=PromptListResponse)
async def list_favorites(
    db: AsyncSession = Depends(get_async_session),
) -> PromptListResponse:
    """List favorited prompts, newest first."""
    return _list_response(await prompt_service.get_favorite_prompts(db))


@router.get("/{prompt_id}", response_model=PromptResponse)
async def get_prompt(
    prompt_id: int,
    db: AsyncSession = Depends(get_async_session),
) -> PromptResponse:
    """Get a single prompt by ID."""
    prompt = await prompt_service.get_prompt(db, prompt_id)
    if prompt is None:
        raise HTTPException(status_code=404, detail="Prompt not found")
    return PromptResponse.model_validate(prompt)


@router.put("/{prompt_id}", response_model=PromptResponse)
async def update_prompt(
    prompt_id: int,
    data: PromptUpdate,
    db: AsyncSession = Depends(get_async_session),
) -> PromptResponse:
    """Update a prompt. Only the fields present in the body are changed."""
    prompt = await prompt_service.update_prompt(db, prompt_id, data)
    if prompt is None:
        raise HTTPException(status_code=404, detail="Prompt not found")
    return PromptResponse.model_validate(prompt)


@router.delete("/{prompt_id}", status_code=204)
async def delete_prompt(
    prompt_id: int,
    db: AsyncSession = Depends(get_async_session),
) -> Response:
    """Delete a prompt."""
    deleted = await prompt_service.delete_prompt(db, prompt_id)
    if not deleted:
        raise HTTPException(status_code=404, detail="Prompt not found")
    return Response(status_code=204)


@router.post("/{prompt_id}/favorite", response_model=FavoriteToggleResponse)
async def toggle_favorite(
    prompt_id: int,
    db: AsyncSession = Depends(get_async_session),
) -> FavoriteToggleResponse:
    """Toggle a prompt's favorite flag."""
    prompt = await prompt_service.toggle_favorite(db, prompt_id)
    if prompt is None:
        raise HTTPException(status_code=404, detail="Prompt not found")
    message = "Added to favorites" if prompt.is_favorited else "Removed from favorites"
    return FavoriteToggleResponse(data=PromptResponse.model_validate(prompt), message=message)
