"""Civitai model metadata endpoint."""
from typing import Any

from fastapi import APIRouter, Depends, HTTPException, Query

from api.dependencies import get_civitai_client, get_response_cache
from core.cache import ResponseCache
from services.civitai_client import CivitaiClient, CivitaiError

router = APIRouter(prefix="/civitai", tags=["civitai"])

_ERROR_STATUS = {"invalid_url": 400, "not_found": 404}


@router.get("/models")
async def get_model(
    url: str = Query(..., description="Civitai model page URL"),
    refresh: bool = Query(default=False, description="Bypass the response cache"),
    client: CivitaiClient = Depends(get_civitai_client),
    cache: ResponseCache = Depends(get_response_cache),
) -> dict[str, Any]:
    """
    Fetch a model's metadata and example images from Civitai.

    Results are cached; pass `refresh=true` to fetch again. Returns 400 for a
    URL without a model ID, 404 when the model does not exist and 502 for other
    upstream failures.
    """
    key = cache.cache_key("/civitai/models", {"url": url})
    if not refresh:
        cached = cache.get(key)
        if cached is not None:
            return cached

    try:
        model = await client.get_model_with_images(url)
    except CivitaiError as e:
        raise HTTPException(status_code=_ERROR_STATUS.get(e.kind, 502), detail=str(e)) from e

    cache.set(key, model)
    return model
