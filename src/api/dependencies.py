"""FastAPI dependencies for injection."""
from fastapi import Request

from core.cache import ResponseCache
from core.config import get_settings
from db.session import get_async_session
from services.civitai_client import CivitaiClient
from services.image_storage import ImageStorage

__all__ = [
    "get_async_session",
    "get_civitai_client",
    "get_image_storage",
    "get_response_cache",
    "get_settings",
]


def get_image_storage(request: Request) -> ImageStorage:
    """Image storage created in the application lifespan."""
    return request.app.state.image_storage


def get_response_cache(request: Request) -> ResponseCache:
    """Response cache created in the application lifespan."""
    return request.app.state.response_cache


def get_civitai_client(request: Request) -> CivitaiClient:
    """Civitai client created in the application lifespan."""
    return request.app.state.civitai_client
