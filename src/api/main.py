"""FastAPI application entry point."""
import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import httpx
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles

from api.routers import civitai, database, health, import_export, prompts, tags, upload
from core.cache import ResponseCache
from core.config import get_settings
from core.retry import RetryPolicy
from db.session import engine
from services.civitai_client import CivitaiClient
from services.image_storage import ImageStorage
from tasks.init_database import ensure_schema

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None]:
    """Manage application lifespan - startup and shutdown."""
    app_settings = get_settings()

    # Startup: make sure the database file and tables exist
    await ensure_schema(engine)

    image_storage = ImageStorage(app_settings.upload_dir, app_settings.uploads_url_prefix)
    image_storage.ensure_root()
    app.state.image_storage = image_storage

    app.state.response_cache = ResponseCache(
        max_size=app_settings.cache_max_size,
        default_ttl=app_settings.cache_ttl,
        cleanup_interval=app_settings.cache_cleanup_interval,
    )

    http_client = httpx.AsyncClient(timeout=app_settings.civitai_timeout, follow_redirects=True)
    app.state.civitai_client = CivitaiClient(
        http_client,
        base_url=app_settings.civitai_base_url,
        retry_policy=RetryPolicy(
            max_attempts=app_settings.civitai_max_attempts,
            base_delay=app_settings.civitai_retry_delay,
        ),
        nsfw=app_settings.civitai_nsfw,
    )
    logger.info("Application started (uploads in %s)", image_storage.root)

    yield

    # Shutdown: release the outbound HTTP connection pool
    await http_client.aclose()
    await engine.dispose()


app_settings = get_settings()

app = FastAPI(
    title="Prompt Manager API",
    description="A prompt manager with tags, favorites, images and import/export.",
    version="0.1.0",
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=app_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(health.router)
app.include_router(prompts.router)
app.include_router(tags.router)
app.include_router(upload.router)
app.include_router(import_export.router)
app.include_router(database.router)
app.include_router(civitai.router)

# Uploaded and imported images are served as static files
app.mount(
    app_settings.uploads_url_prefix,
    StaticFiles(directory=app_settings.upload_dir, check_dir=False),
    name="uploads",
)
