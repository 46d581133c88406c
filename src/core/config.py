"""Application configuration using pydantic-settings."""
from functools import lru_cache
from pathlib import Path

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
        populate_by_name=True,
    )

    # Database - a local SQLite file by default
    database_url: str = Field(
        default="sqlite+aiosqlite:///./data/prompts.db",
        validation_alias="DATABASE_URL",
    )

    # CORS - comma-separated list of allowed origins (stored as string, parsed via property)
    cors_origins_str: str = Field(
        default="http://localhost:3000",
        validation_alias="CORS_ORIGINS",
    )

    # Image storage - uploaded and imported images are served from uploads_url_prefix
    upload_dir: Path = Field(default=Path("public/uploads"), validation_alias="UPLOAD_DIR")
    uploads_url_prefix: str = Field(default="/uploads", validation_alias="UPLOADS_URL_PREFIX")

    # Request size limits (bytes)
    max_import_size: int = Field(default=10 * 1024 * 1024, validation_alias="MAX_IMPORT_SIZE")
    max_upload_size: int = Field(default=10 * 1024 * 1024, validation_alias="MAX_UPLOAD_SIZE")
    max_restore_size: int = Field(default=50 * 1024 * 1024, validation_alias="MAX_RESTORE_SIZE")

    # Image compression
    image_max_width: int = Field(default=1024, validation_alias="IMAGE_MAX_WIDTH")
    image_jpeg_quality: int = Field(default=80, validation_alias="IMAGE_JPEG_QUALITY")

    # Civitai model metadata
    civitai_base_url: str = Field(
        default="https://civitai.com", validation_alias="CIVITAI_BASE_URL",
    )
    civitai_timeout: float = Field(default=30.0, validation_alias="CIVITAI_TIMEOUT")
    civitai_max_attempts: int = Field(default=3, validation_alias="CIVITAI_MAX_ATTEMPTS")
    civitai_retry_delay: float = Field(default=2.0, validation_alias="CIVITAI_RETRY_DELAY")
    civitai_nsfw: bool = Field(default=False, validation_alias="CIVITAI_NSFW")

    # Response cache
    cache_max_size: int = Field(default=100, validation_alias="CACHE_MAX_SIZE")
    cache_ttl: float = Field(default=300.0, validation_alias="CACHE_TTL")
    cache_cleanup_interval: float = Field(default=60.0, validation_alias="CACHE_CLEANUP_INTERVAL")

    @property
    def cors_origins(self) -> list[str]:
        """Parse comma-separated CORS origins string into a list."""
        if not self.cors_origins_str:
            return []
        return [origin.strip() for origin in self.cors_origins_str.split(",") if origin.strip()]


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()
