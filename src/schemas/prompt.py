"""Pydantic schemas for prompt endpoints."""
from datetime import datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic.alias_generators import to_camel

from schemas.validators import (
    MAX_CONTENT_LENGTH,
    MAX_TITLE_LENGTH,
    has_allowed_image_extension,
    validate_images,
    validate_tags,
)


class CamelModel(BaseModel):
    """Base model that reads and writes camelCase keys (imagePath, isFavorited, ...)."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class PromptCreate(CamelModel):
    """Schema for creating a new prompt."""

    title: str = Field(min_length=1, max_length=MAX_TITLE_LENGTH)
    content: str = Field(min_length=1, max_length=MAX_CONTENT_LENGTH)
    image_path: str | None = None
    images: list[str] | None = None
    tags: list[str] = Field(default_factory=list)
    highlights: Any | None = None
    is_favorited: bool = False

    @field_validator("title", "content")
    @classmethod
    def check_not_blank(cls, v: str) -> str:
        """Reject whitespace-only title or content."""
        if not v.strip():
            raise ValueError("must not be blank")
        return v

    @field_validator("tags")
    @classmethod
    def check_tags(cls, v: list[str]) -> list[str]:
        """Normalize and validate tags."""
        return validate_tags(v)

    @field_validator("images")
    @classmethod
    def check_images(cls, v: list[str] | None) -> list[str] | None:
        """Validate image count and extensions."""
        if v is None:
            return None
        return validate_images(v)

    @field_validator("image_path")
    @classmethod
    def check_image_path(cls, v: str | None) -> str | None:
        """Reject a legacy image path without an image extension."""
        if v and not has_allowed_image_extension(v):
            raise ValueError(f"Unsupported image type: '{v}'.")
        return v


class PromptUpdate(CamelModel):
    """Schema for a partial prompt update; omitted fields are left unchanged."""

    title: str | None = Field(default=None, min_length=1, max_length=MAX_TITLE_LENGTH)
    content: str | None = Field(default=None, min_length=1, max_length=MAX_CONTENT_LENGTH)
    image_path: str | None = None
    images: list[str] | None = None
    tags: list[str] | None = None
    highlights: Any | None = None
    is_favorited: bool | None = None

    @field_validator("tags")
    @classmethod
    def check_tags(cls, v: list[str] | None) -> list[str] | None:
        """Normalize and validate tags if provided."""
        if v is None:
            return None
        return validate_tags(v)

    @field_validator("images")
    @classmethod
    def check_images(cls, v: list[str] | None) -> list[str] | None:
        """Validate image count and extensions if provided."""
        if v is None:
            return None
        return validate_images(v)

    @field_validator("image_path")
    @classmethod
    def check_image_path(cls, v: str | None) -> str | None:
        """Reject a legacy image path without an image extension."""
        if v and not has_allowed_image_extension(v):
            raise ValueError(f"Unsupported image type: '{v}'.")
        return v


class PromptResponse(CamelModel):
    """Schema for prompt responses."""

    model_config = ConfigDict(
        alias_generator=to_camel, populate_by_name=True, from_attributes=True,
    )

    id: int
    title: str
    content: str
    image_path: str | None
    images: list[str] | None
    tags: list[str] | None
    highlights: Any | None
    is_favorited: bool
    created_at: datetime
    updated_at: datetime


class PromptListResponse(BaseModel):
    """Schema for prompt list responses."""

    items: list[PromptResponse]
    total: int


class FavoriteToggleResponse(BaseModel):
    """Schema for the favorite toggle response."""

    data: PromptResponse
    message: str
