"""Prompt model for storing prompts with tags, images and highlights."""
from typing import Any

from sqlalchemy import JSON, Boolean, String, Text, false
from sqlalchemy.orm import Mapped, mapped_column

from models.base import Base, TimestampMixin


class Prompt(Base, TimestampMixin):
    """Prompt model - stores a titled text record with optional images, tags and highlights."""

    __tablename__ = "prompts"

    id: Mapped[int] = mapped_column(primary_key=True, autoincrement=True)
    title: Mapped[str] = mapped_column(String(200), nullable=False, index=True)
    content: Mapped[str] = mapped_column(Text, nullable=False)
    # Legacy single-image field, mirrors images[0] when images is set
    image_path: Mapped[str | None] = mapped_column(Text, nullable=True)
    images: Mapped[list[str] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    tags: Mapped[list[str] | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    highlights: Mapped[Any | None] = mapped_column(JSON(none_as_null=True), nullable=True)
    is_favorited: Mapped[bool] = mapped_column(
        Boolean,
        nullable=False,
        default=False,
        server_default=false(),
    )

    @property
    def tag_list(self) -> list[str]:
        """Tags as a list (empty when unset)."""
        return list(self.tags or [])

    @property
    def image_list(self) -> list[str]:
        """Image paths in order, falling back to the legacy single image."""
        if self.images:
            return list(self.images)
        if self.image_path:
            return [self.image_path]
        return []
