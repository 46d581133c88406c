"""Pydantic schemas for image upload."""
from pydantic import BaseModel

from schemas.prompt import CamelModel


class UploadedImage(CamelModel):
    """A stored image and where it is served from."""

    url: str
    filename: str
    original_name: str | None = None
    size: int
    mimetype: str


class UploadResponse(BaseModel):
    """Response body of the image upload endpoint."""

    success: bool = True
    data: UploadedImage
