"""Image upload endpoint."""
import logging

from fastapi import APIRouter, Depends, File, HTTPException, UploadFile

from api.dependencies import get_image_storage, get_settings
from core.config import Settings
from schemas.upload import UploadedImage, UploadResponse
from services.exceptions import InvalidImageError
from services.image_service import store_uploaded_image
from services.image_storage import ImageStorage

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/upload", tags=["upload"])


@router.post("/image", response_model=UploadResponse)
async def upload_image(
    image: UploadFile = File(...),
    storage: ImageStorage = Depends(get_image_storage),
    settings: Settings = Depends(get_settings),
) -> UploadResponse:
    """
    Upload an image.

    The image is shrunk to at most IMAGE_MAX_WIDTH pixels wide and re-encoded
    as JPEG. Files Pillow cannot decode are stored unchanged.

    Returns 400 for non-image files and 413 for files over MAX_UPLOAD_SIZE.
    """
    data = await image.read()
    if len(data) > settings.max_upload_size:
        raise HTTPException(
            status_code=413,
            detail=f"Image exceeds the maximum size of {settings.max_upload_size} bytes",
        )

    try:
        stored = store_uploaded_image(
            storage,
            data,
            original_name=image.filename,
            content_type=image.content_type,
            max_width=settings.image_max_width,
            quality=settings.image_jpeg_quality,
        )
    except InvalidImageError as e:
        raise HTTPException(status_code=400, detail=str(e)) from e

    return UploadResponse(
        data=UploadedImage(
            url=stored.url,
            filename=stored.filename,
            original_name=stored.original_name,
            size=stored.size,
            mimetype=stored.mimetype,
        ),
    )
