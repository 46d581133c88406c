"""Image upload handling: compression with Pillow and storage under generated names."""
import io
import logging
from dataclasses import dataclass
from pathlib import PurePosixPath
from uuid import uuid4

from PIL import Image

from services.exceptions import InvalidImageError
from services.image_storage import ImageStorage

logger = logging.getLogger(__name__)

DEFAULT_MAX_WIDTH = 1024
DEFAULT_JPEG_QUALITY = 80


@dataclass
class StoredImage:
    """Result of storing an uploaded image."""

    url: str
    filename: str
    original_name: str | None
    size: int
    mimetype: str


def compress_image(
    data: bytes,
    max_width: int = DEFAULT_MAX_WIDTH,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> bytes | None:
    """
    Shrink an image to at most `max_width` pixels wide and re-encode it as JPEG.

    Images narrower than `max_width` are not enlarged. Returns None when Pillow
    cannot decode the input.
    """
    try:
        with Image.open(io.BytesIO(data)) as img:
            img.load()
            if img.width > max_width:
                height = max(1, round(img.height * max_width / img.width))
                img = img.resize((max_width, height), Image.LANCZOS)  # noqa: PLW2901
            if img.mode != "RGB":
                img = img.convert("RGB")  # noqa: PLW2901
            output = io.BytesIO()
            img.save(output, "JPEG", quality=quality, optimize=True)
            return output.getvalue()
    except (OSError, Image.DecompressionBombError) as e:
        logger.warning("Image compression failed, keeping original bytes: %s", e)
        return None


def store_uploaded_image(  # noqa: PLR0913
    storage: ImageStorage,
    data: bytes,
    original_name: str | None,
    content_type: str | None,
    max_width: int = DEFAULT_MAX_WIDTH,
    quality: int = DEFAULT_JPEG_QUALITY,
) -> StoredImage:
    """
    Compress and store an uploaded image under a UUID file name.

    When compression fails the original bytes are stored with the original
    file extension.

    Raises:
        InvalidImageError: If the upload is empty or not declared as an image.
    """
    if not content_type or not content_type.startswith("image/"):
        raise InvalidImageError("Only image files can be uploaded")
    if not data:
        raise InvalidImageError("The uploaded image is empty")

    compressed = compress_image(data, max_width=max_width, quality=quality)
    if compressed is not None:
        filename = f"{uuid4()}.jpg"
        payload = compressed
    else:
        extension = PurePosixPath(original_name or "").suffix.lower() or ".jpg"
        filename = f"{uuid4()}{extension}"
        payload = data

    url = storage.save(filename, payload)
    logger.info(
        "Stored upload %s as %s (%d -> %d bytes)",
        original_name,
        filename,
        len(data),
        len(payload),
    )
    return StoredImage(
        url=url,
        filename=filename,
        original_name=original_name,
        size=len(data),
        mimetype=content_type,
    )
