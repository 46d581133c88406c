"""
Shared validation rules and helpers for prompt schemas.

The limits here are used both by the API schemas (PromptCreate/PromptUpdate)
and by the import validator, so a record accepted by one is accepted by the other.
"""
import json
from pathlib import PurePosixPath

MAX_TITLE_LENGTH = 200
MAX_CONTENT_LENGTH = 10_000
MAX_TAG_COUNT = 20
MAX_TAG_LENGTH = 50
MAX_IMAGE_COUNT = 10

ALLOWED_IMAGE_EXTENSIONS = frozenset({".jpg", ".jpeg", ".png", ".gif", ".webp"})


def image_extension(path: str) -> str:
    """Return the lowercased file extension of an image path or URL (query string ignored)."""
    bare = path.split("?", 1)[0].split("#", 1)[0]
    return PurePosixPath(bare).suffix.lower()


def has_allowed_image_extension(path: str) -> bool:
    """Check whether a path ends in one of the allowed image extensions."""
    return image_extension(path) in ALLOWED_IMAGE_EXTENSIONS


def normalize_tags(tags: list[str]) -> list[str]:
    """
    Trim tags, drop empty ones and remove duplicates (first occurrence wins).

    Tags keep their case and script; unlike slugs they may contain spaces or
    non-ASCII characters.
    """
    normalized: list[str] = []
    seen: set[str] = set()
    for tag in tags:
        trimmed = tag.strip()
        if not trimmed or trimmed in seen:
            continue
        seen.add(trimmed)
        normalized.append(trimmed)
    return normalized


def validate_tags(tags: list[str]) -> list[str]:
    """
    Normalize tags and enforce count and length limits.

    Raises:
        ValueError: If there are too many tags or a tag is too long.
    """
    normalized = normalize_tags(tags)
    if len(normalized) > MAX_TAG_COUNT:
        raise ValueError(f"At most {MAX_TAG_COUNT} tags are allowed (got {len(normalized)}).")
    for tag in normalized:
        if len(tag) > MAX_TAG_LENGTH:
            raise ValueError(
                f"Tag '{tag[:20]}...' exceeds maximum length of {MAX_TAG_LENGTH} characters.",
            )
    return normalized


def validate_images(images: list[str]) -> list[str]:
    """
    Enforce image count and extension rules.

    Raises:
        ValueError: If there are too many images or a path is not an image.
    """
    if len(images) > MAX_IMAGE_COUNT:
        raise ValueError(
            f"At most {MAX_IMAGE_COUNT} images are allowed (got {len(images)}).",
        )
    for path in images:
        if not has_allowed_image_extension(path):
            raise ValueError(f"Unsupported image type: '{path}'.")
    return images


def normalize_image_fields(
    image_path: str | None,
    images: list[str] | None,
) -> tuple[str | None, list[str] | None]:
    """
    Reconcile the legacy single-image field with the image list.

    The list is authoritative: when it has entries the single field mirrors the
    first one. A lone legacy path is promoted into a one-element list.
    """
    if images:
        return images[0], list(images)
    if image_path:
        return image_path, [image_path]
    return None, None


def parse_string_list(value: object) -> list[str]:
    """
    Coerce a stored list column into a list of non-empty strings.

    Accepts a real list, a JSON-encoded list (also double-encoded), a single
    JSON string or a comma-separated string. Anything else yields an empty list.
    """
    if isinstance(value, list):
        return [item.strip() for item in value if isinstance(item, str) and item.strip()]
    if not isinstance(value, str):
        return []
    try:
        decoded = json.loads(value)
    except json.JSONDecodeError:
        return [part.strip() for part in value.split(",") if part.strip()]
    if isinstance(decoded, str):
        try:
            decoded = json.loads(decoded)
        except json.JSONDecodeError:
            return [decoded.strip()] if decoded.strip() else []
    if isinstance(decoded, list):
        return parse_string_list(decoded)
    return []
