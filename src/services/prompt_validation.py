"""
Field-level validation of candidate prompts.

The validator is the only path from an untyped CandidatePrompt to a PromptData.
It never raises and never mutates its input; every problem is reported as a
human-readable message in the returned PromptValidation.
"""
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from schemas.import_export import CandidatePrompt, PromptData
from schemas.validators import (
    MAX_CONTENT_LENGTH,
    MAX_IMAGE_COUNT,
    MAX_TAG_COUNT,
    MAX_TAG_LENGTH,
    MAX_TITLE_LENGTH,
    has_allowed_image_extension,
    normalize_image_fields,
    normalize_tags,
)


@dataclass
class PromptValidation:
    """Result of validating one candidate."""

    errors: list[str] = field(default_factory=list)
    prompt: PromptData | None = None

    @property
    def is_valid(self) -> bool:
        """True when no errors were found."""
        return not self.errors


def _check_required_text(value: Any, label: str, max_length: int) -> list[str]:
    if not isinstance(value, str) or not value.strip():
        return [f"{label} is required and must be a non-empty string"]
    if len(value) > max_length:
        return [f"{label} must not exceed {max_length} characters (got {len(value)})"]
    return []


def _check_tags(tags: Any) -> list[str]:
    if not isinstance(tags, list):
        return ["Tags must be an array"]
    errors = []
    if len(tags) > MAX_TAG_COUNT:
        errors.append(f"No more than {MAX_TAG_COUNT} tags are allowed (got {len(tags)})")
    for tag in tags:
        if not isinstance(tag, str):
            errors.append("Every tag must be a string")
            break
        if len(tag.strip()) > MAX_TAG_LENGTH:
            errors.append(f"Tags must not exceed {MAX_TAG_LENGTH} characters: '{tag[:20]}...'")
            break
    return errors


def _check_images(images: Any) -> list[str]:
    if not isinstance(images, list):
        return ["Images must be an array"]
    errors = []
    if len(images) > MAX_IMAGE_COUNT:
        errors.append(f"No more than {MAX_IMAGE_COUNT} images are allowed (got {len(images)})")
    for path in images:
        if not isinstance(path, str):
            errors.append("Every image path must be a string")
            break
        if not has_allowed_image_extension(path):
            errors.append(f"Unsupported image type: '{path}'")
            break
    return errors


def _present(data: Mapping[str, Any], key: str) -> bool:
    # null counts as absent for optional fields
    return data.get(key) is not None


def validate_prompt_data(candidate: CandidatePrompt) -> PromptValidation:
    """
    Validate a candidate against the prompt field rules.

    Rules:
        - title: required, non-empty string, at most MAX_TITLE_LENGTH characters
        - content: required, non-empty string, at most MAX_CONTENT_LENGTH characters
        - tags: optional list of strings, at most MAX_TAG_COUNT entries of
          MAX_TAG_LENGTH characters
        - images: optional list of image paths, at most MAX_IMAGE_COUNT entries
        - imagePath: optional string
        - isFavorited: optional boolean

    Args:
        candidate: The parsed, unvalidated record.

    Returns:
        PromptValidation holding the errors and, when valid, the PromptData.
    """
    data = candidate.data
    if not isinstance(data, Mapping):
        return PromptValidation(errors=["Record must be an object"])

    errors: list[str] = []
    errors += _check_required_text(data.get("title"), "Title", MAX_TITLE_LENGTH)
    errors += _check_required_text(data.get("content"), "Content", MAX_CONTENT_LENGTH)

    if _present(data, "tags"):
        errors += _check_tags(data["tags"])
    if _present(data, "images"):
        errors += _check_images(data["images"])
    if _present(data, "imagePath"):
        image_path = data["imagePath"]
        if not isinstance(image_path, str):
            errors.append("Image path must be a string")
        elif image_path and not data.get("images") and not has_allowed_image_extension(image_path):
            # Without an images list the legacy path is promoted into one
            errors.append(f"Unsupported image type: '{image_path}'")
    if _present(data, "isFavorited") and not isinstance(data["isFavorited"], bool):
        errors.append("Favorite flag must be a boolean")

    if errors:
        return PromptValidation(errors=errors)

    image_path, images = normalize_image_fields(data.get("imagePath"), data.get("images"))
    tags = normalize_tags(data.get("tags") or [])
    metadata = data.get("metadata")
    prompt = PromptData(
        title=data["title"],
        content=data["content"],
        image_path=image_path,
        images=images,
        tags=tags or None,
        is_favorited=bool(data.get("isFavorited", False)),
        highlights=data.get("highlights"),
        created_at=_optional_str(data.get("createdAt")),
        updated_at=_optional_str(data.get("updatedAt")),
        metadata=dict(metadata) if isinstance(metadata, Mapping) else None,
    )
    return PromptValidation(prompt=prompt)


def _optional_str(value: Any) -> str | None:
    return value if isinstance(value, str) else None
