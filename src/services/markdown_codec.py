"""
Markdown export format for prompts.

Each prompt becomes one numbered section:

    ## 1. Title

    **内容:**

    content lines...

    **标签:** `tag-a`, `tag-b`

    **收藏:** ⭐

    **图片:** ![name](path)

    **创建时间:** 2025-01-02 13:04:05

    ---

Several images use a `**图片 (N张):**` label followed by a numbered list of
image links. The parser accepts everything the serializer writes.
"""
import re
from collections.abc import Sequence
from datetime import UTC, datetime
from pathlib import PurePosixPath
from typing import Any, Literal

from schemas.import_export import EXPORT_FORMAT_VERSION, CandidatePrompt, PromptData

SortField = Literal["title", "createdAt", "updatedAt"]
SortOrder = Literal["asc", "desc"]

DOCUMENT_TITLE = "# Prompt Manager 导出数据"
CONTENT_LABEL = "**内容:**"
TAGS_LABEL = "**标签:**"
FAVORITE_LABEL = "**收藏:**"
FAVORITE_MARKER = "⭐"
IMAGE_LABEL = "**图片:**"
CREATED_LABEL = "**创建时间:**"
SECTION_DELIMITER = "---"
ARCHIVE_IMAGE_DIR = "images"

DISPLAY_TIME_FORMAT = "%Y-%m-%d %H:%M:%S"

_SECTION_SPLIT = re.compile(r"^##\s+", re.MULTILINE)
_HEADING = re.compile(r"^\d+\.\s*(.+)$")
_TAGS_LINE = re.compile(r"^\*\*标签:\*\*\s*(.*)$")
_MULTI_IMAGE_LABEL = re.compile(r"^\*\*图片\s*\(\d+张\):\*\*")
_IMAGE_LINK = re.compile(r"!\[.*?\]\((.+?)\)")
_IMAGE_LIST_ITEM = re.compile(r"^\d+\.\s*!\[.*?\]\(.+?\)")


def _parse_timestamp(value: str | None) -> datetime | None:
    if not value:
        return None
    try:
        parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        return None
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def _format_timestamp(value: str) -> str:
    parsed = _parse_timestamp(value)
    if parsed is None:
        return value
    return parsed.astimezone(UTC).strftime(DISPLAY_TIME_FORMAT)


def sort_prompts(
    prompts: Sequence[PromptData],
    sort_by: SortField = "createdAt",
    sort_order: SortOrder = "desc",
) -> list[PromptData]:
    """
    Sort prompts for export.

    The sort is stable in both directions: prompts with equal keys keep their
    input order. Missing timestamps sort as the epoch.
    """
    epoch = datetime.fromtimestamp(0, UTC)

    def key(prompt: PromptData) -> Any:
        if sort_by == "title":
            return prompt.title
        raw = prompt.created_at if sort_by == "createdAt" else prompt.updated_at
        return _parse_timestamp(raw) or epoch

    return sorted(prompts, key=key, reverse=sort_order == "desc")


def _image_link(path: str, archive: bool) -> str:
    name = PurePosixPath(path).name
    target = f"{ARCHIVE_IMAGE_DIR}/{name}" if archive else path
    return f"![{name}]({target})"


def serialize_markdown(  # noqa: PLR0913
    prompts: Sequence[PromptData],
    *,
    include_metadata: bool = True,
    include_images: bool = False,
    sort_by: SortField = "createdAt",
    sort_order: SortOrder = "desc",
    archive: bool = False,
    exported_at: datetime | None = None,
) -> str:
    """
    Render prompts as a Markdown document.

    Args:
        prompts: Prompts to render.
        include_metadata: Write the export time / count / version block.
        include_images: Write image references.
        sort_by: Field to order sections by.
        sort_order: "asc" or "desc".
        archive: Rewrite image paths to the archive's images/ directory.
        exported_at: Export timestamp for the metadata block (defaults to now).

    Returns:
        The Markdown document.
    """
    parts = [f"{DOCUMENT_TITLE}\n\n"]

    if include_metadata:
        stamp = (exported_at or datetime.now(UTC)).strftime(DISPLAY_TIME_FORMAT)
        parts.append(f"> 导出时间: {stamp}\n")
        parts.append(f"> 总数量: {len(prompts)}\n")
        parts.append(f"> 版本: {EXPORT_FORMAT_VERSION}\n\n")

    for number, prompt in enumerate(sort_prompts(prompts, sort_by, sort_order), start=1):
        parts.append(f"## {number}. {prompt.title}\n\n")
        parts.append(f"{CONTENT_LABEL}\n\n{prompt.content}\n\n")

        if prompt.tags:
            tag_list = ", ".join(f"`{tag}`" for tag in prompt.tags)
            parts.append(f"{TAGS_LABEL} {tag_list}\n\n")

        if prompt.is_favorited:
            parts.append(f"{FAVORITE_LABEL} {FAVORITE_MARKER}\n\n")

        images = prompt.images or ([prompt.image_path] if prompt.image_path else [])
        if include_images and len(images) == 1:
            parts.append(f"{IMAGE_LABEL} {_image_link(images[0], archive)}\n\n")
        elif include_images and images:
            parts.append(f"**图片 ({len(images)}张):**\n\n")
            for index, path in enumerate(images, start=1):
                parts.append(f"{index}. {_image_link(path, archive)}\n")
            parts.append("\n")

        if prompt.created_at:
            parts.append(f"{CREATED_LABEL} {_format_timestamp(prompt.created_at)}\n\n")

        parts.append(f"{SECTION_DELIMITER}\n\n")

    return "".join(parts)


def _parse_section(section: str) -> dict[str, Any] | None:
    lines = section.splitlines()
    if not lines:
        return None
    heading = _HEADING.match(lines[0].strip())
    if not heading:
        return None

    record: dict[str, Any] = {
        "title": heading.group(1).strip(),
        "content": "",
        "tags": [],
        "isFavorited": False,
    }
    current_field = ""
    content_lines: list[str] = []

    for raw_line in lines[1:]:
        line = raw_line.strip()

        if line.startswith(CONTENT_LABEL):
            current_field = "content"
            continue
        if line.startswith(TAGS_LABEL):
            current_field = "tags"
            match = _TAGS_LINE.match(line)
            if match:
                record["tags"] = [
                    tag.replace("`", "").strip()
                    for tag in match.group(1).split(",")
                    if tag.replace("`", "").strip()
                ]
            continue
        if line.startswith(FAVORITE_LABEL):
            current_field = "favorite"
            record["isFavorited"] = FAVORITE_MARKER in line
            continue
        if _MULTI_IMAGE_LABEL.match(line):
            current_field = "images"
            record["images"] = []
            continue
        if line.startswith(IMAGE_LABEL):
            current_field = "image"
            link = _IMAGE_LINK.search(line)
            if link:
                path = link.group(1).strip()
                record["imagePath"] = path
                record["images"] = [path]
            continue
        if current_field == "images" and _IMAGE_LIST_ITEM.match(line):
            link = _IMAGE_LINK.search(line)
            if link:
                path = link.group(1).strip()
                record["images"].append(path)
                record.setdefault("imagePath", path)
            continue
        if line.startswith(CREATED_LABEL):
            current_field = "created"
            continue
        if line == SECTION_DELIMITER:
            break

        if current_field == "content":
            content_lines.append(raw_line.rstrip())

    record["content"] = "\n".join(content_lines).strip("\n")
    if not record["title"] or not record["content"]:
        return None
    return record


def parse_markdown(document: str) -> list[CandidatePrompt]:
    """
    Parse a Markdown export back into candidate prompts.

    Sections whose title or content come out empty are dropped without
    error. A document with no recognizable sections yields an empty list.
    """
    candidates = []
    for section in _SECTION_SPLIT.split(document):
        if not section.strip():
            continue
        record = _parse_section(section)
        if record is not None:
            candidates.append(CandidatePrompt(source="markdown", data=record))
    return candidates
