"""Service layer for prompt CRUD operations."""
import logging
from typing import Literal

from sqlalchemy import ColumnElement, String, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from models.prompt import Prompt
from schemas.import_export import PromptData
from schemas.prompt import PromptCreate, PromptUpdate
from schemas.validators import normalize_image_fields

logger = logging.getLogger(__name__)

SortOrder = Literal["asc", "desc"]

# Columns that may not be cleared by an explicit null in a partial update
_NON_NULLABLE_FIELDS = frozenset({"title", "content", "is_favorited"})


def _escape_like(value: str) -> str:
    """Escape LIKE wildcards so user input matches literally."""
    return value.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _search_filter(query: str) -> ColumnElement[bool]:
    pattern = f"%{_escape_like(query)}%"
    return or_(
        Prompt.title.ilike(pattern, escape="\\"),
        Prompt.content.ilike(pattern, escape="\\"),
        cast(Prompt.tags, String).ilike(pattern, escape="\\"),
    )


def _ordering(sort: SortOrder) -> tuple:
    if sort == "asc":
        return Prompt.created_at.asc(), Prompt.id.asc()
    return Prompt.created_at.desc(), Prompt.id.desc()


async def create_prompt(db: AsyncSession, data: PromptCreate) -> Prompt:
    """
    Create a new prompt.

    Note: Does not commit. Caller (session generator) handles commit at request end.
    """
    image_path, images = normalize_image_fields(data.image_path, data.images)
    prompt = Prompt(
        title=data.title,
        content=data.content,
        image_path=image_path,
        images=images,
        tags=data.tags or None,
        highlights=data.highlights,
        is_favorited=data.is_favorited,
    )
    db.add(prompt)
    await db.flush()
    await db.refresh(prompt)
    return prompt


async def get_prompt(db: AsyncSession, prompt_id: int) -> Prompt | None:
    """Get a prompt by ID. Returns None if not found."""
    return await db.get(Prompt, prompt_id)


async def list_prompts(
    db: AsyncSession,
    search: str | None = None,
    favorites_only: bool = False,
    sort: SortOrder = "desc",
) -> list[Prompt]:
    """
    List prompts ordered by creation time.

    Args:
        db: Database session.
        search: Case-insensitive text matched against title, content and tags.
        favorites_only: Only return favorited prompts.
        sort: "desc" for newest first, "asc" for oldest first.
    """
    stmt = select(Prompt)
    if search and search.strip():
        stmt = stmt.where(_search_filter(search.strip()))
    if favorites_only:
        stmt = stmt.where(Prompt.is_favorited.is_(True))
    result = await db.execute(stmt.order_by(*_ordering(sort)))
    return list(result.scalars().all())


async def search_prompts(db: AsyncSession, query: str) -> list[Prompt]:
    """
    Search prompts by title, content and tags, newest first.

    Raises:
        ValueError: If the query is empty or whitespace.
    """
    if not query or not query.strip():
        raise ValueError("Search query must not be empty")
    return await list_prompts(db, search=query)


async def get_favorite_prompts(db: AsyncSession) -> list[Prompt]:
    """Get all favorited prompts, newest first."""
    return await list_prompts(db, favorites_only=True)


async def update_prompt(
    db: AsyncSession,
    prompt_id: int,
    data: PromptUpdate,
) -> Prompt | None:
    """
    Apply a partial update. Returns None if not found.

    Only fields present in the request are changed. Setting `images` also
    resets the legacy `imagePath` to mirror the first entry.

    Note: Does not commit. Caller (session generator) handles commit at request end.
    """
    prompt = await get_prompt(db, prompt_id)
    if prompt is None:
        return None

    update_data = data.model_dump(exclude_unset=True)
    for field in _NON_NULLABLE_FIELDS:
        if field in update_data and update_data[field] is None:
            del update_data[field]

    if "images" in update_data:
        update_data["image_path"], update_data["images"] = normalize_image_fields(
            update_data.get("image_path"), update_data["images"],
        )
    elif "image_path" in update_data:
        update_data["image_path"], update_data["images"] = normalize_image_fields(
            update_data["image_path"], None,
        )
    if "tags" in update_data:
        update_data["tags"] = update_data["tags"] or None

    for field, value in update_data.items():
        setattr(prompt, field, value)

    await db.flush()
    await db.refresh(prompt)
    return prompt


async def delete_prompt(db: AsyncSession, prompt_id: int) -> bool:
    """
    Delete a prompt. Returns True if deleted, False if not found.

    Note: Does not commit. Caller (session generator) handles commit at request end.
    """
    prompt = await get_prompt(db, prompt_id)
    if prompt is None:
        return False

    await db.delete(prompt)
    await db.flush()
    return True


async def toggle_favorite(db: AsyncSession, prompt_id: int) -> Prompt | None:
    """Flip a prompt's favorite flag. Returns None if not found."""
    prompt = await get_prompt(db, prompt_id)
    if prompt is None:
        return None

    prompt.is_favorited = not prompt.is_favorited
    await db.flush()
    await db.refresh(prompt)
    return prompt


async def find_duplicate(db: AsyncSession, title: str, content: str) -> Prompt | None:
    """Find the oldest prompt with exactly this title and content."""
    result = await db.execute(
        select(Prompt)
        .where(Prompt.title == title, Prompt.content == content)
        .order_by(Prompt.id.asc())
        .limit(1),
    )
    return result.scalar_one_or_none()


async def insert_prompt_data(db: AsyncSession, data: PromptData) -> Prompt:
    """
    Insert a validated import record as a new prompt.

    The store assigns a fresh ID and timestamps; any in the record are ignored.
    """
    prompt = Prompt(
        title=data.title,
        content=data.content,
        image_path=data.image_path,
        images=data.images,
        tags=data.tags,
        highlights=data.highlights,
        is_favorited=data.is_favorited,
    )
    db.add(prompt)
    await db.flush()
    return prompt


async def update_prompt_data(db: AsyncSession, prompt: Prompt, data: PromptData) -> Prompt:
    """Overwrite an existing prompt's fields with an import record, keeping its ID."""
    prompt.title = data.title
    prompt.content = data.content
    prompt.image_path = data.image_path
    prompt.images = data.images
    prompt.tags = data.tags
    prompt.is_favorited = data.is_favorited
    if data.highlights is not None:
        prompt.highlights = data.highlights
    await db.flush()
    return prompt


async def count_prompts(db: AsyncSession, favorites_only: bool = False) -> int:
    """Count prompts, optionally only favorited ones."""
    stmt = select(func.count()).select_from(Prompt)
    if favorites_only:
        stmt = stmt.where(Prompt.is_favorited.is_(True))
    result = await db.execute(stmt)
    return result.scalar_one()


async def get_all_prompts(db: AsyncSession, order: Literal["id", "newest"] = "newest") -> list[Prompt]:
    """Load every prompt, either by ID or newest first."""
    ordering = (Prompt.id.asc(),) if order == "id" else _ordering("desc")
    result = await db.execute(select(Prompt).order_by(*ordering))
    return list(result.scalars().all())
