"""Service layer for tag statistics."""
from collections import Counter

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from models.prompt import Prompt
from schemas.tag import TagCount


async def get_tag_counts(db: AsyncSession) -> list[TagCount]:
    """
    Count how many prompts use each tag.

    Tags are trimmed before counting and empty tags are ignored. Results are
    sorted by count descending, then by tag name.

    Args:
        db: Database session.

    Returns:
        List of TagCount objects.
    """
    result = await db.execute(select(Prompt.tags).where(Prompt.tags.is_not(None)))
    counts: Counter[str] = Counter()
    for tags in result.scalars():
        if not isinstance(tags, list):
            continue
        for tag in tags:
            if isinstance(tag, str) and tag.strip():
                counts[tag.strip()] += 1

    return [
        TagCount(tag=tag, count=count)
        for tag, count in sorted(counts.items(), key=lambda item: (-item[1], item[0]))
    ]
