"""
Import/export orchestration.

Imports run in stages: detect the format from the file name, unpack archives,
parse the document into candidate records, validate every candidate, then
persist the valid ones according to the duplicate policy. Structural problems
(unparseable JSON, archives without a Markdown document, unknown formats)
raise ImportFormatError before anything is written. Per-record problems never
abort the batch; they are collected in the result.
"""
import logging
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Literal

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from models.prompt import Prompt
from schemas.import_export import (
    CandidatePrompt,
    ExportMetadata,
    ExportSettings,
    ImportCounts,
    ImportValidationResult,
    InvalidPrompt,
    PromptData,
)
from services import prompt_service
from services.archive_codec import pack_archive, unpack_archive
from services.exceptions import ImportFormatError, NoDataError, UnsupportedFormatError
from services.image_storage import ImageStorage
from services.json_codec import build_envelope, parse_json, serialize_json
from services.markdown_codec import parse_markdown, serialize_markdown
from services.prompt_validation import validate_prompt_data

logger = logging.getLogger(__name__)

DocumentFormat = Literal["json", "markdown"]


def _form_flag(fields: Mapping[str, Any], name: str, default: bool) -> bool:
    value = fields.get(name)
    if value is None:
        return default
    if isinstance(value, bool):
        return value
    return str(value).strip().lower() == "true"


@dataclass(frozen=True)
class ImportOptions:
    """
    Duplicate-handling options for an import.

    `validate_images` is accepted for compatibility; records are always
    validated. Imported prompts always receive fresh IDs, so `preserve_ids`
    is fixed to False.
    """

    skip_duplicates: bool = False
    update_existing: bool = False
    validate_images: bool = True
    preserve_ids: bool = False

    @classmethod
    def from_form(cls, fields: Mapping[str, Any]) -> "ImportOptions":
        """Build options from multipart form fields ("true"/"false" strings)."""
        return cls(
            skip_duplicates=_form_flag(fields, "skipDuplicates", False),
            update_existing=_form_flag(fields, "updateExisting", False),
            validate_images=_form_flag(fields, "validateImages", True),
            preserve_ids=False,
        )


@dataclass(frozen=True)
class DetectedFormat:
    """Document format of an import file and whether it arrives zipped."""

    document: DocumentFormat
    archive: bool = False


def detect_format(filename: str) -> DetectedFormat:
    """
    Determine the import format from a file name.

    Raises:
        UnsupportedFormatError: If the extension is not .json, .md, .markdown or .zip.
    """
    lowered = filename.lower()
    if lowered.endswith(".json"):
        return DetectedFormat("json")
    if lowered.endswith((".md", ".markdown")):
        return DetectedFormat("markdown")
    if lowered.endswith(".zip"):
        return DetectedFormat("markdown", archive=True)
    raise UnsupportedFormatError(filename)


def apply_extracted_images(
    candidates: list[CandidatePrompt],
    image_paths: list[str],
) -> list[CandidatePrompt]:
    """
    Point image references at images extracted from an archive.

    Matching is positional: image references are visited in document order
    and each consumes the next extracted image. When the extracted images run
    out, the remaining references keep their original paths.
    """
    remaining = list(image_paths)
    result = []
    for candidate in candidates:
        data = candidate.data
        if not remaining or not isinstance(data, Mapping):
            result.append(candidate)
            continue

        record = dict(data)
        images = record.get("images")
        if isinstance(images, list) and images:
            replaced = []
            for path in images:
                replaced.append(remaining.pop(0) if remaining else path)
            record["images"] = replaced
            record["imagePath"] = replaced[0]
        elif isinstance(record.get("imagePath"), str) and record["imagePath"]:
            record["imagePath"] = remaining.pop(0)
        result.append(CandidatePrompt(source=candidate.source, data=record))
    return result


def validate_candidates(
    candidates: list[CandidatePrompt],
    warnings: list[str] | None = None,
) -> ImportValidationResult:
    """Validate every candidate and partition them into valid and invalid records."""
    result = ImportValidationResult(warnings=list(warnings or []))
    result.summary.total = len(candidates)

    for index, candidate in enumerate(candidates):
        validation = validate_prompt_data(candidate)
        if validation.is_valid and validation.prompt is not None:
            result.valid_prompts.append(validation.prompt)
            result.summary.valid += 1
        else:
            result.invalid_prompts.append(
                InvalidPrompt(index=index, data=candidate.data, errors=validation.errors),
            )
            result.errors.extend(f"Item {index + 1}: {error}" for error in validation.errors)
            result.summary.invalid += 1

    result.is_valid = result.summary.valid > 0
    if result.summary.invalid:
        result.warnings.append(
            f"{result.summary.invalid} item(s) failed validation and will be skipped",
        )
    return result


def parse_and_validate(
    document: str,
    document_format: DocumentFormat,
    extracted_images: list[str] | None = None,
) -> ImportValidationResult:
    """
    Parse a document and validate its records.

    Raises:
        ImportFormatError: If a JSON document is structurally invalid.
    """
    warnings: list[str] = []
    if document_format == "json":
        parsed = parse_json(document)
        candidates = parsed.candidates
        warnings.extend(parsed.warnings)
    else:
        candidates = parse_markdown(document)
        if extracted_images:
            candidates = apply_extracted_images(candidates, extracted_images)
    return validate_candidates(candidates, warnings)


async def import_prompts(
    db: AsyncSession,
    prompts: list[PromptData],
    options: ImportOptions,
) -> ImportCounts:
    """
    Persist validated prompts according to the duplicate policy.

    With `skip_duplicates`, a prompt whose title and content match an existing
    one is either skipped or, with `update_existing`, written over it in place.
    Each prompt is committed on its own; a database error on one prompt is
    logged and counted as skipped without affecting the others.
    """
    counts = ImportCounts(total=len(prompts))

    for data in prompts:
        try:
            existing: Prompt | None = None
            if options.skip_duplicates:
                existing = await prompt_service.find_duplicate(db, data.title, data.content)

            if existing is not None and options.update_existing:
                await prompt_service.update_prompt_data(db, existing, data)
                counts.updated += 1
            elif existing is not None:
                counts.skipped += 1
                continue
            else:
                await prompt_service.insert_prompt_data(db, data)
                counts.imported += 1
            await db.commit()
        except SQLAlchemyError:
            logger.exception("Failed to import prompt '%s'", data.title[:50])
            await db.rollback()
            counts.skipped += 1

    logger.info(
        "Import finished: %d imported, %d updated, %d skipped of %d",
        counts.imported,
        counts.updated,
        counts.skipped,
        counts.total,
    )
    return counts


def _decode_document(data: bytes) -> str:
    try:
        # utf-8-sig tolerates a byte order mark written by some editors
        return data.decode("utf-8-sig")
    except UnicodeDecodeError as e:
        raise ImportFormatError("File is not valid UTF-8 text") from e


@dataclass
class ImportOutcome:
    """Validation result plus persistence counts (None when nothing was persisted)."""

    validation: ImportValidationResult
    counts: ImportCounts | None = None

    @property
    def success(self) -> bool:
        """True when at least one record passed validation and was processed."""
        return self.counts is not None

    @property
    def message(self) -> str:
        """Summary line for the API response."""
        if self.counts is None:
            return "File validation failed"
        return f"Imported {self.counts.imported} prompt(s)"


async def import_file(
    db: AsyncSession,
    storage: ImageStorage,
    filename: str,
    data: bytes,
    options: ImportOptions,
) -> ImportOutcome:
    """
    Import an uploaded file.

    Args:
        db: Database session.
        storage: Where images extracted from archives are written.
        filename: Original file name; its extension selects the format.
        data: Raw file bytes.
        options: Duplicate-handling options.

    Returns:
        ImportOutcome. When no record is valid, nothing is persisted and
        `counts` is None.

    Raises:
        ImportFormatError: If the file is structurally invalid.
    """
    detected = detect_format(filename)

    extracted_images: list[str] = []
    if detected.archive:
        unpacked = unpack_archive(data, storage)
        document = unpacked.document
        extracted_images = unpacked.image_paths
    else:
        document = _decode_document(data)

    validation = parse_and_validate(document, detected.document, extracted_images)
    logger.info(
        "Parsed %s: %d record(s), %d valid, %d invalid",
        filename,
        validation.summary.total,
        validation.summary.valid,
        validation.summary.invalid,
    )
    if not validation.is_valid:
        return ImportOutcome(validation=validation)

    counts = await import_prompts(db, validation.valid_prompts, options)
    return ImportOutcome(validation=validation, counts=counts)


# =============================================================================
# Export
# =============================================================================


@dataclass
class ExportFile:
    """A rendered export ready to be sent as a download."""

    content: bytes
    media_type: str
    filename: str


@dataclass
class ExportOptions:
    """Query options for an export."""

    format: DocumentFormat = "json"
    include_images: bool = False
    zip_format: bool = False
    pretty: bool = True
    exported_at: datetime = field(default_factory=lambda: datetime.now(UTC))


def prompt_to_data(prompt: Prompt, include_images: bool = False) -> PromptData:
    """Map a stored prompt to its exchange shape."""
    return PromptData(
        title=prompt.title,
        content=prompt.content,
        image_path=prompt.image_path if include_images else None,
        images=(prompt.image_list or None) if include_images else None,
        tags=prompt.tag_list or None,
        is_favorited=prompt.is_favorited,
        highlights=prompt.highlights,
        created_at=prompt.created_at.isoformat(),
        updated_at=prompt.updated_at.isoformat(),
    )


def _collect_images(storage: ImageStorage, prompts: list[PromptData]) -> dict[str, bytes]:
    images: dict[str, bytes] = {}
    for prompt in prompts:
        for path in prompt.images or ([prompt.image_path] if prompt.image_path else []):
            if path in images:
                continue
            try:
                images[path] = storage.read(path)
            except OSError as e:
                logger.warning("Failed to read image %s for export: %s", path, e)
    return images


async def export_prompts(
    db: AsyncSession,
    storage: ImageStorage,
    options: ExportOptions,
) -> ExportFile:
    """
    Render every prompt as a JSON document, a Markdown document or a ZIP archive.

    Raises:
        NoDataError: If there are no prompts.
    """
    prompts = await prompt_service.get_all_prompts(db, order="newest")
    if not prompts:
        raise NoDataError()

    records = [prompt_to_data(p, include_images=options.include_images) for p in prompts]
    stamp = options.exported_at.strftime("%Y-%m-%d")
    logger.info("Exporting %d prompt(s) as %s", len(records), options.format)

    if options.format == "json":
        envelope = build_envelope(
            records,
            settings=ExportSettings(include_images=options.include_images, compression=False),
            metadata=ExportMetadata(source="Prompt Manager", description="Exported prompts data"),
            exported_at=options.exported_at,
        )
        return ExportFile(
            content=serialize_json(envelope, pretty=options.pretty).encode("utf-8"),
            media_type="application/json",
            filename=f"prompts-export-{stamp}.json",
        )

    document = serialize_markdown(
        records,
        include_images=options.include_images,
        archive=options.zip_format,
        exported_at=options.exported_at,
    )
    if not options.zip_format:
        return ExportFile(
            content=document.encode("utf-8"),
            media_type="text/markdown; charset=utf-8",
            filename=f"prompts-export-{stamp}.md",
        )

    images = _collect_images(storage, records) if options.include_images else {}
    return ExportFile(
        content=pack_archive(document, images, exported_at=options.exported_at),
        media_type="application/zip",
        filename=f"prompts-export-{stamp}.zip",
    )
