"""Schemas for the import/export wire formats and import results."""
from dataclasses import dataclass
from typing import Any, Literal

from pydantic import BaseModel, Field

from schemas.prompt import CamelModel

EXPORT_FORMAT_VERSION = "1.0.0"

CandidateSource = Literal["json", "markdown"]


@dataclass(frozen=True)
class CandidatePrompt:
    """
    An unvalidated record produced by a parser.

    `data` is whatever the source contained (it may not even be a mapping).
    The only way to obtain a PromptData from a candidate is the record validator.
    """

    source: CandidateSource
    data: Any


class PromptData(CamelModel):
    """A validated prompt in its exchange shape (no identifier)."""

    title: str
    content: str
    image_path: str | None = None
    images: list[str] | None = None
    tags: list[str] | None = None
    is_favorited: bool = False
    highlights: Any | None = None
    created_at: str | None = None
    updated_at: str | None = None
    metadata: dict[str, Any] | None = None


class ExportSettings(CamelModel):
    """Options the export was produced with."""

    include_images: bool = False
    compression: bool = False


class ExportMetadata(CamelModel):
    """Descriptive information stamped on an export."""

    exported_by: str | None = None
    source: str | None = None
    description: str | None = None


class ExportEnvelope(CamelModel):
    """Versioned wrapper used by the JSON export format."""

    version: str = EXPORT_FORMAT_VERSION
    exported_at: str
    total_count: int
    prompts: list[PromptData]
    settings: ExportSettings | None = None
    metadata: ExportMetadata | None = None


class InvalidPrompt(BaseModel):
    """A rejected candidate with its 0-based position and error messages."""

    index: int
    data: Any
    errors: list[str]


class ValidationSummary(BaseModel):
    """Candidate counts from a validation pass."""

    total: int = 0
    valid: int = 0
    invalid: int = 0


class ImportValidationResult(CamelModel):
    """Outcome of parsing and validating an import payload (never persisted)."""

    is_valid: bool = False
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    valid_prompts: list[PromptData] = Field(default_factory=list)
    invalid_prompts: list[InvalidPrompt] = Field(default_factory=list)
    summary: ValidationSummary = Field(default_factory=ValidationSummary)


class ImportCounts(BaseModel):
    """Persistence counts from an import."""

    imported: int = 0
    skipped: int = 0
    updated: int = 0
    total: int = 0


class ImportResponse(BaseModel):
    """Response body of the import endpoint."""

    success: bool
    message: str
    data: ImportCounts | None = None
    errors: list[str] = Field(default_factory=list)
    warnings: list[str] = Field(default_factory=list)
    summary: ValidationSummary
