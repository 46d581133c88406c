"""JSON export format: a versioned envelope around the exported prompts."""
import json
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import UTC, datetime

from schemas.import_export import (
    EXPORT_FORMAT_VERSION,
    CandidatePrompt,
    ExportEnvelope,
    ExportMetadata,
    ExportSettings,
    PromptData,
)
from services.exceptions import ImportFormatError


@dataclass
class ParsedJson:
    """Candidates extracted from a JSON document plus any non-fatal warnings."""

    candidates: list[CandidatePrompt]
    warnings: list[str] = field(default_factory=list)


def build_envelope(
    prompts: Sequence[PromptData],
    *,
    settings: ExportSettings | None = None,
    metadata: ExportMetadata | None = None,
    exported_at: datetime | None = None,
) -> ExportEnvelope:
    """Wrap prompts in the current-version export envelope."""
    return ExportEnvelope(
        version=EXPORT_FORMAT_VERSION,
        exported_at=(exported_at or datetime.now(UTC)).isoformat(),
        total_count=len(prompts),
        prompts=list(prompts),
        settings=settings,
        metadata=metadata,
    )


def serialize_json(envelope: ExportEnvelope, *, pretty: bool = True) -> str:
    """Serialize an envelope; `pretty` uses two-space indentation."""
    return json.dumps(
        envelope.model_dump(by_alias=True, exclude_none=True),
        ensure_ascii=False,
        indent=2 if pretty else None,
    )


def parse_json(document: str) -> ParsedJson:
    """
    Parse a JSON import document.

    Accepts either the versioned envelope (`{"version": ..., "prompts": [...]}`)
    or a bare array of prompts. A version other than the current one produces a
    warning, not an error.

    Raises:
        ImportFormatError: If the document is not valid JSON or has any other shape.
    """
    try:
        data = json.loads(document)
    except json.JSONDecodeError as e:
        raise ImportFormatError(f"Failed to parse JSON: {e.msg} (line {e.lineno})") from e

    warnings: list[str] = []
    if isinstance(data, dict) and data.get("version") and "prompts" in data:
        records = data["prompts"]
        if not isinstance(records, list):
            raise ImportFormatError("Invalid JSON export: 'prompts' must be an array")
        version = str(data["version"])
        if version != EXPORT_FORMAT_VERSION:
            warnings.append(
                f"File version ({version}) does not match the current version "
                f"({EXPORT_FORMAT_VERSION}); there may be compatibility issues",
            )
    elif isinstance(data, list):
        records = data
    else:
        raise ImportFormatError(
            "Invalid JSON format: expected an export object with a 'prompts' array "
            "or an array of prompts",
        )

    return ParsedJson(
        candidates=[CandidatePrompt(source="json", data=record) for record in records],
        warnings=warnings,
    )
