"""ZIP archive format: one Markdown document plus an images/ directory."""
import io
import logging
import zipfile
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import PurePosixPath
from uuid import uuid4

from schemas.validators import has_allowed_image_extension
from services.exceptions import ArchiveFormatError
from services.image_storage import ImageStorage
from services.markdown_codec import ARCHIVE_IMAGE_DIR

logger = logging.getLogger(__name__)

MARKDOWN_SUFFIXES = (".md", ".markdown")
# Uncompressed size limit for any single archive entry
MAX_ARCHIVE_ENTRY_SIZE = 10 * 1024 * 1024


@dataclass
class UnpackedArchive:
    """Document text and the storage paths of the images extracted from an archive."""

    document: str
    image_paths: list[str] = field(default_factory=list)


def archive_document_name(exported_at: datetime | None = None) -> str:
    """Name of the Markdown document inside an export archive."""
    stamp = (exported_at or datetime.now(UTC)).strftime("%Y-%m-%d")
    return f"prompts-export-{stamp}.md"


def pack_archive(
    document: str,
    images: Mapping[str, bytes],
    exported_at: datetime | None = None,
) -> bytes:
    """
    Bundle a Markdown document and image payloads into a ZIP archive.

    Args:
        document: The Markdown export (image links already rewritten to images/).
        images: Image bytes keyed by path; only the base name is kept in the archive.
        exported_at: Date stamped into the document's file name.

    Returns:
        The archive bytes.
    """
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w", zipfile.ZIP_DEFLATED) as zf:
        zf.writestr(archive_document_name(exported_at), document.encode("utf-8"))
        for path, data in images.items():
            name = PurePosixPath(path).name
            zf.writestr(f"{ARCHIVE_IMAGE_DIR}/{name}", data)
    return buffer.getvalue()


def _is_archive_image(info: zipfile.ZipInfo) -> bool:
    return (
        not info.is_dir()
        and info.filename.startswith(f"{ARCHIVE_IMAGE_DIR}/")
        and has_allowed_image_extension(info.filename)
    )


def unpack_archive(
    data: bytes,
    storage: ImageStorage,
    max_entry_size: int = MAX_ARCHIVE_ENTRY_SIZE,
) -> UnpackedArchive:
    """
    Extract the Markdown document and images from an archive.

    The first entry ending in .md or .markdown is the document. Every file
    under images/ with an allowed image extension is written to `storage`
    under a generated `<uuid>_<basename>` name, in archive order. Images whose
    uncompressed size exceeds `max_entry_size` are skipped.

    Raises:
        ArchiveFormatError: If the payload is not a ZIP archive, contains no
            Markdown document, or the document exceeds `max_entry_size`.
    """
    try:
        zf = zipfile.ZipFile(io.BytesIO(data))
    except zipfile.BadZipFile as e:
        raise ArchiveFormatError(f"Invalid ZIP archive: {e}") from e

    with zf:
        entries = zf.infolist()
        document_entry = next(
            (
                info for info in entries
                if not info.is_dir() and info.filename.lower().endswith(MARKDOWN_SUFFIXES)
            ),
            None,
        )
        if document_entry is None:
            raise ArchiveFormatError("No Markdown document (.md or .markdown) found in archive")

        if document_entry.file_size > max_entry_size:
            raise ArchiveFormatError(
                f"Markdown document '{document_entry.filename}' exceeds {max_entry_size} bytes",
            )
        try:
            document = zf.read(document_entry).decode("utf-8")
        except UnicodeDecodeError as e:
            raise ArchiveFormatError(
                f"Markdown document '{document_entry.filename}' is not valid UTF-8",
            ) from e

        storage.ensure_root()
        image_paths = []
        for info in entries:
            if not _is_archive_image(info):
                continue
            if info.file_size > max_entry_size:
                logger.warning(
                    "Skipping archive image %s: %d bytes exceeds %d",
                    info.filename,
                    info.file_size,
                    max_entry_size,
                )
                continue
            name = f"{uuid4().hex}_{PurePosixPath(info.filename).name}"
            image_paths.append(storage.save(name, zf.read(info)))

    logger.info(
        "Unpacked archive document %s with %d image(s)",
        document_entry.filename,
        len(image_paths),
    )
    return UnpackedArchive(document=document, image_paths=image_paths)
