"""Tests for the ZIP archive format."""
import io
import zipfile
from datetime import UTC, datetime

import pytest

from services.archive_codec import pack_archive, unpack_archive
from services.exceptions import ArchiveFormatError
from services.image_storage import ImageStorage


def _zip(entries: dict[str, bytes]) -> bytes:
    buffer = io.BytesIO()
    with zipfile.ZipFile(buffer, "w") as zf:
        for name, data in entries.items():
            zf.writestr(name, data)
    return buffer.getvalue()


def test__pack_archive__writes_dated_document_and_images() -> None:
    data = pack_archive(
        "# doc",
        {"/uploads/a.png": b"png-bytes", "/uploads/nested/b.jpg": b"jpg-bytes"},
        exported_at=datetime(2025, 3, 4, tzinfo=UTC),
    )

    with zipfile.ZipFile(io.BytesIO(data)) as zf:
        assert sorted(zf.namelist()) == [
            "images/a.png", "images/b.jpg", "prompts-export-2025-03-04.md",
        ]
        assert zf.read("prompts-export-2025-03-04.md") == b"# doc"
        assert zf.read("images/a.png") == b"png-bytes"


def test__unpack_archive__returns_document_and_stores_images(image_storage: ImageStorage) -> None:
    data = pack_archive("# doc 中文", {"a.png": b"A", "b.webp": b"B"})

    unpacked = unpack_archive(data, image_storage)

    assert unpacked.document == "# doc 中文"
    assert len(unpacked.image_paths) == 2
    assert unpacked.image_paths[0].startswith("/uploads/")
    assert unpacked.image_paths[0].endswith("_a.png")
    assert unpacked.image_paths[1].endswith("_b.webp")
    assert image_storage.read(unpacked.image_paths[0]) == b"A"


def test__unpack_archive__creates_missing_storage_directory(image_storage: ImageStorage) -> None:
    assert not image_storage.root.exists()

    unpack_archive(_zip({"doc.md": b"x", "images/a.png": b"A"}), image_storage)

    assert image_storage.root.is_dir()


def test__unpack_archive__ignores_non_image_entries(image_storage: ImageStorage) -> None:
    data = _zip({
        "doc.md": b"x",
        "images/readme.txt": b"text",
        "images/": b"",
        "other/c.png": b"C",
        "images/a.GIF": b"A",
    })

    unpacked = unpack_archive(data, image_storage)

    assert len(unpacked.image_paths) == 1
    assert unpacked.image_paths[0].endswith("_a.GIF")


def test__unpack_archive__uses_first_markdown_entry(image_storage: ImageStorage) -> None:
    data = _zip({"notes.txt": b"no", "first.markdown": b"first", "second.md": b"second"})
    assert unpack_archive(data, image_storage).document == "first"


def test__unpack_archive__generated_names_do_not_collide(image_storage: ImageStorage) -> None:
    data = _zip({"doc.md": b"x", "images/a.png": b"A"})

    first = unpack_archive(data, image_storage).image_paths
    second = unpack_archive(data, image_storage).image_paths

    assert first != second


def test__unpack_archive__missing_markdown_is_rejected(image_storage: ImageStorage) -> None:
    data = _zip({"images/a.png": b"A", "notes.txt": b"text"})

    with pytest.raises(ArchiveFormatError, match="No Markdown document"):
        unpack_archive(data, image_storage)

    # Rejected before any image was extracted
    assert not image_storage.root.exists()


def test__unpack_archive__non_zip_payload_is_rejected(image_storage: ImageStorage) -> None:
    with pytest.raises(ArchiveFormatError, match="Invalid ZIP archive"):
        unpack_archive(b"definitely not a zip", image_storage)


def test__unpack_archive__oversized_image_is_skipped(image_storage: ImageStorage) -> None:
    data = _zip({"doc.md": b"x", "images/big.png": b"B" * 101, "images/small.png": b"S"})

    unpacked = unpack_archive(data, image_storage, max_entry_size=100)

    assert len(unpacked.image_paths) == 1
    assert image_storage.read(unpacked.image_paths[0]) == b"S"


def test__unpack_archive__oversized_document_is_rejected(image_storage: ImageStorage) -> None:
    data = _zip({"doc.md": b"x" * 101, "images/a.png": b"A"})

    with pytest.raises(ArchiveFormatError, match="exceeds 100 bytes"):
        unpack_archive(data, image_storage, max_entry_size=100)

    assert not image_storage.root.exists()
