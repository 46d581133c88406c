"""Shared exceptions for service layer operations."""


class ImportFormatError(ValueError):
    """
    Raised when an import payload is structurally invalid.

    Structural errors abort the whole import before anything is persisted,
    unlike per-record validation errors which are collected in the result.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ArchiveFormatError(ImportFormatError):
    """Raised when an archive is unreadable or lacks a Markdown document."""


class UnsupportedFormatError(ImportFormatError):
    """Raised when a file's format cannot be determined from its name."""

    def __init__(self, filename: str) -> None:
        self.filename = filename
        super().__init__(
            f"Unsupported file format: '{filename}'. Use a .json, .md, .markdown or .zip file.",
        )


class NoDataError(Exception):
    """Raised when an export is requested but there is nothing to export."""

    def __init__(self, message: str = "There are no prompts to export") -> None:
        super().__init__(message)


class BackupFormatError(ValueError):
    """Raised when a backup document cannot be restored."""

    def __init__(self, message: str) -> None:
        super().__init__(message)


class InvalidImageError(ValueError):
    """Raised when an uploaded file is not an acceptable image."""

    def __init__(self, message: str) -> None:
        super().__init__(message)
