"""Pydantic schemas for database maintenance endpoints."""
from typing import Any

from pydantic import BaseModel

from schemas.prompt import CamelModel


class RestoreSummary(CamelModel):
    """Counts from a restore."""

    imported: int
    skipped: int
    total: int
    replace_mode: bool
    errors: list[str] | None = None


class RestoreResponse(BaseModel):
    """Response body of the restore endpoint."""

    success: bool = True
    message: str
    data: RestoreSummary


class DatabaseInfoResponse(BaseModel):
    """Statistics (and optionally every record) of the database."""

    success: bool = True
    data: dict[str, Any]


class RefreshResponse(BaseModel):
    """Result of a connectivity check."""

    success: bool = True
    message: str
    data: dict[str, Any]
