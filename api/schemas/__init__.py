"""Pydantic schemas for API request and response validation."""

from api.schemas.imports import (
    ErrorResponse,
    ImportResult,
    ImportStatus,
    ImportYearResult,
    LastRun,
)

__all__ = [
    "ErrorResponse",
    "ImportResult",
    "ImportStatus",
    "ImportYearResult",
    "LastRun",
]
