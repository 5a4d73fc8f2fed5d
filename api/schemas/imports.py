"""
Schemas for the import endpoints.
"""

from typing import Any, Dict, Optional

from pydantic import BaseModel, Field


class ImportResult(BaseModel):
    """Outcome of an id range import."""

    start_id: int
    end_id: int
    imported_count: int = Field(..., description="Movies written")
    failed_count: int = Field(..., description="Movies missing upstream or failed")
    duration_millis: int
    message: str


class ImportYearResult(BaseModel):
    """Outcome of a release year range import (years as actually imported)."""

    start_year: int
    end_year: int
    imported_count: int
    failed_count: int
    duration_millis: int
    message: str


class LastRun(BaseModel):
    """Statistics of the most recent finished run."""

    imported: int
    failed: int
    duration_millis: int


class ImportStatus(BaseModel):
    """Importer state and catalog row counts."""

    active_runs: int
    last_run: Optional[LastRun] = None
    tables: Dict[str, Optional[int]]


class ErrorResponse(BaseModel):
    """Standard error response."""

    error: str
    message: str
    details: Optional[Dict[str, Any]] = None
