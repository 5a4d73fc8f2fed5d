"""
Import endpoints.

Trigger TMDB import runs and report their statistics. Routes are plain
``def`` so FastAPI runs the blocking import in its threadpool.
"""

from fastapi import APIRouter, Depends, Query

from api.dependencies import get_db, get_pipeline
from api.exceptions import InvalidRangeError
from api.logging_config import logger
from api.schemas.imports import (
    ErrorResponse,
    ImportResult,
    ImportStatus,
    ImportYearResult,
    LastRun,
)
from tmdb_import.database import DatabaseManager
from tmdb_import.pipeline import ImportPipeline

router = APIRouter()

ERROR_RESPONSES = {
    400: {"model": ErrorResponse, "description": "Invalid range"},
    503: {"model": ErrorResponse, "description": "Importer not configured"},
}


@router.post("/import/movies", response_model=ImportResult, responses=ERROR_RESPONSES)
def import_movies(
    start: int = Query(..., description="First TMDB movie id (inclusive)"),
    end: int = Query(..., description="Last TMDB movie id (inclusive)"),
    pipeline: ImportPipeline = Depends(get_pipeline),
):
    """Import every TMDB movie id in [start, end]."""
    try:
        pipeline.validate_id_range(start, end)
    except ValueError as e:
        raise InvalidRangeError(str(e), {"start": start, "end": end})

    logger.info(f"Id range import requested: {start}-{end}")
    stats = pipeline.import_by_id_range(start, end, show_progress=False)
    return ImportResult(
        start_id=start,
        end_id=end,
        imported_count=stats.imported,
        failed_count=stats.failed,
        duration_millis=stats.duration_millis,
        message=f"Import finished for TMDB ids {start}-{end}",
    )


@router.post("/import/movies/years", response_model=ImportYearResult, responses=ERROR_RESPONSES)
def import_movies_by_year(
    start_year: int = Query(..., description="First release year (inclusive)"),
    end_year: int = Query(..., description="Last release year (inclusive)"),
    pipeline: ImportPipeline = Depends(get_pipeline),
):
    """
    Import every movie TMDB discovers for the release years in range.

    The range is clamped to the supported interval; the response echoes
    the years actually imported.
    """
    try:
        effective_start, effective_end = pipeline.validate_year_range(start_year, end_year)
    except ValueError as e:
        raise InvalidRangeError(str(e), {"start_year": start_year, "end_year": end_year})

    logger.info(f"Year range import requested: {effective_start}-{effective_end}")
    stats = pipeline.import_by_year_range(effective_start, effective_end, show_progress=False)
    return ImportYearResult(
        start_year=effective_start,
        end_year=effective_end,
        imported_count=stats.imported,
        failed_count=stats.failed,
        duration_millis=stats.duration_millis,
        message=f"Import finished for release years {effective_start}-{effective_end}",
    )


@router.get("/import/status", response_model=ImportStatus)
def import_status(
    pipeline: ImportPipeline = Depends(get_pipeline),
    db: DatabaseManager = Depends(get_db),
):
    """Running imports, the last run's statistics and catalog row counts."""
    last = pipeline.last_stats
    return ImportStatus(
        active_runs=pipeline.active_runs.value,
        last_run=LastRun(**last.to_dict()) if last else None,
        tables=db.get_status(),
    )
