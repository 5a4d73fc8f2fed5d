"""
Custom exceptions and error handlers for the API.
"""

from typing import Any, Dict, Optional

from fastapi import HTTPException, Request
from fastapi.responses import JSONResponse

from tmdb_import.exceptions import ConfigurationError


class APIError(HTTPException):
    """Base API error with structured error response."""

    def __init__(
        self,
        status_code: int,
        error: str,
        message: str,
        details: Optional[Dict[str, Any]] = None,
    ):
        self.error = error
        self.message = message
        self.details = details
        super().__init__(status_code=status_code, detail=message)


class InvalidRangeError(APIError):
    """Import range rejected before any work started."""

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(
            status_code=400,
            error="invalid_range",
            message=message,
            details=details,
        )


class ImporterUnavailableError(APIError):
    """Importer cannot run (missing token, unreachable database)."""

    def __init__(self, message: str = "Importer is not configured"):
        super().__init__(
            status_code=503,
            error="importer_unavailable",
            message=message,
        )


async def api_error_handler(request: Request, exc: APIError) -> JSONResponse:
    """Handle APIError exceptions and return structured JSON response."""
    content = {
        "error": exc.error,
        "message": exc.message,
    }
    if exc.details:
        content["details"] = exc.details
    return JSONResponse(status_code=exc.status_code, content=content)


async def configuration_error_handler(request: Request, exc: ConfigurationError) -> JSONResponse:
    """Missing configuration surfaces as 503."""
    return await api_error_handler(request, ImporterUnavailableError(str(exc)))
