"""
Exceptions raised by the TMDB import pipeline.

A missing TMDB record is not an exception: TMDBClient.fetch returns None
for a 404 and callers treat it as "no remote data".
"""

from typing import Optional


class TMDBImportError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(TMDBImportError, ValueError):
    """Required configuration (e.g. the bearer token) is missing or invalid."""


class TransportError(TMDBImportError):
    """An API call failed for good (non-retryable status or retries exhausted)."""

    def __init__(self, message: str, status_code: Optional[int] = None, url: Optional[str] = None):
        super().__init__(message)
        self.status_code = status_code
        self.url = url


class TransientTransportError(TransportError):
    """Rate limiting, 5xx or I/O failures that outlived the retry deadline."""


class PersistenceError(TMDBImportError):
    """A unit of work failed while writing; its transaction was rolled back."""

    def __init__(self, tmdb_id: int, cause: BaseException):
        super().__init__(f"Persisting TMDB id {tmdb_id} failed: {cause}")
        self.tmdb_id = tmdb_id
        self.cause = cause


class DiscoveryPageError(TMDBImportError):
    """One page of a year discovery query could not be fetched."""

    def __init__(self, year: int, page: int, cause: BaseException):
        super().__init__(f"Discover request failed for year {year}, page {page}: {cause}")
        self.year = year
        self.page = page
        self.cause = cause
