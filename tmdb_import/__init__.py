"""
TMDB Import - Movie catalog ingestion from the TMDB API.

This package provides tools for:
- Rate-limited, retrying access to the TMDB API
- Importing movies by TMDB id range or by release year range
- Transactional reconciliation of movies, people and lookups into SQL
"""

from .config import Config
from .exceptions import (
    ConfigurationError,
    DiscoveryPageError,
    PersistenceError,
    TMDBImportError,
    TransientTransportError,
    TransportError,
)
from .models import CreditData, ImportStats, MovieData, PersonData
from .client import TMDBClient
from .database import DatabaseManager
from .people import PersonCache
from .persistence import MoviePersister
from .pipeline import ImportPipeline

__version__ = "1.0.0"
__all__ = [
    "Config",
    "ConfigurationError",
    "DiscoveryPageError",
    "PersistenceError",
    "TMDBImportError",
    "TransientTransportError",
    "TransportError",
    "CreditData",
    "ImportStats",
    "MovieData",
    "PersonData",
    "TMDBClient",
    "DatabaseManager",
    "PersonCache",
    "MoviePersister",
    "ImportPipeline",
]
