"""
Dependency injection for the API.

Provides the shared configuration, storage and import pipeline.
"""

from functools import lru_cache

from tmdb_import.client import TMDBClient
from tmdb_import.config import Config
from tmdb_import.database import DatabaseManager
from tmdb_import.pipeline import ImportPipeline


@lru_cache()
def get_config() -> Config:
    """Get cached configuration instance."""
    return Config.from_env()


@lru_cache()
def get_db() -> DatabaseManager:
    """Get cached DatabaseManager instance."""
    return DatabaseManager(get_config())


@lru_cache()
def get_tmdb_client() -> TMDBClient:
    """Get cached TMDBClient instance."""
    return TMDBClient(get_config())


@lru_cache()
def get_pipeline() -> ImportPipeline:
    """
    Get the process-wide import pipeline.

    One instance means one concurrency bound and one pacing gate for all
    requests.
    """
    return ImportPipeline(get_tmdb_client(), get_db(), get_config())
