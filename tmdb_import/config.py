"""
Configuration management for the TMDB import pipeline.

Loads configuration from environment variables and provides
a centralized Config dataclass for all settings.
"""

import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

from .exceptions import ConfigurationError


@dataclass
class Config:
    """Centralized configuration from environment variables."""

    # TMDB API
    bearer_token: str
    base_url: str = "https://api.themoviedb.org/3"
    language: str = "en-US"
    default_rate_limit: int = 50  # calls per second until the API tells us otherwise
    max_retry_seconds: float = 10.0
    request_timeout: float = 10.0

    # Database
    database_url: str = "sqlite:///tmdb_import.db"
    pool_size: int = 10
    max_overflow: int = 10
    native_upsert: Optional[bool] = None  # None = decide by dialect
    sqlite_busy_timeout: float = 30.0  # seconds a SQLite writer waits for the lock

    # Import settings
    max_concurrency: int = 10
    worker_threads: int = 32
    max_discover_pages: int = 500
    min_year: int = 1874

    # Paths
    log_dir: Path = field(default_factory=lambda: Path.cwd() / "logs")

    @classmethod
    def from_env(cls, env_path: Optional[str] = None) -> "Config":
        """
        Load configuration from environment variables.

        Args:
            env_path: Optional path to .env file. If not provided,
                     looks for .env in the project root, then current directory.

        Returns:
            Config instance with loaded values.

        Raises:
            ConfigurationError: If required environment variables are missing.
        """
        if env_path:
            load_dotenv(env_path)
        else:
            root_env = Path(__file__).parent.parent / ".env"
            if root_env.exists():
                load_dotenv(root_env)
            else:
                load_dotenv()

        bearer_token = (os.getenv("TMDB_BEARER_TOKEN") or os.getenv("TMDB_API_TOKEN") or "").strip()
        if not bearer_token:
            raise ConfigurationError("TMDB_BEARER_TOKEN environment variable is required")

        database_url = os.getenv("DATABASE_URL", "").strip()
        if not database_url:
            db_host = os.getenv("SQL_HOST", "localhost")
            db_port = int(os.getenv("SQL_PORT", "3306"))
            db_user = os.getenv("SQL_USER", "")
            db_password = os.getenv("SQL_PASS", "")
            db_name = os.getenv("SQL_DB", "")
            if not db_user or not db_name:
                raise ConfigurationError(
                    "DATABASE_URL, or SQL_USER and SQL_DB, environment variables are required"
                )
            database_url = (
                f"mysql+pymysql://{db_user}:{db_password}"
                f"@{db_host}:{db_port}/{db_name}"
            )

        try:
            max_concurrency = max(1, int(os.getenv("IMPORT_MAX_CONCURRENCY", "10")))
            worker_threads = max(1, int(os.getenv("IMPORT_WORKER_THREADS", "32")))
            max_discover_pages = max(1, int(os.getenv("IMPORT_MAX_DISCOVER_PAGES", "500")))
            default_rate_limit = max(1, int(os.getenv("TMDB_DEFAULT_RATE_LIMIT", "50")))
            max_retry_seconds = float(os.getenv("TMDB_MAX_RETRY_SECONDS", "10"))
            min_year = int(os.getenv("IMPORT_MIN_YEAR", "1874"))
            pool_size = int(os.getenv("DB_POOL_SIZE", str(max_concurrency)))
            max_overflow = int(os.getenv("DB_MAX_OVERFLOW", "10"))
            sqlite_busy_timeout = float(os.getenv("DB_BUSY_TIMEOUT", "30"))
        except ValueError as e:
            raise ConfigurationError(f"Invalid numeric setting: {e}") from e

        log_dir = Path(os.getenv("LOG_DIR", str(Path.cwd() / "logs")))

        return cls(
            bearer_token=bearer_token,
            base_url=os.getenv("TMDB_BASE_URL", "https://api.themoviedb.org/3").rstrip("/"),
            language=os.getenv("TMDB_LANGUAGE", "en-US"),
            default_rate_limit=default_rate_limit,
            max_retry_seconds=max_retry_seconds,
            request_timeout=max_retry_seconds,
            database_url=database_url,
            pool_size=pool_size,
            max_overflow=max_overflow,
            sqlite_busy_timeout=sqlite_busy_timeout,
            max_concurrency=max_concurrency,
            worker_threads=worker_threads,
            max_discover_pages=max_discover_pages,
            min_year=min_year,
            log_dir=log_dir,
        )

    @property
    def default_interval(self) -> float:
        """Default pacing interval in seconds."""
        return 1.0 / self.default_rate_limit

    def get_headers(self) -> dict:
        """Get headers for TMDB API requests."""
        if not self.bearer_token:
            raise ConfigurationError("TMDB bearer token is not set")
        return {
            "Authorization": f"Bearer {self.bearer_token}",
            "accept": "application/json",
        }
