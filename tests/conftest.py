"""
Shared fixtures for TMDB importer tests.

Provides TMDB payload builders, a fake TMDB client, a SQLite-backed
DatabaseManager and a FastAPI test client.
"""

import copy
import time
from threading import Lock
from typing import Dict, List, Optional, Tuple

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import text

from tmdb_import.config import Config
from tmdb_import.database import DatabaseManager
from tmdb_import.exceptions import TransportError
from tmdb_import.people import PersonCache
from tmdb_import.persistence import MoviePersister
from tmdb_import.pipeline import ImportPipeline


# =============================================================================
# SAMPLE PAYLOADS
# =============================================================================

DRAMA = {"id": 18, "name": "Drama"}
THRILLER = {"id": 53, "name": "Thriller"}
COMEDY = {"id": 35, "name": "Comedy"}

GENRE_LIST = [DRAMA, THRILLER, COMEDY, {"id": 28, "name": "Action"}]


def cast_entry(person_id: int, name: str, character: str = "Lead", order: int = 0) -> dict:
    return {
        "id": person_id,
        "name": name,
        "character": character,
        "order": order,
        "gender": 2,
        "known_for_department": "Acting",
        "popularity": 10.5,
    }


def crew_entry(person_id: int, name: str, department: str = "Directing", job: str = "Director") -> dict:
    return {
        "id": person_id,
        "name": name,
        "department": department,
        "job": job,
        "known_for_department": department,
    }


def provider(provider_id: int, name: str, priority: int = 1) -> dict:
    return {
        "provider_id": provider_id,
        "provider_name": name,
        "logo_path": f"/logo_{provider_id}.png",
        "display_priority": priority,
    }


def movie_payload(
    tmdb_id: int,
    title: Optional[str] = None,
    genres: Optional[List[dict]] = None,
    cast: Optional[List[dict]] = None,
    crew: Optional[List[dict]] = None,
    countries: Optional[List[dict]] = None,
    companies: Optional[List[dict]] = None,
    languages: Optional[List[dict]] = None,
    titles: Optional[List[dict]] = None,
    providers: Optional[dict] = None,
    **overrides,
) -> dict:
    """Build a /movie/{id} response with appended sub-resources."""
    title = title or f"Movie {tmdb_id}"
    payload = {
        "id": tmdb_id,
        "imdb_id": f"tt{tmdb_id:07d}",
        "title": title,
        "original_title": title,
        "original_language": "en",
        "adult": False,
        "video": False,
        "status": "Released",
        "release_date": "1999-10-15",
        "budget": 63000000,
        "revenue": 100853753,
        "runtime": 139,
        "homepage": "",
        "overview": f"The overview of {title}.",
        "popularity": 61.4,
        "vote_average": 8.4,
        "vote_count": 26280,
        "tagline": "Mischief. Mayhem. Soap.",
        "genres": genres if genres is not None else [DRAMA],
        "spoken_languages": languages if languages is not None else [
            {"iso_639_1": "en", "english_name": "English", "name": "English"},
        ],
        "production_countries": countries if countries is not None else [
            {"iso_3166_1": "US", "name": "United States of America"},
        ],
        "production_companies": companies if companies is not None else [
            {"id": 508, "name": "Regency Enterprises", "origin_country": "US"},
        ],
        "alternative_titles": {
            "titles": titles if titles is not None else [
                {"iso_3166_1": "DE", "title": f"{title} (DE)", "type": ""},
            ],
        },
        "credits": {
            "cast": cast if cast is not None else [cast_entry(819, "Edward Norton")],
            "crew": crew if crew is not None else [crew_entry(7467, "David Fincher")],
        },
        "watch/providers": {
            "results": providers if providers is not None else {
                "US": {
                    "link": f"https://www.themoviedb.org/movie/{tmdb_id}/watch?locale=US",
                    "flatrate": [provider(8, "Netflix")],
                    "rent": [provider(2, "Apple TV")],
                },
            },
        },
    }
    payload.update(overrides)
    return payload


def person_payload(tmdb_id: int, name: str, **overrides) -> dict:
    """Build a /person/{id} response."""
    payload = {
        "id": tmdb_id,
        "name": name,
        "imdb_id": f"nm{tmdb_id:07d}",
        "gender": 2,
        "known_for_department": "Acting",
        "biography": f"Biography of {name}.",
        "birthday": "1969-08-18",
        "deathday": None,
        "place_of_birth": "Boston, Massachusetts, USA",
        "homepage": None,
        "adult": False,
        "popularity": 20.1,
        "also_known_as": [f"{name} Alias"],
    }
    payload.update(overrides)
    return payload


# =============================================================================
# FAKES
# =============================================================================

class FakeTMDBClient:
    """In-memory TMDB client that records every call."""

    def __init__(
        self,
        movies: Optional[Dict[int, dict]] = None,
        people: Optional[Dict[int, dict]] = None,
        discover: Optional[Dict[int, Tuple[List[List[int]], int]]] = None,
        genres: Optional[List[dict]] = None,
        delay: float = 0.0,
    ):
        self.movies = movies or {}
        self.people = people or {}
        self.discover = discover or {}  # year -> (pages of ids, reported total_pages)
        self.genres = genres if genres is not None else GENRE_LIST
        self.delay = delay

        self.failing_movies = set()
        self.failing_pages = set()  # (year, page)
        self.missing_pages = set()  # (year, page) answered with 404
        self.genres_error: Optional[Exception] = None

        self.movie_calls: List[int] = []
        self.person_calls: List[int] = []
        self.discover_calls: List[Tuple[int, int]] = []
        self.rate_limit_refreshes = 0

        self._lock = Lock()

    def refresh_rate_limit(self) -> None:
        self.rate_limit_refreshes += 1

    def fetch(self, endpoint: str, params: Optional[dict] = None) -> Optional[dict]:
        return {"images": {}} if endpoint == "/configuration" else None

    def fetch_genres(self) -> List[dict]:
        if self.genres_error is not None:
            raise self.genres_error
        return copy.deepcopy(self.genres)

    def fetch_movie_details(self, movie_id: int) -> Optional[dict]:
        with self._lock:
            self.movie_calls.append(movie_id)
        if self.delay:
            time.sleep(self.delay)
        if movie_id in self.failing_movies:
            raise TransportError(f"HTTP 401 for movie {movie_id}", status_code=401)
        payload = self.movies.get(movie_id)
        return copy.deepcopy(payload) if payload is not None else None

    def fetch_person_details(self, person_id: int) -> Optional[dict]:
        with self._lock:
            self.person_calls.append(person_id)
        if self.delay:
            time.sleep(self.delay)
        payload = self.people.get(person_id)
        return copy.deepcopy(payload) if payload is not None else None

    def discover_movies_by_year(self, year: int, page: int = 1) -> Optional[Tuple[List[int], int]]:
        with self._lock:
            self.discover_calls.append((year, page))
        if (year, page) in self.failing_pages:
            raise TransportError(f"HTTP 500 for discover {year}/{page}", status_code=500)
        if (year, page) in self.missing_pages or year not in self.discover:
            return None
        pages, total_pages = self.discover[year]
        ids = pages[page - 1] if page <= len(pages) else []
        return list(ids), total_pages

    def close(self) -> None:
        pass


class FakeClock:
    """Monotonic clock whose sleep advances time instantly."""

    def __init__(self, start: float = 100.0):
        self.now = start
        self.sleeps: List[float] = []

    def __call__(self) -> float:
        return self.now

    def sleep(self, seconds: float) -> None:
        self.sleeps.append(seconds)
        self.now += seconds


# =============================================================================
# HELPERS
# =============================================================================

def query_rows(db: DatabaseManager, sql: str, **params) -> list:
    """Run a read query and return plain tuples."""
    with db.engine.connect() as conn:
        return [tuple(row) for row in conn.execute(text(sql), params)]


def query_value(db: DatabaseManager, sql: str, **params):
    with db.engine.connect() as conn:
        return conn.execute(text(sql), params).scalar()


# =============================================================================
# FIXTURES
# =============================================================================

@pytest.fixture
def config(tmp_path):
    """Configuration pointing at a SQLite file in the test directory."""
    return Config(
        bearer_token="test-token",
        database_url=f"sqlite:///{tmp_path / 'catalog.db'}",
        log_dir=tmp_path / "logs",
        max_concurrency=4,
        worker_threads=8,
        max_discover_pages=500,
    )


@pytest.fixture
def db(config):
    """Provisioned SQLite database."""
    manager = DatabaseManager(config)
    manager.create_all_tables()
    yield manager
    manager.dispose()


@pytest.fixture
def fake_client():
    """Fake TMDB client with a few people known upstream."""
    return FakeTMDBClient(
        people={
            819: person_payload(819, "Edward Norton"),
            7467: person_payload(7467, "David Fincher", known_for_department="Directing"),
            287: person_payload(287, "Brad Pitt"),
        },
    )


@pytest.fixture
def people(fake_client, db):
    return PersonCache(fake_client, db)


@pytest.fixture
def persister(db, people):
    return MoviePersister(db, people)


@pytest.fixture
def pipeline(fake_client, db, config):
    return ImportPipeline(fake_client, db, config)


@pytest.fixture
def api_client(pipeline, db, config):
    """Provide FastAPI test client wired to the SQLite pipeline."""
    from api.main import app
    from api import dependencies

    dependencies.get_config.cache_clear()
    dependencies.get_db.cache_clear()
    dependencies.get_tmdb_client.cache_clear()
    dependencies.get_pipeline.cache_clear()

    app.dependency_overrides[dependencies.get_config] = lambda: config
    app.dependency_overrides[dependencies.get_db] = lambda: db
    app.dependency_overrides[dependencies.get_pipeline] = lambda: pipeline

    with TestClient(app) as client:
        yield client

    app.dependency_overrides.clear()
