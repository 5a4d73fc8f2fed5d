"""
Transactional reconciliation of one movie payload into the catalog.

Before the transaction opens, people without a row are prepared (their
TMDB details fetched). Every movie is then written in a single transaction:
1. lookups referenced by the payload
2. the movie row itself
3. delete of every relation row the movie owns
4. fresh relation rows (genres, languages, countries, companies,
   alternative titles, watch providers)
5. people, then cast and crew rows

Each lookup table is visited once per unit, always in the same table
order and in key order within a table, so concurrent transactions lock
shared rows in the same order.
"""

from typing import Dict, List, Optional

from sqlalchemy.engine import Connection
from sqlalchemy.exc import SQLAlchemyError

from . import schema
from .database import (
    PRODUCTION_COUNTRY_CODE,
    PRODUCTION_COUNTRY_DESCRIPTION,
    DatabaseManager,
)
from .exceptions import PersistenceError
from .models import CountryData, GenreData, LanguageData, MovieData, PersonData
from .people import PersonCache
from .utils import setup_logger


def _unique(rows: List[tuple]) -> List[tuple]:
    """Drop exact repeats, keeping first-seen order."""
    return list(dict.fromkeys(rows))


class MoviePersister:
    """Writes TMDB movie payloads; one instance per import run."""

    def __init__(self, db: DatabaseManager, people: PersonCache):
        self.db = db
        self.people = people
        self.logger = setup_logger("persistence", db.config.log_dir)

    def persist(self, payload: Optional[dict]) -> bool:
        """
        Reconcile one movie payload.

        Args:
            payload: /movie/{id} response with appended sub-resources

        Returns:
            True if written, False when there is no data

        Raises:
            PersistenceError: The write failed; the transaction was rolled back
            TransportError: A person detail could not be fetched
            ValueError: The payload carries no movie id
        """
        if not payload:
            return False

        movie = MovieData.from_tmdb(payload)
        pending = self.people.prefetch(movie.cast + movie.crew)
        local_people: Dict[int, int] = {}
        try:
            try:
                with self.db.transaction() as conn:
                    movie_id = self._write(conn, movie, pending, local_people)
            except SQLAlchemyError as e:
                raise PersistenceError(movie.tmdb_id, e) from e
            self.people.publish(local_people)
        finally:
            self.people.release(pending)

        self.logger.debug(f"Persisted movie {movie.tmdb_id} as id {movie_id}")
        return True

    def refresh_genres(self, genres: List[dict]) -> int:
        """
        Upsert the official genre list in one transaction.

        Returns:
            Number of genres written
        """
        parsed = sorted(
            (g for g in map(GenreData.from_tmdb, genres) if g), key=lambda g: g.tmdb_id
        )
        with self.db.transaction() as conn:
            for genre in parsed:
                self.db.upsert_genre(conn, genre)
        return len(parsed)

    # ============ UNIT OF WORK ============

    def _write(
        self,
        conn: Connection,
        movie: MovieData,
        pending: Dict[int, PersonData],
        local_people: Dict[int, int],
    ) -> int:
        lookups = self._upsert_lookups(conn, movie, pending)

        movie_id = self.db.upsert(
            conn, schema.movie, {"tmdb_id": movie.tmdb_id},
            {k: v for k, v in movie.to_dict().items() if k != "tmdb_id"},
            monotonic=False,
        )

        self.db.clear_movie_relations(conn, movie_id)

        self._insert_lookup_links(conn, movie_id, movie, lookups)
        self._insert_titles(conn, movie_id, movie, lookups)
        self._insert_watch_providers(conn, movie_id, movie, lookups)
        self._insert_credits(conn, movie_id, movie, lookups, pending, local_people)
        return movie_id

    def _upsert_lookups(self, conn: Connection, movie: MovieData, pending: Dict[int, PersonData]) -> dict:
        """
        Upsert every lookup the unit refers to, table by table.

        Order: language, genre, country_type, country, production_company,
        department, job, watch_provider.
        """
        db = self.db

        languages: Dict[str, LanguageData] = {lang.iso_639_1: lang for lang in movie.spoken_languages}
        if movie.original_language:
            languages.setdefault(movie.original_language, LanguageData(iso_639_1=movie.original_language))
        language_ids = {iso: db.upsert_language(conn, languages[iso]) for iso in sorted(languages)}

        genre_ids = {
            g.tmdb_id: db.upsert_genre(conn, g) for g in sorted(movie.genres, key=lambda g: g.tmdb_id)
        }

        production_type_id = db.upsert_country_type(
            conn, PRODUCTION_COUNTRY_CODE, PRODUCTION_COUNTRY_DESCRIPTION
        )

        # Named production countries first; bare region codes only ensure a row
        country_names: Dict[str, Optional[str]] = {}
        for country in movie.production_countries:
            country_names[country.iso_3166_1] = country.name or country_names.get(country.iso_3166_1)
        bare_codes = (
            [c.origin_country for c in movie.production_companies if c.origin_country]
            + [t.iso_3166_1 for t in movie.alternative_titles]
            + [o.region for o in movie.watch_providers]
        )
        for iso in bare_codes:
            country_names.setdefault(iso, None)
        country_ids = {
            iso: db.upsert_country(conn, CountryData(iso_3166_1=iso, name=country_names[iso]))
            for iso in sorted(country_names)
        }

        company_ids = {
            c.tmdb_id: db.upsert_production_company(conn, c, ensure_origin=False)
            for c in sorted(movie.production_companies, key=lambda c: c.tmdb_id)
        }

        departments = {c.department for c in movie.crew if c.department and c.job}
        departments.update(p.known_for_department for p in pending.values() if p.known_for_department)
        department_ids = {name: db.upsert_department(conn, name) for name in sorted(departments)}

        job_ids = {
            (department, job): db.upsert_job(conn, department_ids[department], job)
            for department, job in sorted({
                (c.department, c.job) for c in movie.crew if c.department and c.job
            })
        }

        provider_ids = {}
        for offer in sorted(movie.watch_providers, key=lambda o: (o.provider_tmdb_id, o.region)):
            key = (offer.provider_tmdb_id, offer.region)
            if key not in provider_ids:
                provider_ids[key] = db.upsert_watch_provider(conn, offer)

        return {
            "languages": language_ids,
            "genres": genre_ids,
            "production_type": production_type_id,
            "countries": country_ids,
            "companies": company_ids,
            "departments": department_ids,
            "jobs": job_ids,
            "providers": provider_ids,
        }

    def _insert_lookup_links(self, conn: Connection, movie_id: int, movie: MovieData, lookups: dict) -> None:
        db = self.db
        db.insert_rows(conn, schema.movie_genre, [
            {"movie_id": movie_id, "genre_id": genre_id}
            for genre_id in dict.fromkeys(lookups["genres"][g.tmdb_id] for g in movie.genres)
        ])
        db.insert_rows(conn, schema.movie_spoken_language, [
            {"movie_id": movie_id, "language_id": language_id}
            for language_id in dict.fromkeys(
                lookups["languages"][lang.iso_639_1] for lang in movie.spoken_languages
            )
        ])
        db.insert_rows(conn, schema.movie_country, [
            {
                "movie_id": movie_id,
                "country_id": country_id,
                "country_type_id": lookups["production_type"],
            }
            for country_id in dict.fromkeys(
                lookups["countries"][c.iso_3166_1] for c in movie.production_countries
            )
        ])
        db.insert_rows(conn, schema.movie_production_company, [
            {"movie_id": movie_id, "company_id": company_id}
            for company_id in dict.fromkeys(
                lookups["companies"][c.tmdb_id] for c in movie.production_companies
            )
        ])

    def _insert_titles(self, conn: Connection, movie_id: int, movie: MovieData, lookups: dict) -> None:
        country_ids = lookups["countries"]
        rows = _unique([
            (country_ids[t.iso_3166_1], t.title, t.type) for t in movie.alternative_titles
        ])
        self.db.insert_rows(conn, schema.movie_title, [
            {"movie_id": movie_id, "country_id": country_id, "title": title, "type": title_type}
            for country_id, title, title_type in rows
        ])

    def _insert_watch_providers(self, conn: Connection, movie_id: int, movie: MovieData, lookups: dict) -> None:
        """One link per (provider, region, offer type)."""
        rows: Dict[tuple, dict] = {}
        for offer in movie.watch_providers:
            provider_id = lookups["providers"][(offer.provider_tmdb_id, offer.region)]
            rows.setdefault((provider_id, offer.offer_type), {
                "movie_id": movie_id,
                "provider_id": provider_id,
                "type": offer.offer_type,
                "link": offer.link,
            })
        self.db.insert_rows(conn, schema.movie_watch_provider, list(rows.values()))

    def _insert_credits(
        self,
        conn: Connection,
        movie_id: int,
        movie: MovieData,
        lookups: dict,
        pending: Dict[int, PersonData],
        local_people: Dict[int, int],
    ) -> None:
        """Resolve people in TMDB id order, then write cast and crew rows."""
        first_credit = {}
        for credit in movie.cast + movie.crew:
            first_credit.setdefault(credit.person_tmdb_id, credit)
        for tmdb_id in sorted(first_credit):
            self.people.resolve(
                conn, first_credit[tmdb_id], local_people, pending, lookups["departments"]
            )

        cast_rows = _unique([
            (local_people[c.person_tmdb_id], c.character_name, c.credit_order)
            for c in movie.cast
        ])
        self.db.insert_rows(conn, schema.movie_cast, [
            {
                "movie_id": movie_id,
                "person_id": person_id,
                "character_name": character_name,
                "cast_order": cast_order,
            }
            for person_id, character_name, cast_order in cast_rows
        ])

        crew_rows = _unique([
            (local_people[c.person_tmdb_id], lookups["jobs"][(c.department, c.job)])
            for c in movie.crew
            if c.department and c.job
        ])
        self.db.insert_rows(conn, schema.movie_crew, [
            {"movie_id": movie_id, "person_id": person_id, "job_id": job_id}
            for person_id, job_id in crew_rows
        ])
