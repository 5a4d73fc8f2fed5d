"""
Database manager for the TMDB import pipeline.

Handles all storage operations including:
- Connection management with SQLAlchemy
- Scoped transactions (one per unit of work)
- Insert-or-update by unique key for every lookup table
- Schema provisioning and status counts
"""

from contextlib import contextmanager
from typing import Dict, Iterable, Iterator, List, Optional, Set

from sqlalchemy import and_, create_engine, event, func, inspect, select, text
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.engine import Connection, Engine
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.sql.schema import Table

from . import schema
from .config import Config
from .models import (
    CompanyData,
    CountryData,
    GenreData,
    LanguageData,
    PersonData,
    ProviderOffer,
)
from .utils import setup_logger

# Dialects with INSERT ... ON CONFLICT ... RETURNING
NATIVE_UPSERT_DIALECTS = {
    "postgresql": pg_insert,
    "sqlite": sqlite_insert,
}

PRODUCTION_COUNTRY_CODE = "production"
PRODUCTION_COUNTRY_DESCRIPTION = "Production country"

# Connection execution option read by the SQLite "begin" hook
SQLITE_BEGIN_MODE = "sqlite_begin_mode"


class DatabaseManager:
    """
    Handles all database operations.

    Responsibilities:
    - Connection management with SQLAlchemy
    - Transaction management
    - Lookup upserts (native ON CONFLICT or emulated select-then-write)
    """

    STATUS_TABLES = [
        "movie",
        "person",
        "genre",
        "language",
        "country",
        "production_company",
        "watch_provider",
        "movie_cast",
        "movie_crew",
    ]

    def __init__(self, config: Config, engine: Optional[Engine] = None):
        self.config = config
        self.engine = engine or self._create_engine()
        self.logger = setup_logger("database", config.log_dir)

        dialect = self.engine.dialect.name
        self._sqlite = dialect == "sqlite"
        if config.native_upsert is None:
            self.native_upsert = dialect in NATIVE_UPSERT_DIALECTS
        else:
            self.native_upsert = config.native_upsert and dialect in NATIVE_UPSERT_DIALECTS
        self._insert = NATIVE_UPSERT_DIALECTS.get(dialect)

    def _create_engine(self) -> Engine:
        """Create SQLAlchemy engine with connection pooling."""
        url = self.config.database_url
        if url.startswith("sqlite"):
            engine = create_engine(url, connect_args={"timeout": self.config.sqlite_busy_timeout})
            _configure_sqlite(engine)
            return engine

        return create_engine(
            url,
            pool_size=self.config.pool_size,
            max_overflow=self.config.max_overflow,
            pool_pre_ping=True,
            pool_recycle=3600,
        )

    @contextmanager
    def transaction(self) -> Iterator[Connection]:
        """
        Scope one unit of work.

        Commits when the block exits normally; any exception rolls the
        transaction back and is re-raised. The connection always goes back
        to the pool.

        On SQLite the write lock is taken at BEGIN; plain reads elsewhere
        keep a deferred begin and are not queued behind running units.
        """
        with self.engine.connect() as conn:
            if self._sqlite:
                conn.execution_options(**{SQLITE_BEGIN_MODE: "IMMEDIATE"})
            with conn.begin():
                yield conn

    def dispose(self) -> None:
        self.engine.dispose()

    # ============ GENERIC UPSERT ============

    def upsert(
        self,
        conn: Connection,
        table: Table,
        keys: Dict,
        values: Optional[Dict] = None,
        insert_only: Optional[Dict] = None,
        monotonic: bool = True,
    ) -> int:
        """
        Insert or update a row by its unique key and return its id.

        Args:
            conn: Connection of the current transaction
            table: Target table (must have an ``id`` column)
            keys: Unique-key columns and values
            values: Columns updated on conflict
            insert_only: Columns written only when the row is created
            monotonic: Keep existing values where the new value is NULL

        Returns:
            Internal primary key of the row
        """
        values = values or {}
        insert_only = insert_only or {}
        if self.native_upsert:
            return self._native_upsert(conn, table, keys, values, insert_only, monotonic)
        return self._emulated_upsert(conn, table, keys, values, insert_only, monotonic)

    def _native_upsert(self, conn, table, keys, values, insert_only, monotonic) -> int:
        stmt = self._insert(table).values(**keys, **values, **insert_only)
        if values:
            if monotonic:
                changes = {
                    col: func.coalesce(stmt.excluded[col], table.c[col]) for col in values
                }
            else:
                changes = {col: stmt.excluded[col] for col in values}
            stmt = stmt.on_conflict_do_update(index_elements=list(keys), set_=changes)
        else:
            stmt = stmt.on_conflict_do_nothing(index_elements=list(keys))

        row = conn.execute(stmt.returning(table.c.id)).first()
        if row is not None:
            return row[0]
        # DO NOTHING returns no row for an existing key
        return self._select_id(conn, table, keys)

    def _emulated_upsert(self, conn, table, keys, values, insert_only, monotonic) -> int:
        existing = self._select_id(conn, table, keys)
        if existing is None:
            try:
                with conn.begin_nested():
                    result = conn.execute(
                        table.insert().values(**keys, **values, **insert_only)
                    )
                return result.inserted_primary_key[0]
            except IntegrityError:
                # Another transaction created the row first
                existing = self._select_id(conn, table, keys, for_update=True)
                if existing is None:
                    raise

        changes = {k: v for k, v in values.items() if v is not None} if monotonic else values
        if changes:
            conn.execute(table.update().where(table.c.id == existing).values(**changes))
        return existing

    def _select_id(self, conn, table, keys, for_update: bool = False) -> Optional[int]:
        query = select(table.c.id).where(and_(*[table.c[k] == v for k, v in keys.items()]))
        if for_update:
            query = query.with_for_update()
        row = conn.execute(query).first()
        return row[0] if row else None

    def find_id_by_tmdb(self, conn: Connection, table: Table, tmdb_id: int) -> Optional[int]:
        """Internal id of the row with the given TMDB id, if stored."""
        return self._select_id(conn, table, {"tmdb_id": tmdb_id})

    def stored_tmdb_ids(self, table: Table, tmdb_ids: Iterable[int]) -> Set[int]:
        """TMDB ids among ``tmdb_ids`` that already have a row (read outside any unit)."""
        tmdb_ids = list(tmdb_ids)
        if not tmdb_ids:
            return set()
        with self.engine.connect() as conn:
            rows = conn.execute(select(table.c.tmdb_id).where(table.c.tmdb_id.in_(tmdb_ids)))
            return {row[0] for row in rows}

    # ============ LOOKUP UPSERTS ============

    def upsert_genre(self, conn: Connection, genre: GenreData) -> int:
        return self.upsert(conn, schema.genre, {"tmdb_id": genre.tmdb_id}, {"name": genre.name})

    def upsert_language(self, conn: Connection, language: LanguageData) -> int:
        return self.upsert(
            conn,
            schema.language,
            {"iso_639_1": language.iso_639_1},
            {"english_name": language.english_name, "name": language.name},
        )

    def upsert_country(self, conn: Connection, country: CountryData) -> int:
        """Upsert a country; without a name it is only ensured to exist."""
        if country.name is None:
            return self.ensure_country(conn, country.iso_3166_1)
        return self.upsert(
            conn, schema.country, {"iso_3166_1": country.iso_3166_1}, {"name": country.name}
        )

    def ensure_country(self, conn: Connection, iso_3166_1: str) -> int:
        """
        Make sure a country row exists for a bare region code.

        The code becomes the name only when the row is created, so a real
        name stored earlier is never replaced by the code.
        """
        return self.upsert(
            conn, schema.country, {"iso_3166_1": iso_3166_1}, insert_only={"name": iso_3166_1}
        )

    def upsert_country_type(self, conn: Connection, code: str, description: Optional[str]) -> int:
        return self.upsert(conn, schema.country_type, {"code": code}, {"description": description})

    def upsert_production_company(
        self, conn: Connection, company: CompanyData, ensure_origin: bool = True
    ) -> int:
        """Upsert a company; unless told otherwise its origin country is ensured first."""
        if ensure_origin and company.origin_country:
            self.ensure_country(conn, company.origin_country)
        return self.upsert(
            conn,
            schema.production_company,
            {"tmdb_id": company.tmdb_id},
            {"name": company.name, "origin_country": company.origin_country},
        )

    def upsert_department(self, conn: Connection, name: str) -> int:
        return self.upsert(conn, schema.department, {"name": name})

    def upsert_job(self, conn: Connection, department_id: int, name: str) -> int:
        return self.upsert(conn, schema.job, {"department_id": department_id, "name": name})

    def upsert_watch_provider(self, conn: Connection, offer: ProviderOffer) -> int:
        return self.upsert(
            conn,
            schema.watch_provider,
            {"tmdb_id": offer.provider_tmdb_id, "region": offer.region},
            {
                "name": offer.name,
                "logo_path": offer.logo_path,
                "display_priority": offer.display_priority,
            },
        )

    def upsert_person(
        self,
        conn: Connection,
        person: PersonData,
        department_ids: Optional[Dict[str, int]] = None,
    ) -> int:
        """
        Upsert a person and, when the detail carried them, replace its aliases.

        Args:
            conn: Connection of the current transaction
            person: Parsed person
            department_ids: Departments the caller already upserted, by name

        Returns:
            Internal person id
        """
        values = person.to_dict()
        department = person.known_for_department
        if department is None:
            values["known_for_department"] = None
        elif department_ids and department in department_ids:
            values["known_for_department"] = department_ids[department]
        else:
            values["known_for_department"] = self.upsert_department(conn, department)
        person_id = self.upsert(conn, schema.person, {"tmdb_id": person.tmdb_id}, values)
        if person.also_known_as is not None:
            self.replace_person_aliases(conn, person_id, person.also_known_as)
        return person_id

    def replace_person_aliases(self, conn: Connection, person_id: int, aliases: List[str]) -> None:
        conn.execute(
            text("DELETE FROM person_alias WHERE person_id = :person_id"),
            {"person_id": person_id},
        )
        if aliases:
            conn.execute(
                schema.person_alias.insert(),
                [{"person_id": person_id, "alias": alias} for alias in dict.fromkeys(aliases)],
            )

    # ============ RELATIONS ============

    def clear_movie_relations(self, conn: Connection, movie_id: int) -> None:
        """Delete every relation row owned by a movie."""
        for table in schema.MOVIE_RELATION_TABLES:
            conn.execute(
                text(f"DELETE FROM {table.name} WHERE movie_id = :movie_id"),
                {"movie_id": movie_id},
            )

    def insert_rows(self, conn: Connection, table: Table, rows: List[dict]) -> int:
        """Insert relation rows with one executemany; returns the row count."""
        if rows:
            conn.execute(table.insert(), rows)
        return len(rows)

    # ============ SCHEMA / STATUS ============

    def create_all_tables(self) -> None:
        """Create every table that does not exist yet."""
        schema.metadata.create_all(self.engine)
        self.logger.info("Schema provisioned")

    def table_exists(self, table_name: str) -> bool:
        """Check if a table exists in the database."""
        return inspect(self.engine).has_table(table_name)

    def count_rows(self, table_name: str, movie_id: Optional[int] = None) -> int:
        """Row count of a table, optionally restricted to one movie."""
        query = f"SELECT COUNT(*) FROM {table_name}"
        params = {}
        if movie_id is not None:
            query += " WHERE movie_id = :movie_id"
            params["movie_id"] = movie_id
        with self.engine.connect() as conn:
            return conn.execute(text(query), params).scalar_one()

    def get_status(self) -> dict:
        """Row counts per table (None for missing tables)."""
        status = {}
        for table_name in self.STATUS_TABLES:
            status[table_name] = self.count_rows(table_name) if self.table_exists(table_name) else None
        return status

    def test_connection(self) -> bool:
        """Test database connection."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
            return True
        except SQLAlchemyError as e:
            self.logger.error(f"Database connection failed: {e}")
            return False


def _configure_sqlite(engine: Engine) -> None:
    """
    Take over transaction control from pysqlite.

    Every BEGIN is emitted by the "begin" hook: units of work ask for
    BEGIN IMMEDIATE through the connection's execution options so that
    writers queue on the busy timeout instead of failing on a lock upgrade,
    while reads keep a deferred BEGIN. WAL lets those reads run next to an
    open writer.
    """

    @event.listens_for(engine, "connect")
    def _on_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.close()

    @event.listens_for(engine, "begin")
    def _begin(conn):
        mode = conn.get_execution_options().get(SQLITE_BEGIN_MODE, "DEFERRED")
        conn.exec_driver_sql(f"BEGIN {mode}")
