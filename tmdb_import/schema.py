"""SQLAlchemy Core table definitions for the movie catalog.

These Table objects drive the upsert statements and ``create_all_tables``.
They are not an ORM: no object mapping, no sessions, just typed column
references. Every lookup carries a generated ``id`` plus the unique key the
importer upserts on.
"""

from sqlalchemy import (
    BigInteger,
    Boolean,
    Column,
    Date,
    Float,
    ForeignKey,
    Integer,
    MetaData,
    String,
    Table,
    Text,
    UniqueConstraint,
)

metadata = MetaData()

# ============================================================================
# Lookup tables
# ============================================================================

genre = Table(
    "genre",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("tmdb_id", Integer, nullable=False, unique=True),
    Column("name", String(255)),
)

language = Table(
    "language",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("iso_639_1", String(16), nullable=False, unique=True),
    Column("english_name", String(255)),
    Column("name", String(255)),
)

country = Table(
    "country",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("iso_3166_1", String(16), nullable=False, unique=True),
    Column("name", String(255)),
)

country_type = Table(
    "country_type",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("code", String(64), nullable=False, unique=True),
    Column("description", String(255)),
)

production_company = Table(
    "production_company",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("tmdb_id", Integer, nullable=False, unique=True),
    Column("name", String(255)),
    Column("origin_country", String(16)),
)

department = Table(
    "department",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("name", String(255), nullable=False, unique=True),
)

job = Table(
    "job",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("department_id", Integer, ForeignKey("department.id"), nullable=False),
    Column("name", String(255), nullable=False),
    UniqueConstraint("department_id", "name", name="uq_job_department_name"),
)

watch_provider = Table(
    "watch_provider",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("tmdb_id", Integer, nullable=False),
    Column("region", String(16), nullable=False),
    Column("name", String(255)),
    Column("logo_path", String(255)),
    Column("display_priority", Integer),
    UniqueConstraint("tmdb_id", "region", name="uq_watch_provider_region"),
)

person = Table(
    "person",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("tmdb_id", Integer, nullable=False, unique=True),
    Column("imdb_id", String(32)),
    Column("name", String(255), nullable=False),
    Column("gender", Integer),
    Column("known_for_department", Integer, ForeignKey("department.id")),
    Column("biography", Text),
    Column("birthday", Date),
    Column("deathday", Date),
    Column("place_of_birth", String(255)),
    Column("homepage", String(500)),
    Column("adult", Boolean),
    Column("popularity", Float),
)

person_alias = Table(
    "person_alias",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("person_id", Integer, ForeignKey("person.id"), nullable=False),
    Column("alias", String(500), nullable=False),
)

# ============================================================================
# Primary record
# ============================================================================

movie = Table(
    "movie",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("tmdb_id", Integer, nullable=False, unique=True),
    Column("imdb_id", String(32)),
    Column("title", String(500)),
    Column("original_title", String(500)),
    Column("original_language", String(16)),
    Column("adult", Boolean),
    Column("video", Boolean),
    Column("status", String(64)),
    Column("release_date", Date),
    Column("budget", BigInteger),
    Column("revenue", BigInteger),
    Column("runtime", Integer),
    Column("homepage", String(500)),
    Column("overview", Text),
    Column("popularity", Float),
    Column("vote_average", Float),
    Column("vote_count", Integer),
    Column("tagline", String(500)),
)

# ============================================================================
# Relations owned by a movie (fully replaced on every import)
# ============================================================================

movie_genre = Table(
    "movie_genre",
    metadata,
    Column("movie_id", Integer, ForeignKey("movie.id"), primary_key=True),
    Column("genre_id", Integer, ForeignKey("genre.id"), primary_key=True),
)

movie_spoken_language = Table(
    "movie_spoken_language",
    metadata,
    Column("movie_id", Integer, ForeignKey("movie.id"), primary_key=True),
    Column("language_id", Integer, ForeignKey("language.id"), primary_key=True),
)

movie_country = Table(
    "movie_country",
    metadata,
    Column("movie_id", Integer, ForeignKey("movie.id"), primary_key=True),
    Column("country_id", Integer, ForeignKey("country.id"), primary_key=True),
    Column("country_type_id", Integer, ForeignKey("country_type.id"), primary_key=True),
)

movie_production_company = Table(
    "movie_production_company",
    metadata,
    Column("movie_id", Integer, ForeignKey("movie.id"), primary_key=True),
    Column("company_id", Integer, ForeignKey("production_company.id"), primary_key=True),
)

movie_title = Table(
    "movie_title",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("movie_id", Integer, ForeignKey("movie.id"), nullable=False),
    Column("country_id", Integer, ForeignKey("country.id"), nullable=False),
    Column("title", String(500)),
    Column("type", String(255)),
)

movie_cast = Table(
    "movie_cast",
    metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("movie_id", Integer, ForeignKey("movie.id"), nullable=False),
    Column("person_id", Integer, ForeignKey("person.id"), nullable=False),
    Column("character_name", String(500)),
    Column("cast_order", Integer),
)

movie_crew = Table(
    "movie_crew",
    metadata,
    Column("movie_id", Integer, ForeignKey("movie.id"), primary_key=True),
    Column("person_id", Integer, ForeignKey("person.id"), primary_key=True),
    Column("job_id", Integer, ForeignKey("job.id"), primary_key=True),
)

movie_watch_provider = Table(
    "movie_watch_provider",
    metadata,
    Column("movie_id", Integer, ForeignKey("movie.id"), primary_key=True),
    Column("provider_id", Integer, ForeignKey("watch_provider.id"), primary_key=True),
    Column("type", String(32), primary_key=True),
    Column("link", String(1000)),
)

# Tables cleared and re-inserted for a movie on every import, in delete order
MOVIE_RELATION_TABLES = [
    movie_genre,
    movie_spoken_language,
    movie_country,
    movie_production_company,
    movie_title,
    movie_cast,
    movie_crew,
    movie_watch_provider,
]
