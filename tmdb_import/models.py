"""
Data models for the TMDB import pipeline.

Provides dataclasses for type-safe data handling throughout the pipeline.
Parsing is lenient: absent or blank values become None and malformed
dates are dropped instead of failing the whole movie.
"""

from dataclasses import dataclass, field
from datetime import date, datetime
from typing import Any, List, Optional

from .utils import blank_to_none, normalize_iso

# Offer categories of /movie/{id}/watch/providers, in import order
WATCH_PROVIDER_TYPES = ("flatrate", "buy", "rent", "ads", "free")


def parse_date(value: Any) -> Optional[date]:
    """Parse a TMDB ``YYYY-MM-DD`` date; anything else yields None."""
    value = blank_to_none(value)
    if value is None:
        return None
    try:
        return datetime.strptime(value.strip(), "%Y-%m-%d").date()
    except ValueError:
        return None


def parse_int(value: Any) -> Optional[int]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def parse_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or value is None:
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


def parse_bool(value: Any) -> Optional[bool]:
    return value if isinstance(value, bool) else None


def _objects(value: Any) -> List[dict]:
    """Keep only the JSON objects of an array (None for a missing array)."""
    if not isinstance(value, list):
        return []
    return [v for v in value if isinstance(v, dict)]


@dataclass
class GenreData:
    tmdb_id: int
    name: Optional[str] = None

    @classmethod
    def from_tmdb(cls, data: dict) -> Optional["GenreData"]:
        tmdb_id = parse_int(data.get("id"))
        if tmdb_id is None:
            return None
        return cls(tmdb_id=tmdb_id, name=blank_to_none(data.get("name")))


@dataclass
class LanguageData:
    iso_639_1: str
    english_name: Optional[str] = None
    name: Optional[str] = None

    @classmethod
    def from_tmdb(cls, data: dict) -> Optional["LanguageData"]:
        iso = normalize_iso(data.get("iso_639_1"))
        if iso is None:
            return None
        return cls(
            iso_639_1=iso,
            english_name=blank_to_none(data.get("english_name")),
            name=blank_to_none(data.get("name")),
        )


@dataclass
class CountryData:
    iso_3166_1: str
    name: Optional[str] = None

    @classmethod
    def from_tmdb(cls, data: dict) -> Optional["CountryData"]:
        iso = normalize_iso(data.get("iso_3166_1"))
        if iso is None:
            return None
        return cls(iso_3166_1=iso, name=blank_to_none(data.get("name")))


@dataclass
class CompanyData:
    tmdb_id: int
    name: Optional[str] = None
    origin_country: Optional[str] = None

    @classmethod
    def from_tmdb(cls, data: dict) -> Optional["CompanyData"]:
        tmdb_id = parse_int(data.get("id"))
        if tmdb_id is None:
            return None
        return cls(
            tmdb_id=tmdb_id,
            name=blank_to_none(data.get("name")),
            origin_country=normalize_iso(data.get("origin_country")),
        )


@dataclass(frozen=True)
class TitleData:
    """Alternative title of a movie in one region."""

    iso_3166_1: str
    title: Optional[str] = None
    type: Optional[str] = None

    @classmethod
    def from_tmdb(cls, data: dict) -> Optional["TitleData"]:
        iso = normalize_iso(data.get("iso_3166_1"))
        if iso is None:
            return None
        return cls(
            iso_3166_1=iso,
            title=blank_to_none(data.get("title")),
            type=blank_to_none(data.get("type")),
        )


@dataclass
class ProviderOffer:
    """One provider offering a movie in one region under one offer type."""

    region: str
    offer_type: str
    provider_tmdb_id: int
    name: Optional[str] = None
    logo_path: Optional[str] = None
    display_priority: Optional[int] = None
    link: Optional[str] = None


@dataclass
class CreditData:
    """Credit data (cast or crew member for a movie)."""

    person_tmdb_id: int
    person_name: Optional[str]
    credit_type: str  # 'cast' or 'crew'
    character_name: Optional[str] = None  # For cast
    credit_order: Optional[int] = None  # For cast ordering
    department: Optional[str] = None  # For crew
    job: Optional[str] = None  # For crew (e.g., 'Director')

    # Fallback person fields when the person detail is unavailable
    gender: Optional[int] = None
    known_for_department: Optional[str] = None
    adult: Optional[bool] = None
    popularity: Optional[float] = None

    @classmethod
    def from_cast(cls, data: dict) -> Optional["CreditData"]:
        """Create CreditData from TMDB cast entry."""
        person_id = parse_int(data.get("id"))
        if person_id is None:
            return None
        return cls(
            person_tmdb_id=person_id,
            person_name=blank_to_none(data.get("name")),
            credit_type="cast",
            character_name=blank_to_none(data.get("character")),
            credit_order=parse_int(data.get("order")),
            gender=parse_int(data.get("gender")),
            known_for_department=blank_to_none(data.get("known_for_department")),
            adult=parse_bool(data.get("adult")),
            popularity=parse_float(data.get("popularity")),
        )

    @classmethod
    def from_crew(cls, data: dict) -> Optional["CreditData"]:
        """Create CreditData from TMDB crew entry."""
        person_id = parse_int(data.get("id"))
        if person_id is None:
            return None
        return cls(
            person_tmdb_id=person_id,
            person_name=blank_to_none(data.get("name")),
            credit_type="crew",
            department=blank_to_none(data.get("department")),
            job=blank_to_none(data.get("job")),
            gender=parse_int(data.get("gender")),
            known_for_department=blank_to_none(data.get("known_for_department")),
            adult=parse_bool(data.get("adult")),
            popularity=parse_float(data.get("popularity")),
        )


@dataclass
class PersonData:
    """Person data from TMDB (actor, director, etc.)."""

    tmdb_id: int
    name: str = "Unknown"
    imdb_id: Optional[str] = None
    gender: Optional[int] = None  # 0=unknown, 1=female, 2=male, 3=non-binary
    known_for_department: Optional[str] = None
    biography: Optional[str] = None
    birthday: Optional[date] = None
    deathday: Optional[date] = None
    place_of_birth: Optional[str] = None
    homepage: Optional[str] = None
    adult: Optional[bool] = None
    popularity: Optional[float] = None
    also_known_as: Optional[List[str]] = None  # None = no detail, keep stored aliases

    @classmethod
    def from_tmdb(cls, data: dict, credit: Optional[CreditData] = None) -> "PersonData":
        """
        Create PersonData from a /person/{id} response.

        Fields missing from the detail fall back to the credit entry.
        """
        aliases = []
        for alias in data.get("also_known_as") or []:
            alias = blank_to_none(alias)
            if alias is not None and alias not in aliases:
                aliases.append(alias)

        name = blank_to_none(data.get("name")) or (credit.person_name if credit else None)
        gender = parse_int(data.get("gender"))
        known_for = blank_to_none(data.get("known_for_department"))
        adult = parse_bool(data.get("adult"))
        popularity = parse_float(data.get("popularity"))
        if credit is not None:
            gender = gender if gender is not None else credit.gender
            known_for = known_for or credit.known_for_department
            adult = adult if adult is not None else credit.adult
            popularity = popularity if popularity is not None else credit.popularity

        return cls(
            tmdb_id=parse_int(data.get("id")) or (credit.person_tmdb_id if credit else 0),
            name=name or "Unknown",
            imdb_id=blank_to_none(data.get("imdb_id")),
            gender=gender,
            known_for_department=known_for,
            biography=blank_to_none(data.get("biography")),
            birthday=parse_date(data.get("birthday")),
            deathday=parse_date(data.get("deathday")),
            place_of_birth=blank_to_none(data.get("place_of_birth")),
            homepage=blank_to_none(data.get("homepage")),
            adult=adult,
            popularity=popularity,
            also_known_as=aliases,
        )

    @classmethod
    def from_credit(cls, credit: CreditData) -> "PersonData":
        """Minimal person built from a cast/crew entry when no detail exists."""
        return cls(
            tmdb_id=credit.person_tmdb_id,
            name=credit.person_name or "Unknown",
            gender=credit.gender,
            known_for_department=credit.known_for_department,
            adult=credit.adult,
            popularity=credit.popularity,
        )

    def to_dict(self) -> dict:
        """Column values for the person table (known_for_department resolved separately)."""
        return {
            "imdb_id": self.imdb_id,
            "name": self.name,
            "gender": self.gender,
            "biography": self.biography,
            "birthday": self.birthday,
            "deathday": self.deathday,
            "place_of_birth": self.place_of_birth,
            "homepage": self.homepage,
            "adult": self.adult,
            "popularity": self.popularity,
        }


@dataclass
class MovieData:
    """Complete movie data from TMDB, including appended sub-resources."""

    tmdb_id: int
    title: Optional[str] = None
    imdb_id: Optional[str] = None
    original_title: Optional[str] = None
    original_language: Optional[str] = None
    adult: bool = False
    video: bool = False
    status: Optional[str] = None
    release_date: Optional[date] = None
    budget: Optional[int] = None
    revenue: Optional[int] = None
    runtime: Optional[int] = None
    homepage: Optional[str] = None
    overview: Optional[str] = None
    popularity: Optional[float] = None
    vote_average: Optional[float] = None
    vote_count: Optional[int] = None
    tagline: Optional[str] = None

    # Related data
    genres: List[GenreData] = field(default_factory=list)
    spoken_languages: List[LanguageData] = field(default_factory=list)
    production_countries: List[CountryData] = field(default_factory=list)
    production_companies: List[CompanyData] = field(default_factory=list)
    alternative_titles: List[TitleData] = field(default_factory=list)
    watch_providers: List[ProviderOffer] = field(default_factory=list)
    cast: List[CreditData] = field(default_factory=list)
    crew: List[CreditData] = field(default_factory=list)

    def to_dict(self) -> dict:
        """Convert to dictionary for the movie table."""
        return {
            "tmdb_id": self.tmdb_id,
            "imdb_id": self.imdb_id,
            "title": self.title,
            "original_title": self.original_title,
            "original_language": self.original_language,
            "adult": self.adult,
            "video": self.video,
            "status": self.status,
            "release_date": self.release_date,
            "budget": self.budget,
            "revenue": self.revenue,
            "runtime": self.runtime,
            "homepage": self.homepage,
            "overview": self.overview,
            "popularity": self.popularity,
            "vote_average": self.vote_average,
            "vote_count": self.vote_count,
            "tagline": self.tagline,
        }

    @classmethod
    def from_tmdb(cls, data: dict) -> "MovieData":
        """
        Create MovieData from a /movie/{id} response.

        Expects ``alternative_titles``, ``credits`` and ``watch/providers``
        to be appended; each may be absent.

        Raises:
            ValueError: If the payload carries no usable movie id
        """
        tmdb_id = parse_int(data.get("id"))
        if tmdb_id is None:
            raise ValueError("TMDB movie payload has no id")

        genres = [g for g in map(GenreData.from_tmdb, _objects(data.get("genres"))) if g]
        languages = [
            lang for lang in map(LanguageData.from_tmdb, _objects(data.get("spoken_languages"))) if lang
        ]
        countries = [
            c for c in map(CountryData.from_tmdb, _objects(data.get("production_countries"))) if c
        ]
        companies = [
            c for c in map(CompanyData.from_tmdb, _objects(data.get("production_companies"))) if c
        ]

        alternative_titles = data.get("alternative_titles") or {}
        titles = [
            t for t in map(TitleData.from_tmdb, _objects(alternative_titles.get("titles"))) if t
        ] if isinstance(alternative_titles, dict) else []

        credits = data.get("credits") or {}
        if not isinstance(credits, dict):
            credits = {}
        cast = [c for c in map(CreditData.from_cast, _objects(credits.get("cast"))) if c]
        crew = [c for c in map(CreditData.from_crew, _objects(credits.get("crew"))) if c]

        return cls(
            tmdb_id=tmdb_id,
            title=blank_to_none(data.get("title")),
            imdb_id=blank_to_none(data.get("imdb_id")),
            original_title=blank_to_none(data.get("original_title")),
            original_language=normalize_iso(data.get("original_language")),
            adult=bool(data.get("adult", False)),
            video=bool(data.get("video", False)),
            status=blank_to_none(data.get("status")),
            release_date=parse_date(data.get("release_date")),
            budget=parse_int(data.get("budget")),
            revenue=parse_int(data.get("revenue")),
            runtime=parse_int(data.get("runtime")),
            homepage=blank_to_none(data.get("homepage")),
            overview=blank_to_none(data.get("overview")),
            popularity=parse_float(data.get("popularity")),
            vote_average=parse_float(data.get("vote_average")),
            vote_count=parse_int(data.get("vote_count")),
            tagline=blank_to_none(data.get("tagline")),
            genres=genres,
            spoken_languages=languages,
            production_countries=countries,
            production_companies=companies,
            alternative_titles=titles,
            watch_providers=_parse_watch_providers(data.get("watch/providers")),
            cast=cast,
            crew=crew,
        )


def _parse_watch_providers(section: Any) -> List[ProviderOffer]:
    """Flatten ``{"results": {region: {type: [provider, ...], "link": ...}}}``."""
    if not isinstance(section, dict):
        return []
    results = section.get("results")
    if not isinstance(results, dict):
        return []

    offers = []
    for region_code, region in results.items():
        region_iso = normalize_iso(region_code)
        if region_iso is None or not isinstance(region, dict):
            continue
        link = blank_to_none(region.get("link"))
        for offer_type in WATCH_PROVIDER_TYPES:
            for provider in _objects(region.get(offer_type)):
                provider_id = parse_int(provider.get("provider_id"))
                if provider_id is None:
                    continue
                offers.append(ProviderOffer(
                    region=region_iso,
                    offer_type=offer_type,
                    provider_tmdb_id=provider_id,
                    name=blank_to_none(provider.get("provider_name")),
                    logo_path=blank_to_none(provider.get("logo_path")),
                    display_priority=parse_int(provider.get("display_priority")),
                    link=link,
                ))
    return offers


@dataclass
class ImportStats:
    """Statistics for one import run."""

    imported: int = 0
    failed: int = 0
    duration_millis: int = 0

    @property
    def processed(self) -> int:
        return self.imported + self.failed

    def to_dict(self) -> dict:
        """Convert to dictionary."""
        return {
            "imported": self.imported,
            "failed": self.failed,
            "duration_millis": self.duration_millis,
        }

    def __str__(self) -> str:
        """Human-readable summary."""
        return (
            f"Imported: {self.imported}, Failed: {self.failed}, "
            f"Duration: {self.duration_millis} ms"
        )
