"""
Tests for lenient payload parsing.
"""

from datetime import date

import pytest

from conftest import cast_entry, movie_payload, person_payload, provider
from tmdb_import.models import CreditData, ImportStats, MovieData, PersonData


class TestMovieData:

    def test_parses_core_fields(self):
        movie = MovieData.from_tmdb(movie_payload(550, "Fight Club"))

        assert movie.tmdb_id == 550
        assert movie.title == "Fight Club"
        assert movie.release_date == date(1999, 10, 15)
        assert movie.original_language == "en"
        assert [g.tmdb_id for g in movie.genres] == [18]

    def test_blank_strings_become_none(self):
        movie = MovieData.from_tmdb(movie_payload(550, tagline="   ", homepage=""))

        assert movie.tagline is None
        assert movie.homepage is None

    @pytest.mark.parametrize("value", ["", "1999-13-45", "not a date", None, 1999])
    def test_malformed_dates_become_none(self, value):
        movie = MovieData.from_tmdb(movie_payload(550, release_date=value))

        assert movie.release_date is None

    def test_missing_sub_resources_are_empty(self):
        payload = movie_payload(550)
        for key in ("genres", "credits", "alternative_titles", "watch/providers"):
            del payload[key]

        movie = MovieData.from_tmdb(payload)

        assert movie.genres == []
        assert movie.cast == [] and movie.crew == []
        assert movie.alternative_titles == []
        assert movie.watch_providers == []

    def test_entries_without_keys_are_skipped(self):
        payload = movie_payload(
            550,
            genres=[{"name": "No id"}, {"id": 18, "name": "Drama"}],
            countries=[{"iso_3166_1": " ", "name": "Nowhere"}],
            cast=[{"name": "No id"}, cast_entry(819, "Edward Norton")],
        )

        movie = MovieData.from_tmdb(payload)

        assert [g.tmdb_id for g in movie.genres] == [18]
        assert movie.production_countries == []
        assert [c.person_tmdb_id for c in movie.cast] == [819]

    def test_watch_providers_are_flattened(self):
        payload = movie_payload(550, providers={
            "US": {
                "link": "https://tmdb/watch?locale=US",
                "flatrate": [provider(8, "Netflix")],
                "buy": [provider(2, "Apple TV"), provider(3, "Google Play")],
            },
            "DE": {"ads": [provider(8, "Netflix")]},
        })

        movie = MovieData.from_tmdb(payload)

        offers = {(o.region, o.offer_type, o.provider_tmdb_id) for o in movie.watch_providers}
        assert offers == {
            ("US", "flatrate", 8),
            ("US", "buy", 2),
            ("US", "buy", 3),
            ("DE", "ads", 8),
        }
        assert all(o.link is None for o in movie.watch_providers if o.region == "DE")

    def test_payload_without_id_is_rejected(self):
        payload = movie_payload(550)
        del payload["id"]

        with pytest.raises(ValueError):
            MovieData.from_tmdb(payload)


class TestPersonData:

    def test_detail_wins_over_credit(self):
        credit = CreditData.from_cast(cast_entry(819, "Ed Norton"))
        person = PersonData.from_tmdb(person_payload(819, "Edward Norton"), credit)

        assert person.name == "Edward Norton"
        assert person.birthday == date(1969, 8, 18)
        assert person.also_known_as == ["Edward Norton Alias"]

    def test_credit_fills_gaps_in_detail(self):
        credit = CreditData.from_cast(cast_entry(819, "Edward Norton"))
        detail = person_payload(819, "", gender=None, known_for_department="", popularity=None)

        person = PersonData.from_tmdb(detail, credit)

        assert person.name == "Edward Norton"
        assert person.gender == 2
        assert person.known_for_department == "Acting"
        assert person.popularity == 10.5

    def test_aliases_are_deduplicated(self):
        detail = person_payload(819, "Edward Norton", also_known_as=["Ed", " ", "Ed", "Eddie"])

        assert PersonData.from_tmdb(detail).also_known_as == ["Ed", "Eddie"]

    def test_from_credit_without_name(self):
        credit = CreditData.from_crew({"id": 42, "name": "  ", "department": "Sound", "job": "Mixer"})

        person = PersonData.from_credit(credit)

        assert person.name == "Unknown"
        assert person.also_known_as is None


class TestImportStats:

    def test_summary(self):
        stats = ImportStats(imported=3, failed=1, duration_millis=250)

        assert stats.processed == 4
        assert stats.to_dict() == {"imported": 3, "failed": 1, "duration_millis": 250}
        assert "Imported: 3" in str(stats)
