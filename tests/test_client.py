"""
Tests for the TMDB client: retry policy, 404 handling and pacing updates.

The requests session is replaced with a MagicMock; time is a FakeClock.
"""

from dataclasses import replace
from unittest.mock import MagicMock

import pytest
import requests

from conftest import FakeClock
from tmdb_import.client import TMDBClient
from tmdb_import.exceptions import ConfigurationError, TransientTransportError, TransportError
from tmdb_import.utils import RateLimiter


def make_response(status: int = 200, body=None, headers=None) -> MagicMock:
    response = MagicMock()
    response.status_code = status
    response.ok = status < 400
    response.headers = headers or {}
    response.json.return_value = body if body is not None else {}
    return response


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def session():
    return MagicMock(spec=requests.Session)


@pytest.fixture
def client(config, session, clock):
    limiter = RateLimiter(0.0, clock=clock, sleep=clock.sleep)
    return TMDBClient(config, session=session, rate_limiter=limiter, clock=clock, sleep=clock.sleep)


class TestFetch:

    def test_returns_parsed_body(self, client, session):
        session.get.return_value = make_response(200, {"id": 550, "title": "Fight Club"})

        assert client.fetch("/movie/550") == {"id": 550, "title": "Fight Club"}

    def test_language_is_always_sent(self, client, session, config):
        session.get.return_value = make_response(200, {})

        client.fetch("/person/287", {"page": 2})

        _, kwargs = session.get.call_args
        assert kwargs["params"] == {"language": config.language, "page": 2}

    def test_not_found_is_none(self, client, session):
        session.get.return_value = make_response(404)

        assert client.fetch("/movie/1") is None
        assert session.get.call_count == 1

    def test_transient_status_is_retried(self, client, session, clock):
        session.get.side_effect = [
            make_response(429),
            make_response(503),
            make_response(200, {"ok": True}),
        ]

        assert client.fetch("/movie/550") == {"ok": True}
        assert session.get.call_count == 3
        assert clock.sleeps == pytest.approx([0.5, 0.7])

    def test_backoff_is_capped(self, client, session, clock):
        session.get.side_effect = [make_response(500)] * 8 + [make_response(200, {})]

        client.fetch("/movie/550")

        assert clock.sleeps == pytest.approx([0.5, 0.7, 0.9, 1.1, 1.3, 1.5, 1.5, 1.5])

    def test_deadline_exhaustion_raises_transient_error(self, client, session, clock, config):
        session.get.return_value = make_response(502)
        start = clock.now

        with pytest.raises(TransientTransportError) as exc_info:
            client.fetch("/movie/550")

        assert exc_info.value.status_code == 502
        assert clock.now - start == pytest.approx(config.max_retry_seconds)
        assert session.get.call_count > 1

    def test_io_errors_retry_until_deadline(self, client, session, clock, config):
        session.get.side_effect = requests.exceptions.ConnectionError("connection reset")

        with pytest.raises(TransientTransportError):
            client.fetch("/movie/550")

        assert sum(clock.sleeps) == pytest.approx(config.max_retry_seconds)

    def test_io_error_then_success(self, client, session):
        session.get.side_effect = [
            requests.exceptions.Timeout("read timed out"),
            make_response(200, {"id": 550}),
        ]

        assert client.fetch("/movie/550") == {"id": 550}

    def test_non_transient_status_fails_without_retry(self, client, session):
        session.get.return_value = make_response(401)

        with pytest.raises(TransportError) as exc_info:
            client.fetch("/movie/550")

        assert not isinstance(exc_info.value, TransientTransportError)
        assert exc_info.value.status_code == 401
        assert session.get.call_count == 1

    def test_invalid_json_is_transport_error(self, client, session):
        response = make_response(200)
        response.json.side_effect = ValueError("no json")
        session.get.return_value = response

        with pytest.raises(TransportError):
            client.fetch("/movie/550")


class TestRateLimitHeader:

    def test_header_sets_interval(self, client, session):
        session.get.return_value = make_response(200, {}, {"X-RateLimit-Limit": "40"})

        client.fetch("/movie/550")

        assert client.rate_limiter.interval == pytest.approx(1 / 40)

    @pytest.mark.parametrize("value", ["abc", "", "0", "-3"])
    def test_bad_header_leaves_interval_unchanged(self, client, session, value):
        client.rate_limiter.set_rate(20)
        session.get.return_value = make_response(200, {}, {"X-RateLimit-Limit": value})

        client.fetch("/movie/550")

        assert client.rate_limiter.interval == pytest.approx(1 / 20)

    def test_refresh_reads_configuration_headers(self, client, session, config):
        session.get.return_value = make_response(200, {}, {"X-RateLimit-Limit": "25"})

        client.refresh_rate_limit()

        args, _ = session.get.call_args
        assert args[0] == f"{config.base_url}/configuration"
        assert client.rate_limiter.interval == pytest.approx(1 / 25)

    def test_refresh_failure_resets_to_default(self, client, session):
        client.rate_limiter.set_rate(5)
        session.get.side_effect = requests.exceptions.ConnectionError("down")

        client.refresh_rate_limit()

        assert client.rate_limiter.interval == client.rate_limiter.default_interval
        assert session.get.call_count == 1


class TestEndpoints:

    def test_movie_details_appends_sub_resources(self, client, session, config):
        session.get.return_value = make_response(200, {"id": 550})

        client.fetch_movie_details(550)

        args, kwargs = session.get.call_args
        assert args[0] == f"{config.base_url}/movie/550"
        assert kwargs["params"]["append_to_response"] == "alternative_titles,credits,watch/providers"

    def test_discover_sends_year_filter(self, client, session):
        session.get.return_value = make_response(
            200, {"results": [{"id": 1}, {"id": 2}], "total_pages": 7}
        )

        ids, total_pages = client.discover_movies_by_year(1999, page=3)

        assert ids == [1, 2]
        assert total_pages == 7
        _, kwargs = session.get.call_args
        params = kwargs["params"]
        assert params["sort_by"] == "primary_release_date.asc"
        assert params["primary_release_date.gte"] == "1999-01-01"
        assert params["primary_release_date.lte"] == "1999-12-31"
        assert params["with_release_type"] == "1|2|3|4|5|6|7"
        assert params["page"] == 3

    def test_discover_without_results_is_empty_page(self, client, session):
        session.get.return_value = make_response(200, {"total_pages": 1})

        assert client.discover_movies_by_year(1999) == ([], 1)

    def test_discover_not_found(self, client, session):
        session.get.return_value = make_response(404)

        assert client.discover_movies_by_year(1999, page=2) is None

    def test_genres(self, client, session):
        session.get.return_value = make_response(200, {"genres": [{"id": 18, "name": "Drama"}]})

        assert client.fetch_genres() == [{"id": 18, "name": "Drama"}]


class TestCredentials:

    def test_token_is_required(self, config, session):
        with pytest.raises(ConfigurationError):
            TMDBClient(replace(config, bearer_token=""), session=session)

    def test_session_carries_bearer_header(self, config):
        client = TMDBClient(config)

        assert client.session.headers["Authorization"] == "Bearer test-token"
        assert client.session.headers["accept"] == "application/json"
        client.close()
