"""
TMDB API client for the import pipeline.

Handles all TMDB API interactions including:
- Request pacing shared by every worker (RateLimiter)
- Adapting the pacing from X-RateLimit-Limit response headers
- Retrying transient failures until a per-call deadline
"""

import time
from typing import Callable, List, Optional, Tuple

import requests
from requests.adapters import HTTPAdapter

from .config import Config
from .exceptions import ConfigurationError, TransientTransportError, TransportError
from .utils import RateLimiter, setup_logger

TRANSIENT_STATUS_CODES = frozenset({429, 500, 502, 503, 504})
RATE_LIMIT_HEADER = "X-RateLimit-Limit"

# Every release type (premiere, theatrical, digital, physical, TV)
ALL_RELEASE_TYPES = "1|2|3|4|5|6|7"
MOVIE_APPENDS = "alternative_titles,credits,watch/providers"


class TMDBClient:
    """
    Handles all TMDB API interactions.

    Responsibilities:
    - Pacing: one shared RateLimiter gates the issue of every request
    - Retry: 429/5xx and I/O failures are retried until the deadline
    - Endpoint helpers for movies, people, genres and discovery
    """

    def __init__(
        self,
        config: Config,
        session: Optional[requests.Session] = None,
        rate_limiter: Optional[RateLimiter] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        if not config.bearer_token:
            raise ConfigurationError("TMDB bearer token is not set")
        self.config = config
        self.session = session or self._create_session()
        self.rate_limiter = rate_limiter or RateLimiter(config.default_interval)
        self.logger = setup_logger("tmdb_client", config.log_dir)
        self._clock = clock
        self._sleep = sleep

    def _create_session(self) -> requests.Session:
        """Create requests session sized for the worker pool."""
        session = requests.Session()

        # Retries are handled by fetch() against a deadline, not by urllib3
        pool_size = max(self.config.max_concurrency, 10)
        adapter = HTTPAdapter(pool_connections=pool_size, pool_maxsize=pool_size, max_retries=0)
        session.mount("https://", adapter)
        session.mount("http://", adapter)

        session.headers.update(self.config.get_headers())
        return session

    # ============ CORE REQUEST ============

    def fetch(self, endpoint: str, params: Optional[dict] = None) -> Optional[dict]:
        """
        Make a paced API request, retrying transient failures.

        Args:
            endpoint: API endpoint (e.g., '/movie/123')
            params: Query parameters (``language`` is always added)

        Returns:
            Parsed JSON body, or None when TMDB answers 404

        Raises:
            TransientTransportError: 429/5xx/I-O failures outlived the deadline
            TransportError: Any other unsuccessful response
        """
        url = f"{self.config.base_url}{endpoint}"
        query = {"language": self.config.language}
        query.update(params or {})

        deadline = self._clock() + self.config.max_retry_seconds
        attempt = 0

        while True:
            self.rate_limiter.acquire()

            try:
                response = self.session.get(url, params=query, timeout=self.config.request_timeout)
            except requests.exceptions.RequestException as e:
                if self._clock() >= deadline:
                    raise TransientTransportError(
                        f"TMDB request failed after waiting for a response: {e}", url=url
                    ) from e
                self.logger.warning(f"Request error for {endpoint} (attempt {attempt + 1}): {e}")
                self._sleep_for_retry(attempt, deadline)
                attempt += 1
                continue

            self._update_rate_limit(response)
            status = response.status_code

            if status == 404:
                return None

            if status in TRANSIENT_STATUS_CODES:
                if self._clock() < deadline:
                    self.logger.warning(
                        f"Transient status {status} for {endpoint}, retrying (attempt {attempt + 1})"
                    )
                    self._sleep_for_retry(attempt, deadline)
                    attempt += 1
                    continue
                raise TransientTransportError(
                    f"HTTP {status} for URL {url} after retrying", status_code=status, url=url
                )

            if not response.ok:
                raise TransportError(f"HTTP {status} for URL {url}", status_code=status, url=url)

            try:
                return response.json()
            except ValueError as e:
                raise TransportError(f"Invalid JSON from {url}", status_code=status, url=url) from e

    def _sleep_for_retry(self, attempt: int, deadline: float) -> None:
        """Back off 0.5s plus 0.2s per attempt (capped), never past the deadline."""
        remaining = deadline - self._clock()
        if remaining <= 0:
            return
        self._sleep(min(remaining, 0.5 + min(attempt, 5) * 0.2))

    def _update_rate_limit(self, response: requests.Response) -> None:
        """Adopt the per-second limit reported by TMDB, if any."""
        header = response.headers.get(RATE_LIMIT_HEADER)
        if header is None:
            return
        try:
            limit = int(header.strip())
        except ValueError:
            self.logger.debug(f"Ignoring malformed {RATE_LIMIT_HEADER} header: {header!r}")
            return
        previous = self.rate_limiter.interval
        if self.rate_limiter.set_rate(limit) and self.rate_limiter.interval != previous:
            self.logger.info(f"Pacing set to {limit} requests/second")

    def refresh_rate_limit(self) -> None:
        """
        Calibrate pacing from the /configuration endpoint.

        Single attempt outside the retry loop; on any failure the pacing
        goes back to the configured default.
        """
        url = f"{self.config.base_url}/configuration"
        try:
            self.rate_limiter.acquire()
            response = self.session.get(
                url, params={"language": self.config.language}, timeout=self.config.request_timeout
            )
            self._update_rate_limit(response)
        except requests.exceptions.RequestException as e:
            self.logger.warning(f"Rate limit calibration failed, using default: {e}")
            self.rate_limiter.reset()

    # ============ ENDPOINTS ============

    def fetch_movie_details(self, movie_id: int) -> Optional[dict]:
        """Movie detail with alternative titles, credits and watch providers."""
        return self.fetch(f"/movie/{movie_id}", {"append_to_response": MOVIE_APPENDS})

    def fetch_person_details(self, person_id: int) -> Optional[dict]:
        return self.fetch(f"/person/{person_id}")

    def fetch_genres(self) -> List[dict]:
        """Official movie genre list."""
        data = self.fetch("/genre/movie/list")
        if not data:
            return []
        return [g for g in data.get("genres") or [] if isinstance(g, dict)]

    def discover_movies_by_year(self, year: int, page: int = 1) -> Optional[Tuple[List[int], int]]:
        """
        One page of movies released in a year, oldest first.

        Args:
            year: Primary release year
            page: Page number (1-indexed)

        Returns:
            (movie_ids, total_pages), or None when TMDB answers 404
        """
        params = {
            "sort_by": "primary_release_date.asc",
            "include_adult": "false",
            "include_video": "false",
            "with_release_type": ALL_RELEASE_TYPES,
            "primary_release_date.gte": f"{year}-01-01",
            "primary_release_date.lte": f"{year}-12-31",
            "page": page,
        }
        data = self.fetch("/discover/movie", params)
        if data is None:
            return None

        movie_ids = []
        for result in data.get("results") or []:
            if isinstance(result, dict) and isinstance(result.get("id"), int):
                movie_ids.append(result["id"])
        total_pages = data.get("total_pages")
        return movie_ids, (total_pages if isinstance(total_pages, int) else 0)

    def close(self) -> None:
        self.session.close()
