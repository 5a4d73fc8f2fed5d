"""
TMDB import orchestrator.

Coordinates one import run:
- Calibrates pacing and refreshes the genre list
- Decides the units of work (an id range, or the movies discovered per year)
- Runs each unit on a worker thread, at most ``max_concurrency`` at a time
- Aggregates imported/failed counts and the elapsed time
"""

from concurrent.futures import Future, ThreadPoolExecutor, as_completed
from datetime import datetime
from threading import BoundedSemaphore, Event
from typing import Iterable, List, Optional, Tuple

from tqdm import tqdm

from .client import TMDBClient
from .config import Config
from .database import DatabaseManager
from .exceptions import DiscoveryPageError
from .models import ImportStats
from .people import PersonCache
from .persistence import MoviePersister
from .utils import AtomicCounter, Timer, format_number, setup_logger


class _Run:
    """State shared by the workers of one import run."""

    def __init__(self, persister: MoviePersister):
        self.persister = persister
        self.imported = AtomicCounter()
        self.failed = AtomicCounter()
        self.stop = Event()
        self.futures: List[Future] = []


class ImportPipeline:
    """
    Main orchestrator for import runs.

    The semaphore belongs to the pipeline instance, so concurrent runs
    (e.g. two API requests) share the same concurrency bound.
    """

    def __init__(self, client: TMDBClient, db: DatabaseManager, config: Config):
        self.client = client
        self.db = db
        self.config = config
        self.logger = setup_logger("pipeline", config.log_dir)
        self._permits = BoundedSemaphore(config.max_concurrency)
        self.active_runs = AtomicCounter()
        self.last_stats: Optional[ImportStats] = None

    # ============ VALIDATION ============

    @staticmethod
    def validate_id_range(start_id: int, end_id: int) -> None:
        if end_id < start_id:
            raise ValueError("Parameter 'end' must be >= 'start'")

    def validate_year_range(self, start_year: int, end_year: int) -> Tuple[int, int]:
        """
        Check a year range and clamp it to the supported interval.

        Returns:
            (start, end) actually imported

        Raises:
            ValueError: Non-positive years, end before start, or nothing left
                after clamping to [min_year, current year]
        """
        if start_year <= 0 or end_year <= 0:
            raise ValueError("Parameters 'start_year' and 'end_year' must be positive")
        if end_year < start_year:
            raise ValueError("Parameter 'end_year' must be >= 'start_year'")

        current_year = datetime.now().year
        effective_start = max(start_year, self.config.min_year)
        effective_end = min(end_year, current_year)
        if effective_start > effective_end:
            raise ValueError(
                f"Requested year range is outside the supported interval "
                f"(>= {self.config.min_year} and <= {current_year})"
            )
        return effective_start, effective_end

    # ============ OPERATION 1: ID RANGE ============

    def import_by_id_range(self, start_id: int, end_id: int, show_progress: bool = True) -> ImportStats:
        """
        Import every TMDB movie id in [start_id, end_id].

        Returns:
            ImportStats with imported/failed counts and duration
        """
        self.validate_id_range(start_id, end_id)
        self.logger.info(f"Starting id range import: {start_id} -> {end_id}")

        self.active_runs.increment()
        try:
            with Timer("Id range import") as timer:
                run = self._start_run()
                with ThreadPoolExecutor(
                    max_workers=self.config.worker_threads, thread_name_prefix="import"
                ) as executor:
                    try:
                        for tmdb_id in range(start_id, end_id + 1):
                            self._submit(executor, run, tmdb_id)
                    except KeyboardInterrupt:
                        self._interrupt(executor, run)
                        raise
                    self._wait(executor, run, show_progress, "Importing")
        finally:
            self.active_runs.increment(-1)

        return self._finish_run(run, timer)

    # ============ OPERATION 2: YEAR RANGE ============

    def import_by_year_range(
        self, start_year: int, end_year: int, show_progress: bool = True
    ) -> ImportStats:
        """
        Import every movie TMDB discovers for the release years in range.

        Discovery pages are walked oldest first and capped at
        ``max_discover_pages`` per year; each failed page counts as one
        failure. Units are dispatched as soon as their page arrives.

        Returns:
            ImportStats with imported/failed counts and duration
        """
        start_year, end_year = self.validate_year_range(start_year, end_year)
        self.logger.info(f"Starting year range import: {start_year} -> {end_year}")

        self.active_runs.increment()
        try:
            with Timer("Year range import") as timer:
                run = self._start_run()
                with ThreadPoolExecutor(
                    max_workers=self.config.worker_threads, thread_name_prefix="import"
                ) as executor:
                    try:
                        for year in range(start_year, end_year + 1):
                            for movie_ids in self._discover_year(run, year):
                                for tmdb_id in movie_ids:
                                    self._submit(executor, run, tmdb_id)
                    except KeyboardInterrupt:
                        self._interrupt(executor, run)
                        raise
                    self._wait(
                        executor, run, show_progress, f"Importing {start_year}-{end_year}"
                    )
        finally:
            self.active_runs.increment(-1)

        return self._finish_run(run, timer)

    def _discover_year(self, run: _Run, year: int) -> Iterable[List[int]]:
        """Yield the movie ids of each discovery page of one year."""
        page = 1
        total_pages = 1
        warned = False
        while page <= total_pages:
            try:
                result = self._discover_page(year, page)
            except DiscoveryPageError as e:
                run.failed.increment()
                self.logger.error(str(e))
                page += 1
                continue

            if result is None:
                break
            movie_ids, reported_pages = result
            if reported_pages > self.config.max_discover_pages and not warned:
                warned = True
                self.logger.info(
                    f"TMDB reports {format_number(reported_pages)} pages for {year}; "
                    f"importing the first {self.config.max_discover_pages}"
                )
            total_pages = min(max(reported_pages, 1), self.config.max_discover_pages)
            yield movie_ids
            page += 1

    def _discover_page(self, year: int, page: int) -> Optional[Tuple[List[int], int]]:
        """One discovery page; any failure is reported as DiscoveryPageError."""
        try:
            return self.client.discover_movies_by_year(year, page)
        except Exception as e:
            raise DiscoveryPageError(year, page, e) from e

    # ============ RUN MECHANICS ============

    def _start_run(self) -> _Run:
        """Calibrate pacing, refresh genres and set up run-scoped state."""
        self.client.refresh_rate_limit()

        people = PersonCache(self.client, self.db)
        persister = MoviePersister(self.db, people)
        try:
            count = persister.refresh_genres(self.client.fetch_genres())
            self.logger.info(f"Genre list refreshed: {count} genres")
        except Exception as e:
            self.logger.warning(f"Genre refresh failed, continuing: {e}")
        return _Run(persister)

    def _finish_run(self, run: _Run, timer: Timer) -> ImportStats:
        stats = ImportStats(
            imported=run.imported.value,
            failed=run.failed.value,
            duration_millis=timer.elapsed_millis,
        )
        self.last_stats = stats
        self.logger.info(f"Import finished. {stats} ({timer})")
        return stats

    def _submit(self, executor: ThreadPoolExecutor, run: _Run, tmdb_id: int) -> None:
        run.futures.append(executor.submit(self._run_unit, run, tmdb_id))

    def _run_unit(self, run: _Run, tmdb_id: int) -> None:
        """Worker body: one permit, one movie, always counted."""
        if run.stop.is_set():
            run.failed.increment()
            return

        self._permits.acquire()
        try:
            if self.import_one(run.persister, tmdb_id):
                run.imported.increment()
            else:
                run.failed.increment()
        except Exception as e:
            run.failed.increment()
            self.logger.error(f"Import failed for TMDB id {tmdb_id}: {e}")
        finally:
            self._permits.release()

    def import_one(self, persister: MoviePersister, tmdb_id: int) -> bool:
        """
        Fetch and persist one movie.

        Returns:
            True if written, False when TMDB has no such movie
        """
        payload = self.client.fetch_movie_details(tmdb_id)
        if payload is None:
            self.logger.info(f"TMDB has no movie with id {tmdb_id}")
            return False
        return persister.persist(payload)

    def _wait(self, executor: ThreadPoolExecutor, run: _Run, show_progress: bool, desc: str) -> None:
        """Block until every dispatched unit is done."""
        try:
            for _ in tqdm(
                as_completed(run.futures),
                total=len(run.futures),
                desc=desc,
                unit="movie",
                disable=not show_progress,
            ):
                pass
        except KeyboardInterrupt:
            self._interrupt(executor, run)
            raise

    def _interrupt(self, executor: ThreadPoolExecutor, run: _Run) -> None:
        """Stop dispatching, drop queued units and let running ones finish."""
        self.logger.warning("Interrupted; waiting for running imports to finish")
        run.stop.set()
        for future in run.futures:
            future.cancel()
        executor.shutdown(wait=True)

    # ============ DIAGNOSTICS ============

    def test_connection(self) -> dict:
        """Check that both TMDB and the database answer."""
        result = {
            "api_connected": False,
            "api_error": None,
            "db_connected": False,
            "db_error": None,
        }
        try:
            result["api_connected"] = self.client.fetch("/configuration") is not None
            if not result["api_connected"]:
                result["api_error"] = "/configuration returned 404"
        except Exception as e:
            result["api_error"] = str(e)

        result["db_connected"] = self.db.test_connection()
        if not result["db_connected"]:
            result["db_error"] = "Connection failed (see database log)"
        return result

    def close(self) -> None:
        self.client.close()
        self.db.dispose()
