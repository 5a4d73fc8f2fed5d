"""
Utility functions for the TMDB import pipeline.

Provides logging setup, request pacing, thread-safe counters, timing and
display helpers.
"""

import logging
import sys
import time
from datetime import datetime
from pathlib import Path
from threading import Lock
from typing import Callable, Optional


def setup_logger(
    name: str,
    log_dir: Optional[Path] = None,
    level: int = logging.INFO,
    console_output: bool = True,
) -> logging.Logger:
    """
    Set up a logger with file and optional console handlers.

    Args:
        name: Logger name (used for both logger and log file)
        log_dir: Directory for log files (defaults to ./logs)
        level: Logging level
        console_output: Whether to also log to console

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(f"tmdb_import.{name}")
    logger.setLevel(level)

    # Avoid adding handlers multiple times
    if logger.handlers:
        return logger

    formatter = logging.Formatter(
        "%(asctime)s - %(name)s - %(levelname)s - [%(threadName)s] - %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    if log_dir is None:
        log_dir = Path.cwd() / "logs"
    log_dir.mkdir(parents=True, exist_ok=True)

    log_file = log_dir / f"{name}_{datetime.now().strftime('%Y%m%d')}.log"
    file_handler = logging.FileHandler(log_file)
    file_handler.setLevel(level)
    file_handler.setFormatter(formatter)
    logger.addHandler(file_handler)

    if console_output:
        console_handler = logging.StreamHandler(sys.stdout)
        console_handler.setLevel(logging.WARNING)  # Only warnings and above to console
        console_handler.setFormatter(formatter)
        logger.addHandler(console_handler)

    return logger


class RateLimiter:
    """
    Pacing gate shared by every outbound API call.

    Remembers when the last request was issued and makes each caller wait
    until ``last + interval`` has passed. The lock is held while sleeping,
    so request *issue* is serialized across threads while the requests
    themselves still run concurrently.

    The interval can be changed at any time (e.g. from rate-limit headers);
    the new value applies to the next acquire.
    """

    def __init__(
        self,
        interval: float,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        """
        Initialize rate limiter.

        Args:
            interval: Minimum seconds between two request issues
            clock: Monotonic clock (injectable for tests)
            sleep: Sleep function (injectable for tests)
        """
        if interval < 0:
            raise ValueError("interval must be >= 0")
        self.default_interval = interval
        self._interval = interval
        self._last_call: Optional[float] = None
        self._clock = clock
        self._sleep = sleep
        self._lock = Lock()

    @property
    def interval(self) -> float:
        return self._interval

    def set_rate(self, calls_per_second: float) -> bool:
        """
        Derive the interval from a calls-per-second limit.

        Non-positive limits are ignored.

        Returns:
            True if the interval was changed
        """
        if calls_per_second <= 0:
            return False
        self._interval = 1.0 / calls_per_second
        return True

    def reset(self) -> None:
        """Go back to the default interval."""
        self._interval = self.default_interval

    def acquire(self) -> None:
        """
        Block the calling thread until the next request may be issued.
        """
        with self._lock:
            now = self._clock()
            if self._last_call is None:
                self._last_call = now
                return

            earliest_next_call = self._last_call + self._interval
            if earliest_next_call > now:
                self._sleep(earliest_next_call - now)
                now = self._clock()
            self._last_call = max(now, earliest_next_call)


class AtomicCounter:
    """Integer counter safe to increment from many threads."""

    def __init__(self, value: int = 0):
        self._value = value
        self._lock = Lock()

    def increment(self, amount: int = 1) -> int:
        with self._lock:
            self._value += amount
            return self._value

    @property
    def value(self) -> int:
        with self._lock:
            return self._value


class Timer:
    """Context manager for timing operations."""

    def __init__(self, description: str = "Operation"):
        self.description = description
        self.start_time: float = 0
        self.elapsed: float = 0

    def __enter__(self) -> "Timer":
        self.start_time = time.monotonic()
        return self

    def __exit__(self, *args) -> None:
        self.elapsed = time.monotonic() - self.start_time

    @property
    def elapsed_millis(self) -> int:
        return int(self.elapsed * 1000)

    def __str__(self) -> str:
        return f"{self.description}: {format_duration(self.elapsed)}"


def format_number(n: int) -> str:
    """Format number with commas for readability."""
    return f"{n:,}"


def format_duration(seconds: float) -> str:
    """Format duration in human-readable format."""
    if seconds < 60:
        return f"{seconds:.1f}s"
    elif seconds < 3600:
        minutes = seconds / 60
        return f"{minutes:.1f}m"
    else:
        hours = seconds / 3600
        return f"{hours:.1f}h"


def blank_to_none(value) -> Optional[str]:
    """Return None for missing, non-string or whitespace-only values."""
    if not isinstance(value, str):
        return None
    return value if value.strip() else None


def normalize_iso(value) -> Optional[str]:
    """Trim an ISO code; empty codes become None."""
    if not isinstance(value, str):
        return None
    value = value.strip()
    return value or None


def print_header(text: str, char: str = "=", width: int = 60) -> None:
    """Print a header with decorative lines."""
    print(char * width)
    print(text.center(width))
    print(char * width)


def print_status_table(data: dict, title: str = "Status") -> None:
    """Print a formatted status table."""
    print(f"\n{title}")
    print("-" * 40)
    max_key_len = max(len(str(k)) for k in data.keys()) if data else 10
    for key, value in data.items():
        print(f"  {key:<{max_key_len + 2}}: {value}")
    print()
