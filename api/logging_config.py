"""
Request-scoped logging for the API.

The API logger is built by the importer's ``setup_logger`` and every record
is tagged with the id of the HTTP request that produced it.
"""

import logging
import os
import uuid
from contextvars import ContextVar
from pathlib import Path
from typing import Optional

from tmdb_import.utils import setup_logger

request_id_var: ContextVar[Optional[str]] = ContextVar("request_id", default=None)

REQUEST_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - [%(request_id)s] - %(message)s"


class RequestIdFilter(logging.Filter):
    """Add request_id to log records ("-" outside a request)."""

    def filter(self, record: logging.LogRecord) -> bool:
        record.request_id = request_id_var.get() or "-"
        return True


def setup_api_logger(log_dir: Optional[Path] = None) -> logging.Logger:
    """API logger: importer handlers, request-id format, INFO also on console."""
    if log_dir is None:
        log_dir = Path(os.getenv("LOG_DIR", str(Path.cwd() / "logs")))
    api_logger = setup_logger("api", log_dir)

    formatter = logging.Formatter(REQUEST_FORMAT, datefmt="%Y-%m-%d %H:%M:%S")
    for handler in api_logger.handlers:
        if not any(isinstance(f, RequestIdFilter) for f in handler.filters):
            handler.addFilter(RequestIdFilter())
        handler.setFormatter(formatter)
        if isinstance(handler, logging.StreamHandler) and not isinstance(handler, logging.FileHandler):
            handler.setLevel(logging.INFO)
    return api_logger


def generate_request_id() -> str:
    return uuid.uuid4().hex[:8]


def set_request_id(request_id: str) -> None:
    request_id_var.set(request_id)


logger = setup_api_logger()
