"""
TMDB Import REST API.

Thin FastAPI layer that triggers import runs and reports their results.
"""

from api.main import app

__all__ = ["app"]
