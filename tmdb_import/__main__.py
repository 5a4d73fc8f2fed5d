"""
Entry point for running the importer as a module.

Usage:
    python -m tmdb_import <command>
"""

import sys

from .cli import main

if __name__ == "__main__":
    sys.exit(main())
