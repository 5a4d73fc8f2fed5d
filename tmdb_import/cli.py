"""
Command-line interface for the TMDB importer.

Provides commands for:
- setup: Create the catalog tables
- status: Show row counts per table
- test: Check the TMDB and database connections
- import-ids: Import a range of TMDB movie ids
- import-years: Import every movie released in a range of years
"""

import argparse
import sys
from typing import Optional

from .client import TMDBClient
from .config import Config
from .database import DatabaseManager
from .exceptions import ConfigurationError
from .models import ImportStats
from .pipeline import ImportPipeline
from .utils import format_number, print_header, print_status_table


def create_parser() -> argparse.ArgumentParser:
    """Create argument parser with all commands."""
    parser = argparse.ArgumentParser(
        prog="tmdb_import",
        description="TMDB Movie Importer - Load TMDB movies, people and availability into SQL",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  # Setup (run first)
  python -m tmdb_import setup

  # Import the first thousand TMDB ids
  python -m tmdb_import import-ids 1 1000

  # Import everything released in the nineties
  python -m tmdb_import import-years 1990 1999
        """,
    )

    subparsers = parser.add_subparsers(dest="command", help="Available commands")

    subparsers.add_parser("setup", help="Create missing catalog tables")
    subparsers.add_parser("status", help="Show row counts per table")
    subparsers.add_parser("test", help="Test TMDB and database connections")

    ids_parser = subparsers.add_parser("import-ids", help="Import a range of TMDB movie ids")
    ids_parser.add_argument("start", type=int, help="First TMDB id (inclusive)")
    ids_parser.add_argument("end", type=int, help="Last TMDB id (inclusive)")

    years_parser = subparsers.add_parser(
        "import-years",
        help="Import every movie TMDB discovers for a range of release years",
    )
    years_parser.add_argument("start_year", type=int, help="First release year (inclusive)")
    years_parser.add_argument("end_year", type=int, help="Last release year (inclusive)")

    for sub in (ids_parser, years_parser):
        sub.add_argument(
            "--no-progress",
            action="store_true",
            help="Disable the progress bar",
        )

    return parser


def cmd_setup(db: DatabaseManager) -> int:
    """Run setup command."""
    print_header("TMDB Import Setup")
    db.create_all_tables()
    status = db.get_status()
    missing = [name for name, count in status.items() if count is None]
    if missing:
        print(f"WARNING: Tables still missing: {', '.join(missing)}")
        return 1
    print("All catalog tables are present.")
    return 0


def cmd_status(db: DatabaseManager) -> int:
    """Run status command."""
    print_header("TMDB Import Status")
    status = db.get_status()
    print_status_table(
        {name: format_number(count) if count is not None else "MISSING" for name, count in status.items()},
        title="Rows per table",
    )
    if any(count is None for count in status.values()):
        print("Run 'python -m tmdb_import setup' to create missing tables.")
    return 0


def cmd_test(pipeline: ImportPipeline) -> int:
    """Run test connection command."""
    print_header("Connection Test")

    result = pipeline.test_connection()

    print(f"\nAPI Connection: {'OK' if result['api_connected'] else 'FAILED'}")
    if result["api_error"]:
        print(f"  Error: {result['api_error']}")

    print(f"DB Connection: {'OK' if result['db_connected'] else 'FAILED'}")
    if result["db_error"]:
        print(f"  Error: {result['db_error']}")

    return 0 if result["api_connected"] and result["db_connected"] else 1


def _print_stats(stats: ImportStats) -> None:
    print_status_table(
        {
            "Imported": format_number(stats.imported),
            "Failed": format_number(stats.failed),
            "Duration (ms)": format_number(stats.duration_millis),
        },
        title="Results",
    )


def cmd_import_ids(pipeline: ImportPipeline, args) -> int:
    """Run id range import command."""
    print_header(f"Import TMDB ids {args.start}-{args.end}")
    stats = pipeline.import_by_id_range(args.start, args.end, show_progress=not args.no_progress)
    _print_stats(stats)
    return 0


def cmd_import_years(pipeline: ImportPipeline, args) -> int:
    """Run year range import command."""
    print_header(f"Import release years {args.start_year}-{args.end_year}")
    stats = pipeline.import_by_year_range(
        args.start_year, args.end_year, show_progress=not args.no_progress
    )
    _print_stats(stats)
    return 0


def main(args: Optional[list] = None) -> int:
    """Main entry point for CLI."""
    parser = create_parser()
    parsed_args = parser.parse_args(args)

    if not parsed_args.command:
        parser.print_help()
        return 0

    # Load configuration
    try:
        config = Config.from_env()
    except ConfigurationError as e:
        print(f"Configuration error: {e}")
        print("\nMake sure your .env file contains:")
        print("  TMDB_BEARER_TOKEN=<your_bearer_token>")
        print("  DATABASE_URL=<sqlalchemy url>")
        print("  (or SQL_HOST, SQL_PORT, SQL_USER, SQL_PASS, SQL_DB for MySQL)")
        return 1

    # Create components
    try:
        db = DatabaseManager(config)
        client = TMDBClient(config)
        pipeline = ImportPipeline(client, db, config)
    except Exception as e:
        print(f"Error initializing importer: {e}")
        return 1

    # Route to command handler
    try:
        if parsed_args.command == "setup":
            return cmd_setup(db)
        elif parsed_args.command == "status":
            return cmd_status(db)
        elif parsed_args.command == "test":
            return cmd_test(pipeline)
        elif parsed_args.command == "import-ids":
            return cmd_import_ids(pipeline, parsed_args)
        elif parsed_args.command == "import-years":
            return cmd_import_years(pipeline, parsed_args)
        else:
            parser.print_help()
            return 0

    except KeyboardInterrupt:
        print("\n\nOperation cancelled.")
        return 130
    except ValueError as e:
        print(f"\nInvalid request: {e}")
        return 1
    except Exception as e:
        print(f"\nError: {e}")
        return 1
    finally:
        pipeline.close()


if __name__ == "__main__":
    sys.exit(main())
