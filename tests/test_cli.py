"""
Tests for the command-line entry point.
"""

from unittest.mock import patch

import pytest

from conftest import movie_payload
from tmdb_import.cli import create_parser, main
from tmdb_import.exceptions import ConfigurationError


@pytest.fixture
def wired(config, fake_client):
    """Route the CLI to the SQLite config and the fake TMDB client."""
    with patch("tmdb_import.cli.Config.from_env", return_value=config), \
            patch("tmdb_import.cli.TMDBClient", return_value=fake_client):
        yield fake_client


class TestParser:

    def test_import_ids_arguments(self):
        args = create_parser().parse_args(["import-ids", "1", "10", "--no-progress"])

        assert (args.command, args.start, args.end, args.no_progress) == ("import-ids", 1, 10, True)

    def test_import_years_arguments(self):
        args = create_parser().parse_args(["import-years", "1990", "1999"])

        assert (args.start_year, args.end_year, args.no_progress) == (1990, 1999, False)


class TestMain:

    def test_no_command_prints_help(self, capsys):
        assert main([]) == 0
        assert "usage" in capsys.readouterr().out

    def test_setup_creates_tables(self, wired, capsys):
        assert main(["setup"]) == 0
        assert "All catalog tables are present." in capsys.readouterr().out

    def test_status_reports_missing_tables(self, wired, capsys):
        assert main(["status"]) == 0
        assert "MISSING" in capsys.readouterr().out

    def test_import_ids(self, wired, capsys):
        wired.movies[550] = movie_payload(550)
        main(["setup"])

        assert main(["import-ids", "550", "551", "--no-progress"]) == 0

        output = capsys.readouterr().out
        assert "Imported" in output
        assert wired.movie_calls.count(550) == 1

    def test_invalid_range_exits_with_error(self, wired, capsys):
        assert main(["import-ids", "5", "1", "--no-progress"]) == 1
        assert "Invalid request" in capsys.readouterr().out

    def test_connection_test(self, wired, capsys):
        assert main(["test"]) == 0
        assert "API Connection: OK" in capsys.readouterr().out

    def test_configuration_error(self, capsys):
        with patch("tmdb_import.cli.Config.from_env", side_effect=ConfigurationError("no token")):
            assert main(["status"]) == 1

        assert "Configuration error: no token" in capsys.readouterr().out

    def test_interrupt_exits_130(self, wired):
        with patch("tmdb_import.cli.ImportPipeline.import_by_id_range", side_effect=KeyboardInterrupt):
            assert main(["import-ids", "1", "2"]) == 130
