"""Tests for the command-line entry points that need no browser or queue."""

import pytest
from typer.testing import CliRunner

from luxury_scraper.cli import app
from luxury_scraper.config import get_settings

runner = CliRunner()


@pytest.fixture
def cli_env(tmp_path, monkeypatch):
    """Point the CLI at a throwaway database and log file."""
    monkeypatch.setenv("LXSCRAPER_DATABASE_URL", f"sqlite:///{tmp_path / 'cli.db'}")
    monkeypatch.setenv("LXSCRAPER_LOG_FILE", str(tmp_path / "logs" / "cli.log"))
    get_settings.cache_clear()
    yield tmp_path
    get_settings.cache_clear()


class TestCli:
    """Tests for init / stats / export."""

    def test_init_creates_tables(self, cli_env):
        result = runner.invoke(app, ["init"])

        assert result.exit_code == 0
        assert "Database initialized" in result.output
        assert (cli_env / "cli.db").exists()
        assert (cli_env / "logs" / "cli.log").exists()

    def test_stats_on_empty_database(self, cli_env):
        result = runner.invoke(app, ["stats"])

        assert result.exit_code == 0
        assert "properties" in result.output
        assert "property_images" in result.output

    def test_export_nothing(self, cli_env):
        result = runner.invoke(app, ["export", str(cli_env / "out.csv")])

        assert result.exit_code == 0
        assert "No properties to export" in result.output
