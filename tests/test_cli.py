"""Tests for the ticker-spine CLI."""

import pytest
from typer.testing import CliRunner

from ticker_spine import __version__
from ticker_spine import cli

runner = CliRunner()


@pytest.fixture(autouse=True)
def _quiet(monkeypatch):
    monkeypatch.setattr(cli, "configure_logging", lambda **kwargs: None)
    monkeypatch.setenv("TICKER_SPINE_NOTIFY_CONSOLE", "false")


class TestCli:
    def test_version(self):
        result = runner.invoke(cli.app, ["--version"])

        assert result.exit_code == 0
        assert __version__ in result.output

    def test_refresh_unknown_pass(self):
        result = runner.invoke(cli.app, ["refresh", "--pass", "weekly"])

        assert result.exit_code == 2

    def test_refresh_failed_pass_exits_non_zero(self):
        result = runner.invoke(cli.app, ["refresh", "--json"])

        assert result.exit_code == 1
        assert '"failed_phase": "symbols"' in result.output

    def test_cache_read_before_any_pass(self):
        result = runner.invoke(cli.app, ["cache-read", "tickers"])

        assert result.exit_code == 1
