"""Tests for CLI commands."""

from __future__ import annotations

import json

import pytest
from typer.testing import CliRunner

from metabolic import cli
from metabolic.cli import app
from metabolic.config import Settings

runner = CliRunner()


@pytest.fixture
def cli_settings(tmp_path, monkeypatch):
    """Point the CLI at a throwaway database."""
    settings = Settings()
    settings.database.path = tmp_path / "metabolic.db"
    settings.logging.level = "WARNING"
    monkeypatch.setattr(cli, "get_settings", lambda: settings)
    return settings


class TestMainCommands:
    """Tests for main CLI commands."""

    def test_help(self):
        """Test that --help works."""
        result = runner.invoke(app, ["--help"])
        assert result.exit_code == 0
        assert "tdee" in result.output.lower()

    def test_recalc_requires_date(self):
        result = runner.invoke(app, ["recalc"])
        assert result.exit_code != 0

    def test_meal_add_requires_calories(self):
        result = runner.invoke(app, ["meal", "add"])
        assert result.exit_code != 0

    def test_food_add_requires_args(self):
        result = runner.invoke(app, ["food", "add"])
        assert result.exit_code != 0

    def test_weight_add_requires_weight(self):
        result = runner.invoke(app, ["weight", "add"])
        assert result.exit_code != 0

    @pytest.mark.parametrize("group", ["meal", "food", "weight", "steps", "profile"])
    def test_group_help(self, group):
        result = runner.invoke(app, [group, "--help"])
        assert result.exit_code == 0


class TestLogging:
    """End-to-end logging against a temporary SQLite store."""

    def test_weight_then_meal(self, cli_settings):
        result = runner.invoke(app, ["weight", "add", "80.5", "--at", "2026-01-15", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)
        assert data["success"] is True
        assert data["data"]["days_recomputed"] >= 1

        result = runner.invoke(
            app,
            ["meal", "add", "2100", "-p", "120", "--at", "2026-01-15T19:00:00Z", "--json"],
        )
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["data"]["days_recomputed"] >= 1

        result = runner.invoke(app, ["backfill", "--days", "3650", "--json"])
        assert result.exit_code == 0, result.output
        assert json.loads(result.output)["data"]["days_processed"] == 1

    def test_steps_add(self, cli_settings):
        runner.invoke(app, ["weight", "add", "80.5", "--at", "2026-01-15"])
        result = runner.invoke(app, ["steps", "add", "9000", "--at", "2026-01-15", "--json"])
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)["data"]
        assert data["steps"] == 9000
        assert data["date"] == "2026-01-15"
        assert data["days_recomputed"] >= 1

    def test_negative_steps_rejected(self, cli_settings):
        result = runner.invoke(app, ["steps", "add", "--json", "--", "-5"])
        assert result.exit_code == 1

    def test_invalid_weight_rejected(self, cli_settings):
        result = runner.invoke(app, ["weight", "add", "20", "--json"])
        assert result.exit_code == 1
        data = json.loads(result.output)
        assert data["success"] is False
        assert "outside reasonable range" in data["errors"][0]

    def test_negative_calories_rejected(self, cli_settings):
        result = runner.invoke(app, ["meal", "add", "--json", "--", "-100"])
        assert result.exit_code == 1

    def test_profile_set(self, cli_settings):
        result = runner.invoke(
            app,
            ["profile", "set", "--goal", "lose", "--rate", "0.5", "--sex", "female", "--json"],
        )
        assert result.exit_code == 0, result.output
        data = json.loads(result.output)["data"]
        assert data["goal_type"] == "lose"
        assert data["sex"] == "female"

    def test_profile_set_invalid(self, cli_settings):
        result = runner.invoke(app, ["profile", "set", "--goal", "bulk"])
        assert result.exit_code == 1

    def test_report_without_data(self, cli_settings):
        result = runner.invoke(app, ["report"])
        assert result.exit_code == 0
        assert "No computed data" in result.output
