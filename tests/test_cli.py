"""Tests for the command-line interface."""

from __future__ import annotations

import asyncio
import json
from pathlib import Path

import pytest
from typer.testing import CliRunner

from jobtracker import __version__
from jobtracker import main as cli
from jobtracker.config.schema import Config
from jobtracker.store import JsonJobStore


runner = CliRunner()


@pytest.fixture
def config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> Config:
    config = Config(store={"path": str(tmp_path / "jobs.json")})
    monkeypatch.setattr(cli, "_load", lambda: config)
    return config


def stored_templates(config: Config) -> list:
    return asyncio.run(JsonJobStore(config.store_path).list_recurring_templates())


class TestCli:
    def test_version(self) -> None:
        result = runner.invoke(cli.app, ["--version"])
        assert result.exit_code == 0
        assert __version__ in result.output

    def test_create_template_and_run(self, config: Config) -> None:
        result = runner.invoke(
            cli.app,
            [
                "template", "create",
                "--title", "Sweep yard",
                "--type", "weekly",
                "--days", "1,3",
                "--start", "2024-01-01T08:00:00+00:00",
            ],
        )
        assert result.exit_code == 0, result.output
        (template,) = stored_templates(config)
        assert template.recurrence_pattern.days_of_week == [1, 3]

        result = runner.invoke(
            cli.app, ["run", "--now", "2024-01-14T23:00:00+00:00", "--json"]
        )
        assert result.exit_code == 0, result.output
        summary = json.loads(result.output)
        assert summary["instances_created"] == 4
        assert summary["errors"] == 0

    def test_invalid_pattern_is_rejected(self, config: Config) -> None:
        result = runner.invoke(
            cli.app,
            ["template", "create", "--title", "Pay rent", "--type", "monthly", "--day-of-month", "40"],
        )
        assert result.exit_code == 1
        assert "Invalid recurrence" in result.output
        assert stored_templates(config) == []

    def test_invalid_timestamp(self, config: Config) -> None:
        result = runner.invoke(cli.app, ["run", "--now", "yesterday"])
        assert result.exit_code == 1

    def test_list_and_preview(self, config: Config) -> None:
        runner.invoke(
            cli.app,
            [
                "template", "create",
                "--title", "Sweep yard",
                "--type", "daily",
                "--interval", "2",
                "--start", "2030-01-01T08:00:00+00:00",
            ],
        )
        (template,) = stored_templates(config)

        listed = runner.invoke(cli.app, ["template", "list"])
        assert listed.exit_code == 0
        assert "Sweep" in listed.output

        preview = runner.invoke(cli.app, ["template", "preview", template.id, "-n", "3"])
        assert preview.exit_code == 0
        assert "2030-01-01" in preview.output
        assert "2030-01-05" in preview.output

    def test_complete_unknown_job(self, config: Config) -> None:
        result = runner.invoke(cli.app, ["complete", "missing"])
        assert result.exit_code == 1
        assert "not found" in result.output

    def test_cleanup(self, config: Config) -> None:
        result = runner.invoke(cli.app, ["cleanup", "--days", "10"])
        assert result.exit_code == 0
        assert "Retired 0" in result.output
