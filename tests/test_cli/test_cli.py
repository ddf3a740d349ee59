"""
Smoke tests for the Typer CLI (no network: only offline commands).

What we test
------------
1. ``validate-config`` / ``init-db`` succeed against a temp config.
2. A missing config file exits with code 1 and an ``[ERROR]`` message.
3. ``status`` reports absent artifacts; ``show-runs`` on an empty DB.
4. ``--as-of`` rejects unparseable timestamps.
"""

from __future__ import annotations

from pathlib import Path

import pytest
from typer.testing import CliRunner

from stock_picks.cli import app

runner = CliRunner()


@pytest.fixture
def config_file(tmp_path: Path) -> Path:
    path = tmp_path / "config" / "default.toml"
    path.parent.mkdir()
    path.write_text(
        "\n".join(
            [
                "[database]",
                f'db_path = "{(tmp_path / "db" / "runs.db").as_posix()}"',
                "[data]",
                f'ledger_dir = "{(tmp_path / "ledger").as_posix()}"',
                f'reports_dir = "{(tmp_path / "reports").as_posix()}"',
                "legacy_archive_dirs = []",
                "[logging]",
                f'log_file = "{(tmp_path / "logs" / "cli.log").as_posix()}"',
                "",
            ]
        ),
        encoding="utf-8",
    )
    return path


def test_validate_config(config_file):
    result = runner.invoke(app, ["validate-config", "--config", str(config_file)])
    assert result.exit_code == 0
    assert "[OK] Config valid." in result.output
    assert "Benchmark:        SPY" in result.output


def test_missing_config(tmp_path):
    result = runner.invoke(app, ["validate-config", "--config", str(tmp_path / "nope.toml")])
    assert result.exit_code == 1


def test_init_db(config_file, tmp_path):
    result = runner.invoke(app, ["init-db", "--config", str(config_file)])
    assert result.exit_code == 0
    assert (tmp_path / "db" / "runs.db").exists()
    assert "run_metadata" in result.output


def test_show_runs_empty(config_file):
    result = runner.invoke(app, ["show-runs", "--config", str(config_file)])
    assert result.exit_code == 0
    assert "(no runs recorded)" in result.output


def test_status_without_artifacts(config_file):
    result = runner.invoke(app, ["status", "--config", str(config_file)])
    assert result.exit_code == 0
    assert result.output.count("(not found)") == 4


def test_invalid_as_of(config_file):
    result = runner.invoke(
        app, ["verify", "--as-of", "not-a-date", "--config", str(config_file)]
    )
    assert result.exit_code == 1
