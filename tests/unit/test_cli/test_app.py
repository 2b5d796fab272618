"""Tests for the CLI command tree."""

import pytest
from typer.testing import CliRunner

from agua_api.cli.app import app

runner = CliRunner()


@pytest.fixture(autouse=True)
def _env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
    monkeypatch.setenv("JWT_SECRET_KEY", "test-secret-key-not-for-production-use")


def test_root_help_lists_groups() -> None:
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    for command in ("serve", "db", "user"):
        assert command in result.output


def test_user_help_lists_commands() -> None:
    result = runner.invoke(app, ["user", "--help"])
    assert result.exit_code == 0
    for command in ("create", "list", "deactivate", "unlock", "seed-demo"):
        assert command in result.output


def test_db_help_lists_commands() -> None:
    result = runner.invoke(app, ["db", "--help"])
    assert result.exit_code == 0
    for command in ("upgrade", "downgrade", "current"):
        assert command in result.output
