"""Tests for the CLI commands: argument parsing, output, errors."""

from __future__ import annotations

from typing import Any
from unittest.mock import AsyncMock, patch

import jwt
import pytest
from click.testing import CliRunner

from campusboard.cli.app import cli
from campusboard.config.schema import CampusBoardConfig, DatabaseConfig
from campusboard.core.errors import ConfigError, StorageError


@pytest.fixture
def runner() -> CliRunner:
    return CliRunner()


def _memory_config() -> CampusBoardConfig:
    return CampusBoardConfig(database=DatabaseConfig(url="sqlite+aiosqlite://"))


# ── CLI group ────────────────────────────────────────────────────


class TestCliGroup:
    def test_no_command_shows_help(self, runner: CliRunner) -> None:
        result = runner.invoke(cli)
        assert result.exit_code == 0
        assert "Campus forum discussion backend" in result.output

    def test_version(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--version"])
        assert result.exit_code == 0
        assert "campusboard" in result.output
        assert "0.1.0" in result.output

    def test_help_lists_commands(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["--help"])
        for name in ("serve", "init-db", "purge", "threads", "token"):
            assert name in result.output

    @patch("campusboard.cli.app.load_config")
    def test_config_error_exits(self, mock_config: Any, runner: CliRunner) -> None:
        mock_config.side_effect = ConfigError("Invalid TOML in x.toml")
        result = runner.invoke(cli, ["threads"])
        assert result.exit_code == 1
        assert "Error: Invalid TOML" in result.output


# ── token ────────────────────────────────────────────────────────


class TestTokenCommand:
    @patch("campusboard.cli.app.load_config")
    def test_mints_token(self, mock_config: Any, runner: CliRunner) -> None:
        config = _memory_config()
        config.api.jwt_secret = "s3cret"
        mock_config.return_value = config

        result = runner.invoke(cli, ["token", "42"])
        assert result.exit_code == 0
        payload = jwt.decode(result.output.strip(), "s3cret", algorithms=["HS256"])
        assert payload["sub"] == "42"

    @patch("campusboard.cli.app.load_config")
    def test_no_secret(self, mock_config: Any, runner: CliRunner) -> None:
        mock_config.return_value = _memory_config()
        result = runner.invoke(cli, ["token", "42"])
        assert result.exit_code == 1
        assert "CAMPUSBOARD_JWT_SECRET" in result.output

    def test_user_id_must_be_int(self, runner: CliRunner) -> None:
        result = runner.invoke(cli, ["token", "bob"])
        assert result.exit_code != 0


# ── init-db / threads / purge ────────────────────────────────────


class TestDatabaseCommands:
    @patch("campusboard.cli.app.load_config")
    def test_init_db(self, mock_config: Any, runner: CliRunner) -> None:
        mock_config.return_value = _memory_config()
        result = runner.invoke(cli, ["init-db"])
        assert result.exit_code == 0
        assert "Database schema ready." in result.output

    @patch("campusboard.cli.app.load_config")
    def test_threads_empty(self, mock_config: Any, runner: CliRunner) -> None:
        mock_config.return_value = _memory_config()
        result = runner.invoke(cli, ["threads", "--search", "library"])
        assert result.exit_code == 0
        assert "No threads found." in result.output

    @patch("campusboard.cli.app.load_config")
    def test_purge_empty(self, mock_config: Any, runner: CliRunner) -> None:
        mock_config.return_value = _memory_config()
        result = runner.invoke(cli, ["purge", "--days", "0"])
        assert result.exit_code == 0
        assert "Purged 0 thread(s)." in result.output

    @patch("campusboard.cli.app._purge_async", new_callable=AsyncMock)
    @patch("campusboard.cli.app.load_config")
    def test_purge_uses_retention_default(
        self, mock_config: Any, mock_purge: AsyncMock, runner: CliRunner
    ) -> None:
        config = _memory_config()
        mock_config.return_value = config
        mock_purge.return_value = [3, 9]

        result = runner.invoke(cli, ["purge"])
        assert result.exit_code == 0
        mock_purge.assert_awaited_once_with(config, 30)
        assert "Purged 2 thread(s)." in result.output
        assert "  9" in result.output

    @patch("campusboard.cli.app.load_config")
    def test_purge_negative_days(self, mock_config: Any, runner: CliRunner) -> None:
        mock_config.return_value = _memory_config()
        result = runner.invoke(cli, ["purge", "--days", "-1"])
        assert result.exit_code == 1
        assert "--days must be >= 0" in result.output

    @patch("campusboard.cli.app.asyncio.run")
    @patch("campusboard.cli.app.load_config")
    def test_storage_error_reported(
        self, mock_config: Any, mock_run: Any, runner: CliRunner
    ) -> None:
        mock_config.return_value = _memory_config()

        def _fail(coro: Any) -> None:
            coro.close()
            raise StorageError("disk full")

        mock_run.side_effect = _fail
        result = runner.invoke(cli, ["purge"])
        assert result.exit_code == 1
        assert "Error: disk full" in result.output
