"""Tests for content store CLI commands."""

import asyncio
from pathlib import Path

import pytest
from click.testing import CliRunner

from app.content_store import LocalContentStore
from app.content_store import cli as cli_module
from app.content_store.cli import cli
from tests.fixtures.types.config import get_test_settings


@pytest.fixture
def cli_settings(tmp_path: Path, monkeypatch):
    """Point the CLI at a temporary local store."""
    config = get_test_settings(tmp_path)
    monkeypatch.setattr(cli_module, "settings", config)
    return config


class TestContentStoreCLI:
    """Test CLI commands for content store."""

    def test_should_show_help(self):
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "Content store management commands" in result.output

    def test_should_show_status_of_empty_store(self, cli_settings):
        result = CliRunner().invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "Content Store Status:" in result.output
        assert "Total entries: 0" in result.output
        assert "Capacity" not in result.output

    def test_should_show_status_with_capacity(self, tmp_path: Path, monkeypatch):
        config = get_test_settings(tmp_path, STORAGE_CAPACITY_BYTES=2 * 1024 * 1024)
        monkeypatch.setattr(cli_module, "settings", config)

        result = CliRunner().invoke(cli, ["status"])

        assert result.exit_code == 0
        assert "Capacity: 2.00 MB" in result.output

    def test_should_inspect_stored_address(self, cli_settings):
        store = LocalContentStore(
            Path(cli_settings.STORAGE_PATH),
            max_payload_bytes=cli_settings.MAX_PAYLOAD_BYTES,
        )
        stored = asyncio.run(store.put(b"inspect me", {"file_name": "a.txt"}))

        result = CliRunner().invoke(cli, ["inspect", stored.address])

        assert result.exit_code == 0
        assert f"Content Address: {stored.address}" in result.output
        assert "Size: 10 bytes" in result.output
        assert '"file_name": "a.txt"' in result.output

    def test_should_report_missing_address(self, cli_settings):
        result = CliRunner().invoke(cli, ["inspect", "b" * 64])

        assert result.exit_code == 0
        assert "not found in store" in result.output

    def test_should_reject_malformed_address(self, cli_settings):
        result = CliRunner().invoke(cli, ["inspect", "nope"])

        assert result.exit_code != 0
        assert "Invalid hash format" in result.output

    def test_should_refuse_local_commands_for_http_backend(
        self, tmp_path: Path, monkeypatch
    ):
        config = get_test_settings(tmp_path, STORAGE_BACKEND="http")
        monkeypatch.setattr(cli_module, "settings", config)

        result = CliRunner().invoke(cli, ["status"])

        assert result.exit_code != 0
        assert "needs the local backend" in result.output

    def test_should_ping_local_backend(self, cli_settings):
        result = CliRunner().invoke(cli, ["ping"])

        assert result.exit_code == 0
        assert "local storage reachable: True" in result.output
