"""Tests for ingestion record CLI commands."""

import asyncio
from datetime import datetime, timedelta, timezone
from pathlib import Path

import pytest
from click.testing import CliRunner

from app.core.db import create_engine_for_url, create_session_factory, init_models
from app.database.repositories import IngestionRecordRepository
from app.ingestion import cli as cli_module
from app.ingestion.cli import cli
from app.models.ingestion import IngestionRecord, RecordStatus
from tests.fixtures.types.config import get_test_settings


def seed(database_url: str, *records: IngestionRecord) -> None:
    async def _seed() -> None:
        engine = create_engine_for_url(database_url)
        try:
            await init_models(engine)
            async with create_session_factory(engine)() as session:
                repository = IngestionRecordRepository(session)
                for record in records:
                    await repository.insert(record)
        finally:
            await engine.dispose()

    asyncio.run(_seed())


def make_record(record_id: str, accepted_at: datetime, **fields) -> IngestionRecord:
    return IngestionRecord(
        id=record_id,
        owner_id="0xowner",
        content_hash=fields.pop("content_hash", record_id.ljust(64, "0")[:64]),
        transfer_ref=f"tx-{record_id}",
        payment_amount=100,
        size_bytes=10,
        accepted_at=accepted_at,
        **fields,
    )


@pytest.fixture
def cli_settings(tmp_path: Path, monkeypatch):
    """Point the CLI at a temporary database."""
    config = get_test_settings(tmp_path, RECONCILE_GRACE_SECONDS=600)
    monkeypatch.setattr(cli_module, "settings", config)
    return config


class TestIngestionCLI:
    """Test CLI commands for ingestion records."""

    def test_should_show_help(self):
        result = CliRunner().invoke(cli, ["--help"])

        assert result.exit_code == 0
        assert "Ingestion record management commands" in result.output

    def test_should_report_no_stale_records_on_empty_database(self, cli_settings):
        result = CliRunner().invoke(cli, ["stale"])

        assert result.exit_code == 0
        assert "No stale pending records" in result.output

    def test_should_list_stale_records_past_grace(self, cli_settings):
        now = datetime.now(timezone.utc)
        seed(
            cli_settings.DATABASE_URL,
            make_record("aaa", now - timedelta(hours=2), last_error="timed out"),
            make_record("bbb", now),
        )

        result = CliRunner().invoke(cli, ["stale"])

        assert result.exit_code == 0
        assert "1 stale pending record(s):" in result.output
        assert "aaa" in result.output
        assert "transfer=tx-aaa" in result.output
        assert "error=timed out" in result.output
        assert "bbb" not in result.output

    def test_should_honor_grace_override(self, cli_settings):
        now = datetime.now(timezone.utc)
        seed(cli_settings.DATABASE_URL, make_record("ccc", now - timedelta(seconds=30)))

        result = CliRunner().invoke(cli, ["stale", "--grace", "10"])

        assert result.exit_code == 0
        assert "ccc" in result.output

    def test_should_mark_record_failed(self, cli_settings):
        seed(cli_settings.DATABASE_URL, make_record("ddd", datetime.now(timezone.utc)))
        runner = CliRunner()

        first = runner.invoke(cli, ["fail", "ddd", "--reason", "refunded"])
        second = runner.invoke(cli, ["fail", "ddd", "--reason", "refunded"])
        stats = runner.invoke(cli, ["stats"])

        assert first.exit_code == 0
        assert "Record ddd marked failed" in first.output
        assert "is not pending; left unchanged" in second.output
        assert "Failed: 1" in stats.output
        assert "Total: 1" in stats.output

    def test_should_require_reason_to_fail(self, cli_settings):
        result = CliRunner().invoke(cli, ["fail", "ddd"])

        assert result.exit_code != 0
        assert "--reason" in result.output

    def test_should_report_unknown_record(self, cli_settings):
        result = CliRunner().invoke(cli, ["fail", "nope", "--reason", "x"])

        assert result.exit_code != 0
        assert "Record nope not found" in result.output

    def test_should_show_counts_per_status(self, cli_settings):
        seed(
            cli_settings.DATABASE_URL,
            make_record("eee", datetime.now(timezone.utc)),
            make_record(
                "fff", datetime.now(timezone.utc), status=RecordStatus.FAILED
            ),
        )

        result = CliRunner().invoke(cli, ["stats"])

        assert result.exit_code == 0
        assert "Pending: 1" in result.output
        assert "Stored: 0" in result.output
        assert "Failed: 1" in result.output
        assert "Total: 2" in result.output
