"""Tests for logging configuration."""

import json
import logging
from collections.abc import Generator

import pytest
import structlog
from structlog.stdlib import BoundLogger
from structlog.testing import capture_logs
from structlog.types import BindableLogger

from app.core.logging import (
    add_service_context,
    configure_logging,
    get_logger,
    get_request_logger,
    stringify_large_ints,
)


@pytest.fixture(autouse=True)
def restore_logging() -> Generator[None, None, None]:
    """Restore the test logging configuration after each test."""
    yield
    configure_logging(testing=True)


def test_configure_logging_renders_json() -> None:
    """Test JSON rendering is configured outside of tests."""
    configure_logging(json_logs=True)

    processors = structlog.get_config()["processors"]
    assert processors[-1].__class__.__name__ == "JSONRenderer"


def test_configure_logging_for_tests_renders_key_values() -> None:
    """Test the test configuration avoids JSON output."""
    configure_logging(testing=True)

    processors = structlog.get_config()["processors"]
    assert processors[-1].__class__.__name__ == "KeyValueRenderer"


def test_configure_logging_sets_level() -> None:
    """Test log level names map to stdlib levels."""
    configure_logging(level="warning")
    assert logging.getLogger("app").level == logging.WARNING

    configure_logging(level="nonsense")
    assert logging.getLogger("app").level == logging.INFO


def test_get_logger() -> None:
    """Test get_logger returns a configured logger."""
    logger = get_logger()
    assert isinstance(logger, BoundLogger | BindableLogger)


def test_get_request_logger_binds_request_id() -> None:
    """Test get_request_logger binds the request ID into every event."""
    with capture_logs() as logs:
        get_request_logger("test-request-id").info("upload_received", size=3)

    assert logs == [
        {
            "event": "upload_received",
            "log_level": "info",
            "request_id": "test-request-id",
            "size": 3,
        }
    ]


def test_module_loggers_carry_bound_fields() -> None:
    """Test the per-module binding used across the application."""
    with capture_logs() as logs:
        get_logger().bind(module="ingestion.coordinator").warning(
            "payment_not_confirmed", transfer_ref="tx-1", elapsed=2.0
        )

    entry = logs[-1]
    assert entry["module"] == "ingestion.coordinator"
    assert entry["transfer_ref"] == "tx-1"
    assert entry["log_level"] == "warning"


def test_json_renderer_serializes_event_fields() -> None:
    """Test events render as JSON lines."""
    configure_logging(json_logs=True)
    renderer = structlog.get_config()["processors"][-1]

    rendered = renderer(
        None,
        "info",
        {"event": "ingestion_completed", "size_bytes": 12, "deduplicated": False},
    )

    assert json.loads(rendered) == {
        "event": "ingestion_completed",
        "size_bytes": 12,
        "deduplicated": False,
    }


def test_json_logs_keep_large_amounts_exact() -> None:
    """Test token amounts beyond double precision are logged as strings."""
    configure_logging(json_logs=True)
    amount = 10**18 + 1

    event = stringify_large_ints(
        None, "info", {"payment_amount": amount, "size_bytes": 12, "ok": True}
    )

    assert event == {"payment_amount": str(amount), "size_bytes": 12, "ok": True}
    assert stringify_large_ints in structlog.get_config()["processors"]


def test_key_value_logs_leave_ints_alone() -> None:
    configure_logging(testing=True)

    assert stringify_large_ints not in structlog.get_config()["processors"]


def test_service_context_is_stamped() -> None:
    """Test the service name and version are added without overriding."""
    processor = add_service_context("Bridgestore", "0.1.0")

    assert processor(None, "info", {"event": "started"}) == {
        "event": "started",
        "service": "Bridgestore",
        "version": "0.1.0",
    }
    assert processor(None, "info", {"service": "worker"})["service"] == "worker"
