"""Test configuration."""

import os
from collections.abc import Generator
from pathlib import Path
from typing import List

import pytest
from dotenv import load_dotenv
from pytest import Config, FixtureRequest

from app.core.logging import configure_logging

project_dir = Path(__file__).parent.parent

# Load test-specific configuration, never the production .env
env_test_file = project_dir / ".env.test"
if env_test_file.exists():
    load_dotenv(env_test_file, override=True)

# Keep a stray environment from pointing tests at real services
for _name in ("DATABASE_URL", "STORAGE_GATEWAY_URL", "SETTLEMENT_API_URL"):
    os.environ.pop(_name, None)

fixture = pytest.fixture


@fixture(scope="session")
def project_root() -> Path:
    """Get the project root directory."""
    return project_dir


pytest_plugins: List[str] = [
    "tests.fixtures.db",
    "tests.fixtures.settlement",
    "tests.fixtures.content_store",
    "tests.fixtures.api",
]


def get_worker_id() -> str:
    """Get the current worker ID for parallel test execution.

    Returns:
        str: Worker ID (e.g., 'gw0', 'gw1') or 'master' for single process
    """
    worker_id = os.environ.get("PYTEST_XDIST_WORKER", "")
    return worker_id if worker_id else "master"


@fixture(scope="session", name="worker_resources", autouse=True)
def worker_resources_fixture(request: FixtureRequest) -> Generator[None, None, None]:
    """Mark the process as under test for the whole session.

    Databases and content stores are per-test temporary directories, so
    workers never share state.

    Args:
        request: Pytest fixture request object

    Yields:
        None: Resource configuration context
    """
    os.environ["TESTING"] = "true"
    os.environ["TEST_LOG_FILE"] = f"test_{get_worker_id()}.log"

    yield


def pytest_configure(config: Config) -> None:
    """Configure pytest.

    Args:
        config: Pytest configuration object
    """
    # Configure logging for test environment
    configure_logging(testing=True)
    config.addinivalue_line("markers", "integration: mark test as an integration test")
