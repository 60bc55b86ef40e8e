"""Tests for metrics middleware."""

import pytest
from fastapi import FastAPI, HTTPException
from httpx import AsyncClient
from prometheus_client import REGISTRY

from app.core.config import Settings


@pytest.fixture(autouse=True)
def setup_test_routes(test_app: FastAPI, test_settings: Settings) -> None:
    """Setup test routes for metrics tests.

    Args:
        test_app: FastAPI application for testing
        test_settings: Settings the application was built with
    """

    @test_app.get(f"{test_settings.api_prefix}/test-success", include_in_schema=False)
    async def _test_success() -> dict[str, str]:
        return {"status": "success"}

    @test_app.get(f"{test_settings.api_prefix}/test-error", include_in_schema=False)
    async def _test_error() -> None:
        raise HTTPException(status_code=400, detail="Test error")


def sample(name: str, labels: dict[str, str]) -> float:
    return REGISTRY.get_sample_value(name, labels) or 0.0


@pytest.mark.asyncio
async def test_successful_request_metrics(
    test_app_async_client: AsyncClient, test_settings: Settings
) -> None:
    """Test metrics are recorded for successful requests."""
    path = f"{test_settings.api_prefix}/test-success"
    labels = {"method": "GET", "path": path}
    requests_before = sample("app_http_requests_total", labels)
    responses_before = sample("app_http_responses_total", {"status_code": "200"})
    durations_before = sample("app_http_request_duration_seconds_count", labels)

    response = await test_app_async_client.get(path)

    assert response.status_code == 200
    assert sample("app_http_requests_total", labels) == requests_before + 1
    assert (
        sample("app_http_responses_total", {"status_code": "200"})
        == responses_before + 1
    )
    assert (
        sample("app_http_request_duration_seconds_count", labels)
        == durations_before + 1
    )


@pytest.mark.asyncio
async def test_error_request_metrics(
    test_app_async_client: AsyncClient, test_settings: Settings
) -> None:
    """Test metrics are recorded for error responses."""
    before = sample("app_http_responses_total", {"status_code": "400"})

    response = await test_app_async_client.get(
        f"{test_settings.api_prefix}/test-error"
    )

    assert response.status_code == 400
    assert sample("app_http_responses_total", {"status_code": "400"}) == before + 1


@pytest.mark.asyncio
async def test_route_template_used_as_path_label(
    test_app_async_client: AsyncClient,
) -> None:
    """Test ids in the URL do not become label values."""
    labels = {"method": "GET", "path": "/api/v1/records/{record_id}"}
    before = sample("app_http_requests_total", labels)

    await test_app_async_client.get("/api/v1/records/abc")
    await test_app_async_client.get("/api/v1/records/def")

    assert sample("app_http_requests_total", labels) == before + 2
    assert sample(
        "app_http_requests_total", {"method": "GET", "path": "/api/v1/records/abc"}
    ) == 0.0
