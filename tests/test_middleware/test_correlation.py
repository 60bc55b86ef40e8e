"""Correlation ID middleware tests."""

from typing import AsyncGenerator, cast
from uuid import UUID, uuid4

from fastapi import FastAPI, Request, status
from fastapi.responses import JSONResponse
from httpx import ASGITransport, AsyncClient
from pytest import fixture, mark
from pytest_asyncio import fixture as asyncio_fixture
from starlette.types import ASGIApp
from structlog.contextvars import get_contextvars

from app.middleware.correlation import CorrelationMiddleware, is_valid_correlation_id


@fixture
def correlation_app() -> FastAPI:
    """Get test application with correlation ID middleware."""
    app = FastAPI()

    @app.get("/test")
    async def test_endpoint(request: Request) -> JSONResponse:
        """Return the correlation ID and the bound log context."""
        return JSONResponse(
            {
                "correlation_id": request.state.correlation_id,
                "log_context": get_contextvars(),
            }
        )

    app.add_middleware(CorrelationMiddleware)
    return app


@asyncio_fixture
async def correlation_client(
    correlation_app: FastAPI,
) -> AsyncGenerator[AsyncClient, None]:
    """Get test client for correlation tests."""
    transport = ASGITransport(app=cast(ASGIApp, correlation_app))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@mark.asyncio
async def test_correlation_id_generation(correlation_client: AsyncClient) -> None:
    """Test correlation ID is generated when not provided."""
    response = await correlation_client.get("/test")
    assert response.status_code == status.HTTP_200_OK

    correlation_id = response.headers["X-Request-ID"]
    assert UUID(correlation_id)
    assert response.json()["correlation_id"] == correlation_id


@mark.asyncio
async def test_correlation_id_propagation(correlation_client: AsyncClient) -> None:
    """Test correlation ID is propagated when provided."""
    test_id = str(uuid4())
    response = await correlation_client.get("/test", headers={"X-Request-ID": test_id})

    assert response.headers["X-Request-ID"] == test_id
    assert response.json()["correlation_id"] == test_id


@mark.asyncio
async def test_correlation_id_invalid(correlation_client: AsyncClient) -> None:
    """Test new correlation ID is generated when invalid ID provided."""
    invalid_id = "not-a-uuid"
    response = await correlation_client.get(
        "/test", headers={"X-Request-ID": invalid_id}
    )

    correlation_id = response.headers["X-Request-ID"]
    assert correlation_id != invalid_id
    assert UUID(correlation_id)


@mark.asyncio
async def test_correlation_id_bound_to_log_context(
    correlation_client: AsyncClient,
) -> None:
    """Test log events emitted during the request carry the correlation ID."""
    response = await correlation_client.get(
        "/test", headers={"X-Request-ID": "test-upload-1"}
    )

    log_context = response.json()["log_context"]
    assert log_context["correlation_id"] == "test-upload-1"
    assert log_context["method"] == "GET"
    assert log_context["path"] == "/test"
    assert get_contextvars() == {}


def test_is_valid_correlation_id() -> None:
    """Test accepted correlation ID formats."""
    assert is_valid_correlation_id(str(uuid4()))
    assert is_valid_correlation_id("test-abc-123")
    assert not is_valid_correlation_id(None)
    assert not is_valid_correlation_id("")
    assert not is_valid_correlation_id("test-" + "a" * 64)
    assert not is_valid_correlation_id("test-<script>")
