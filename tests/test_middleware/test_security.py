"""Security headers middleware tests."""

from typing import AsyncGenerator, cast

from fastapi import FastAPI, Response
from httpx import ASGITransport, AsyncClient
from pytest import fixture, mark
from pytest_asyncio import fixture as asyncio_fixture
from starlette.types import ASGIApp

from app.middleware.security import DEFAULT_SECURITY_HEADERS, SecurityHeadersMiddleware


@fixture
def security_app() -> FastAPI:
    """Get test application with security headers middleware."""
    app = FastAPI()

    @app.get("/page")
    async def page() -> dict[str, str]:
        return {"status": "ok"}

    @app.get("/api/v1/download/{address}")
    async def download(address: str) -> Response:
        return Response(content=b"<script>alert(1)</script>", media_type="text/html")

    @app.get("/api/v1/download-cached/{address}")
    async def download_cached(address: str) -> Response:
        return Response(content=b"x", headers={"Cache-Control": "no-store"})

    app.add_middleware(SecurityHeadersMiddleware, download_prefix="/api/v1/download")
    return app


@asyncio_fixture
async def security_client(security_app: FastAPI) -> AsyncGenerator[AsyncClient, None]:
    """Get test client for security header tests."""
    transport = ASGITransport(app=cast(ASGIApp, security_app))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        yield client


@mark.asyncio
async def test_default_headers_on_every_response(security_client: AsyncClient) -> None:
    response = await security_client.get("/page")

    for name, value in DEFAULT_SECURITY_HEADERS.items():
        assert response.headers[name] == value
    assert "Content-Security-Policy" not in response.headers


@mark.asyncio
async def test_downloads_are_sandboxed(security_client: AsyncClient) -> None:
    """Test stored bytes can never execute in the browser."""
    response = await security_client.get("/api/v1/download/abc")

    assert response.headers["Content-Security-Policy"] == "default-src 'none'; sandbox"
    assert response.headers["Cache-Control"] == "private, no-transform"
    assert response.headers["X-Content-Type-Options"] == "nosniff"


@mark.asyncio
async def test_route_headers_are_kept(security_client: AsyncClient) -> None:
    """Test download headers do not override ones the route already set."""
    response = await security_client.get("/api/v1/download-cached/abc")

    assert response.headers["Cache-Control"] == "no-store"
    assert "sandbox" in response.headers["Content-Security-Policy"]


@mark.asyncio
async def test_custom_headers_replace_defaults() -> None:
    app = FastAPI()

    @app.get("/page")
    async def page() -> dict[str, str]:
        return {"status": "ok"}

    app.add_middleware(
        SecurityHeadersMiddleware, headers={"X-Frame-Options": "SAMEORIGIN"}
    )
    transport = ASGITransport(app=cast(ASGIApp, app))
    async with AsyncClient(transport=transport, base_url="http://test") as client:
        response = await client.get("/page")

    assert response.headers["X-Frame-Options"] == "SAMEORIGIN"
    assert "Strict-Transport-Security" not in response.headers
