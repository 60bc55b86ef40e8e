"""Correlation ID middleware for request tracking."""

import uuid

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.types import ASGIApp
from structlog.contextvars import bind_contextvars, clear_contextvars

HEADER_NAME = "X-Request-ID"
MAX_CORRELATION_ID_LENGTH = 64


def is_valid_correlation_id(value: str | None) -> bool:
    """Accept UUIDs and ``test-`` prefixed ids supplied by callers."""
    if not value or len(value) > MAX_CORRELATION_ID_LENGTH:
        return False

    if value.startswith("test-"):
        return value[5:].replace("-", "").isalnum()

    try:
        uuid.UUID(value)
        return True
    except (ValueError, AttributeError, TypeError):
        return False


class CorrelationMiddleware(BaseHTTPMiddleware):
    """
    Middleware to handle request correlation IDs.

    Assigns a correlation ID to each request and adds it to the request
    state, the ``X-Request-ID`` response header and the structlog context,
    so log events emitted while ingesting carry it.
    """

    def __init__(self, app: ASGIApp) -> None:
        """
        Initialize middleware.

        Args:
        ----
            app: The ASGI application
        """
        super().__init__(app)

    async def dispatch(
        self,
        request: Request,
        call_next: RequestResponseEndpoint,
    ) -> Response:
        """
        Process the request/response cycle.

        Args:
        ----
            request: The incoming request
            call_next: The next handler in the middleware chain

        Returns:
        -------
            The response from downstream handlers
        """
        clear_contextvars()

        header_value = request.headers.get(HEADER_NAME)
        correlation_id = (
            header_value
            if is_valid_correlation_id(header_value)
            else str(uuid.uuid4())
        )

        bind_contextvars(
            correlation_id=correlation_id,
            method=request.method,
            path=request.url.path,
        )
        request.state.correlation_id = correlation_id

        try:
            response = await call_next(request)
        finally:
            clear_contextvars()

        response.headers[HEADER_NAME] = correlation_id
        return response
