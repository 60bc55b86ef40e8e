"""Error handling middleware."""

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.status import (
    HTTP_404_NOT_FOUND,
    HTTP_422_UNPROCESSABLE_ENTITY,
    HTTP_500_INTERNAL_SERVER_ERROR,
)
from starlette.types import ASGIApp

from app.core.errors import IngestionError
from app.core.logging import get_logger

logger = get_logger()

# Map exception types to status codes (None means use exception's status_code)
ErrorMapping = dict[type[Exception], int | None]

ERROR_MAPPING: ErrorMapping = {
    KeyError: HTTP_404_NOT_FOUND,
    ValueError: HTTP_422_UNPROCESSABLE_ENTITY,
    RequestValidationError: HTTP_422_UNPROCESSABLE_ENTITY,
    HTTPException: None,
    IngestionError: None,
}

# Handled exceptions whose message is safe and useful to return as-is
_EXPECTED = (IngestionError, HTTPException, RequestValidationError)


def _format_validation_errors(exc: RequestValidationError) -> str:
    parts = []
    for error in exc.errors():
        location = ".".join(
            str(item) for item in error.get("loc", ()) if item != "body"
        )
        message = error.get("msg", "invalid")
        parts.append(f"{location}: {message}" if location else message)
    return "; ".join(parts) or "Request validation failed"


def get_error_detail(exc: Exception) -> tuple[str, int]:
    """Get error detail and status code from exception."""
    if isinstance(exc, IngestionError):
        return exc.message, exc.status_code
    if isinstance(exc, HTTPException):
        return str(exc.detail), exc.status_code
    if isinstance(exc, RequestValidationError):
        return _format_validation_errors(exc), HTTP_422_UNPROCESSABLE_ENTITY
    if isinstance(exc, KeyError):
        return f"'{exc.args[0]}'" if exc.args else str(exc), HTTP_404_NOT_FOUND

    mapped_status = ERROR_MAPPING.get(type(exc))
    if mapped_status is None:
        # Unexpected errors never leak their message
        return "Internal Server Error", HTTP_500_INTERNAL_SERVER_ERROR
    return str(exc.args[0] if exc.args else exc), mapped_status


def create_error_response(
    exc: Exception,
    detail: str,
    status_code: int,
    correlation_id: str | None,
) -> JSONResponse:
    """Create JSON error response with optional correlation ID."""
    ingestion_error = exc if isinstance(exc, IngestionError) else None
    response = JSONResponse(
        status_code=status_code,
        content={
            "error": exc.__class__.__name__,
            "kind": ingestion_error.kind if ingestion_error else None,
            "message": detail,
            "status_code": status_code,
            "record_id": ingestion_error.record_id if ingestion_error else None,
            "correlation_id": correlation_id if correlation_id else "unknown",
        },
        media_type="application/json",
    )
    if correlation_id:
        response.headers["X-Request-ID"] = correlation_id
    return response


async def handle_exception(request: Request, exc: Exception) -> JSONResponse:
    """
    Handle any exception and return a JSON response.

    Args:
    ----
        request: The request that caused the exception
        exc: The exception to handle

    Returns:
    -------
        A JSON response with error details
    """
    correlation_id = getattr(request.state, "correlation_id", None)
    detail, status_code = get_error_detail(exc)

    expected = isinstance(exc, _EXPECTED)
    log = logger.warning if expected and status_code < 500 else logger.error
    log(
        "request_error",
        error_type=exc.__class__.__name__,
        error_message=detail if expected else str(exc),
        status_code=status_code,
        path=request.url.path,
        method=request.method,
        correlation_id=correlation_id,
        exc_info=not expected,
    )
    return create_error_response(exc, detail, status_code, correlation_id)


def register_exception_handlers(app: FastAPI) -> None:
    """Route handled exceptions through the shared error format."""
    app.add_exception_handler(IngestionError, handle_exception)
    app.add_exception_handler(HTTPException, handle_exception)
    app.add_exception_handler(RequestValidationError, handle_exception)


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware to turn uncaught exceptions into consistent error responses.

    Every failure is rendered as
    ``{error, kind, message, status_code, record_id, correlation_id}``.
    Responses that routes return normally pass through untouched.
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
        Process the request/response cycle and handle errors.

        Args:
        ----
            request: The incoming request
            call_next: The next handler in the middleware chain

        Returns:
        -------
            The response from downstream handlers or error response
        """
        try:
            return await call_next(request)
        except Exception as exc:
            return await handle_exception(request, exc)
