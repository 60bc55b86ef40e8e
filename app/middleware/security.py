"""Security headers middleware."""

from fastapi import Response
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.types import ASGIApp

DEFAULT_SECURITY_HEADERS = {
    "X-Content-Type-Options": "nosniff",
    "X-Frame-Options": "DENY",
    "Referrer-Policy": "no-referrer",
    "Strict-Transport-Security": "max-age=31536000",
}

# Downloads are arbitrary user bytes and must never render in a browser context
DOWNLOAD_HEADERS = {
    "Content-Security-Policy": "default-src 'none'; sandbox",
    "Cache-Control": "private, no-transform",
}


class SecurityHeadersMiddleware(BaseHTTPMiddleware):
    """Middleware to add security headers to all responses."""

    def __init__(
        self,
        app: ASGIApp,
        headers: dict[str, str] | None = None,
        download_prefix: str = "/api/v1/download/",
    ) -> None:
        """
        Initialize middleware.

        Args:
        ----
            app: The ASGI application
            headers: Headers added to every response
            download_prefix: Path prefix of routes serving stored content
        """
        super().__init__(app)
        self.security_headers = dict(headers or DEFAULT_SECURITY_HEADERS)
        self.download_prefix = download_prefix

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
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
        response = await call_next(request)

        for header_name, header_value in self.security_headers.items():
            response.headers[header_name] = header_value

        if request.url.path.startswith(self.download_prefix):
            for header_name, header_value in DOWNLOAD_HEADERS.items():
                response.headers.setdefault(header_name, header_value)

        return response
