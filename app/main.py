"""Main FastAPI application module."""

from fastapi import FastAPI, Response
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, RedirectResponse
from prometheus_client import CONTENT_TYPE_LATEST, generate_latest
from starlette import status

from app.api.v1.router import router as v1_router
from app.core.config import Settings, settings as default_settings
from app.core.events import create_lifespan
from app.core.logging import configure_logging
from app.middleware.correlation import CorrelationMiddleware
from app.middleware.errors import ErrorHandlingMiddleware, register_exception_handlers
from app.middleware.metrics import MetricsMiddleware
from app.middleware.security import SecurityHeadersMiddleware


def create_app(config: Settings | None = None) -> FastAPI:
    """Build the application.

    Args:
        config: Application settings, defaults to the global settings

    Returns:
        Configured FastAPI application
    """
    settings = config or default_settings

    application = FastAPI(
        title=settings.app_name,
        description="Settlement-gated content-addressed storage",
        version=settings.version,
        docs_url="/docs",
        redoc_url="/redoc",
        openapi_url="/openapi.json",
        default_response_class=JSONResponse,
        lifespan=create_lifespan(settings),
    )

    # Middleware added last runs first:
    # CORS -> error handling -> metrics -> correlation -> security headers
    application.add_middleware(
        SecurityHeadersMiddleware,
        download_prefix=f"{settings.api_prefix}/download/",
    )
    application.add_middleware(CorrelationMiddleware)
    application.add_middleware(MetricsMiddleware)
    application.add_middleware(ErrorHandlingMiddleware)
    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=settings.cors_allow_credentials,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Content-Type", "X-Request-ID"],
        expose_headers=["X-Request-ID", "Content-Disposition"],
        max_age=600,
    )
    register_exception_handlers(application)

    @application.get("/metrics", include_in_schema=False)
    async def metrics() -> Response:
        """Expose Prometheus metrics."""
        return Response(generate_latest(), media_type=CONTENT_TYPE_LATEST)

    @application.get("/", include_in_schema=False)
    async def root_redirect() -> Response:
        """Redirect root path to docs."""
        return RedirectResponse(
            url="/docs", status_code=status.HTTP_307_TEMPORARY_REDIRECT
        )

    application.include_router(v1_router, prefix=settings.api_prefix)
    return application


configure_logging(
    level=default_settings.LOG_LEVEL,
    json_logs=default_settings.JSON_LOGS,
    service=default_settings.app_name,
    version=default_settings.version,
)
app = create_app()
