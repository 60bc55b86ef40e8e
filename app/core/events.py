"""Application startup and shutdown events."""

from collections.abc import AsyncIterator, Callable
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import Any

from prometheus_client import Counter, Gauge
from sqlalchemy import text
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from app.content_store.config import create_content_store
from app.content_store.store import ContentStore
from app.core.config import Settings, settings as default_settings
from app.core.db import create_engine_for_url, create_session_factory, init_models
from app.core.logging import get_logger
from app.ingestion.coordinator import IngestionCoordinator
from app.ingestion.retrieval import RetrievalService
from app.settlement.client import HttpSettlementClient, SettlementClient
from app.settlement.watcher import TransferWatcher

# Prometheus metrics
REQUESTS_TOTAL = Counter(
    "app_http_requests_total",
    "Total number of HTTP requests",
    labelnames=["method", "path"],
)

RESPONSES_TOTAL = Counter(
    "app_http_responses_total",
    "Total number of HTTP responses",
    labelnames=["status_code"],
)

STORAGE_REACHABLE = Gauge(
    "app_storage_reachable",
    "Whether the storage network answered the last health check",
)

DATABASE_REACHABLE = Gauge(
    "app_database_reachable",
    "Whether the database answered the last health check",
)

logger = get_logger().bind(module="events")


class AppStateDict:
    """Application state dictionary with health check capabilities."""

    def __init__(self) -> None:
        """Initialize state."""
        self.engine: AsyncEngine | None = None
        self.session_factory: async_sessionmaker[AsyncSession] | None = None
        self.content_store: ContentStore | None = None
        self.settlement_client: SettlementClient | None = None
        self.watcher: TransferWatcher | None = None
        self.coordinator: IngestionCoordinator | None = None
        self.retrieval: RetrievalService | None = None

    async def health_check(self) -> dict[str, Any]:
        """Check health of all components.

        Returns:
            Dict with overall status and per-component reachability
        """
        storage_reachable = False
        database_reachable = False

        if self.content_store is not None:
            try:
                storage_reachable = await self.content_store.ping()
            except Exception as e:
                logger.error("storage_health_check_failed", error=str(e))

        if self.session_factory is not None:
            try:
                async with self.session_factory() as session:
                    await session.execute(text("SELECT 1"))
                database_reachable = True
            except Exception as e:
                logger.error("database_health_check_failed", error=str(e))

        STORAGE_REACHABLE.set(1 if storage_reachable else 0)
        DATABASE_REACHABLE.set(1 if database_reachable else 0)

        if storage_reachable and database_reachable:
            status = "healthy"
        elif database_reachable:
            status = "degraded"
        else:
            status = "unhealthy"

        return {
            "status": status,
            "storage_reachable": storage_reachable,
            "database_reachable": database_reachable,
        }


async def build_app_state(config: Settings) -> AppStateDict:
    """Create the engine, collaborators and services for one application.

    Args:
        config: Application settings

    Returns:
        Populated application state
    """
    state = AppStateDict()
    state.engine = create_engine_for_url(config.DATABASE_URL, config.MAX_CONNECTIONS)
    await init_models(state.engine)
    state.session_factory = create_session_factory(state.engine)

    state.content_store = create_content_store(config)
    state.settlement_client = HttpSettlementClient(
        base_url=config.SETTLEMENT_API_URL,
        timeout=config.SETTLEMENT_REQUEST_TIMEOUT,
    )
    state.watcher = TransferWatcher(
        state.settlement_client,
        timeout=config.SETTLEMENT_WAIT_TIMEOUT,
        poll_interval=config.SETTLEMENT_POLL_INTERVAL,
        accept_executed=config.SETTLEMENT_ACCEPT_EXECUTED,
        max_concurrent_waits=config.SETTLEMENT_MAX_CONCURRENT_WAITS,
    )
    state.coordinator = IngestionCoordinator(
        state.session_factory,
        state.watcher,
        state.content_store,
        settings=config,
    )
    state.retrieval = RetrievalService(
        state.session_factory,
        state.content_store,
        verify=config.VERIFY_ON_RETRIEVE,
    )
    return state


async def close_app_state(state: AppStateDict) -> None:
    """Close HTTP clients and dispose the engine."""
    if state.settlement_client is not None:
        await state.settlement_client.close()
    if state.content_store is not None:
        await state.content_store.close()
    if state.engine is not None:
        await state.engine.dispose()


def create_lifespan(
    config: Settings | None = None,
) -> Callable[[Any], AbstractAsyncContextManager[None]]:
    """Create the application lifespan.

    Startup builds the services and stores them on ``app.state.services``;
    shutdown closes HTTP clients and disposes the engine.

    Args:
        config: Application settings, defaults to the global settings

    Returns:
        Lifespan context manager factory for FastAPI
    """

    @asynccontextmanager
    async def lifespan(app: Any) -> AsyncIterator[None]:
        settings = config or default_settings
        state = await build_app_state(settings)
        app.state.services = state
        logger.info(
            "application_started",
            storage_backend=settings.STORAGE_BACKEND,
            settlement_api=settings.SETTLEMENT_API_URL,
            settlement_timeout=settings.SETTLEMENT_WAIT_TIMEOUT,
            accept_executed=settings.SETTLEMENT_ACCEPT_EXECUTED,
        )
        try:
            yield
        finally:
            try:
                await close_app_state(state)
                logger.info("application_stopped")
            except Exception as e:
                logger.error("application_shutdown_failed", error=str(e))
                raise

    return lifespan
