"""Database connection and session management."""

from collections.abc import AsyncGenerator

from sqlalchemy import event
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from app.core.config import settings
from app.database.base import Base

# Lazy database initialization - don't create engine at import time
engine: AsyncEngine | None = None
async_session_factory: async_sessionmaker[AsyncSession] | None = None


def normalize_database_url(database_url: str) -> str:
    """Convert sync driver URLs to their async counterparts."""
    if database_url.startswith("postgresql+psycopg2://"):
        return database_url.replace(
            "postgresql+psycopg2://", "postgresql+asyncpg://", 1
        )
    if database_url.startswith("postgresql://"):
        return database_url.replace("postgresql://", "postgresql+asyncpg://", 1)
    if database_url.startswith("postgres://"):
        return database_url.replace("postgres://", "postgresql+asyncpg://", 1)
    if database_url.startswith("sqlite://"):
        return database_url.replace("sqlite://", "sqlite+aiosqlite://", 1)
    return database_url


def create_engine_for_url(
    database_url: str, max_connections: int = 10, echo: bool = False
) -> AsyncEngine:
    """Create an async engine for the given URL.

    SQLite gets a busy timeout and WAL journaling so concurrent ingestions
    wait on locks instead of failing immediately.
    """
    url = normalize_database_url(database_url)

    if url.startswith("sqlite"):
        new_engine = create_async_engine(
            url,
            echo=echo,
            connect_args={"timeout": 30},
        )

        @event.listens_for(new_engine.sync_engine, "connect")
        def _set_sqlite_pragmas(dbapi_connection, _connection_record):  # type: ignore[no-untyped-def]
            cursor = dbapi_connection.cursor()
            cursor.execute("PRAGMA journal_mode=WAL")
            cursor.execute("PRAGMA busy_timeout=30000")
            cursor.close()

        return new_engine

    return create_async_engine(
        url,
        pool_size=max_connections,
        max_overflow=0,
        pool_pre_ping=True,
        echo=echo,
    )


def create_session_factory(
    db_engine: AsyncEngine,
) -> async_sessionmaker[AsyncSession]:
    """Create the session factory used by repositories and services."""
    return async_sessionmaker(
        db_engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def _initialize_database() -> None:
    """Initialize database engine and session factory."""
    global engine, async_session_factory

    if engine is not None:
        return  # Already initialized

    engine = create_engine_for_url(settings.DATABASE_URL, settings.MAX_CONNECTIONS)
    async_session_factory = create_session_factory(engine)


def get_session_factory() -> async_sessionmaker[AsyncSession]:
    """Get the process-wide session factory, creating it on first use."""
    _initialize_database()

    if async_session_factory is None:
        raise RuntimeError("Database not initialized - cannot create session")
    return async_session_factory


async def init_models(db_engine: AsyncEngine | None = None) -> None:
    """Create tables and indexes that do not exist yet."""
    if db_engine is None:
        _initialize_database()
        db_engine = engine
    if db_engine is None:
        raise RuntimeError("Database not initialized - cannot create tables")

    # Import models so they register on Base.metadata
    from app.database import models  # noqa: F401

    async with db_engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)


async def dispose_engine() -> None:
    """Dispose the process-wide engine."""
    global engine, async_session_factory

    if engine is not None:
        await engine.dispose()
    engine = None
    async_session_factory = None


async def get_session() -> AsyncGenerator[AsyncSession, None]:
    """Get database session.

    Yields:
        AsyncSession: Database session
    """
    session_factory = get_session_factory()

    async with session_factory() as session:
        try:
            yield session
        finally:
            await session.close()
