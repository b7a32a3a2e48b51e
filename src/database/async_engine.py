"""Async engine and session factory for the RBAC store.

SQLite runs without a pool (each checkout opens a fresh aiosqlite
connection, which also keeps engines usable across event loops);
PostgreSQL uses SQLAlchemy's queue pool sized from ``DatabaseSettings``.

The app factory builds its own engine. The module-level accessors below
exist for scripts and one-off maintenance tasks.
"""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from sqlalchemy import event, text
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)
from sqlalchemy.pool import NullPool

from config.database import DatabaseSettings, get_database_settings

from .models import Base

logger = logging.getLogger(__name__)

_async_engine: Optional[AsyncEngine] = None
_async_session_factory: Optional[async_sessionmaker[AsyncSession]] = None


def _pool_options(settings: DatabaseSettings) -> Dict[str, Any]:
    if settings.is_sqlite:
        return {"poolclass": NullPool}
    return {
        "pool_size": settings.pool_size,
        "max_overflow": settings.max_overflow,
        "pool_timeout": settings.pool_timeout,
        "pool_recycle": settings.pool_recycle,
        "pool_pre_ping": settings.pool_pre_ping,
    }


def create_engine(settings: Optional[DatabaseSettings] = None) -> AsyncEngine:
    """
    Build an engine for the RBAC store.

    Args:
        settings: Store settings. Read from the environment if omitted.
    """
    settings = settings or get_database_settings()
    target = str(settings.sqlite_path) if settings.is_sqlite else f"{settings.host}/{settings.name}"
    logger.info(
        f"Creating database engine for {target}",
        extra={"extra_data": {"driver": settings.driver}},
    )

    engine = create_async_engine(
        settings.async_url,
        echo=settings.echo_sql,
        connect_args=settings.get_connect_args(),
        **_pool_options(settings),
    )
    _setup_engine_events(engine, settings)
    return engine


def _setup_engine_events(engine: AsyncEngine, settings: DatabaseSettings) -> None:
    if not settings.is_sqlite:
        return

    @event.listens_for(engine.sync_engine, "connect")
    def _sqlite_pragmas(dbapi_connection, connection_record):
        # WAL lets readers proceed while a role mutation is committing
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA journal_mode=WAL")
        cursor.execute("PRAGMA synchronous=NORMAL")
        cursor.close()


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Session factory whose objects stay readable after commit."""
    return async_sessionmaker(
        bind=engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


def get_async_engine(settings: Optional[DatabaseSettings] = None) -> AsyncEngine:
    """Process-wide engine, created on first use."""
    global _async_engine
    if _async_engine is None:
        _async_engine = create_engine(settings)
    return _async_engine


def get_async_session_factory(
    settings: Optional[DatabaseSettings] = None,
) -> async_sessionmaker[AsyncSession]:
    """Session factory bound to the process-wide engine."""
    global _async_session_factory
    if _async_session_factory is None:
        _async_session_factory = get_session_factory(get_async_engine(settings))
    return _async_session_factory


async def check_database_connection(engine: Optional[AsyncEngine] = None) -> bool:
    """Run ``SELECT 1``; False if the store cannot be reached."""
    try:
        async with (engine or get_async_engine()).connect() as conn:
            await conn.execute(text("SELECT 1"))
    except SQLAlchemyError as e:
        logger.error(f"Database connection check failed: {e}")
        return False
    return True


async def init_database(engine: Optional[AsyncEngine] = None) -> None:
    """Create the RBAC tables that are missing. Existing tables are left alone."""
    async with (engine or get_async_engine()).begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    logger.info("Database schema initialized")


async def close_database() -> None:
    """Dispose the process-wide engine, if one was created."""
    global _async_engine, _async_session_factory
    if _async_engine is None:
        return

    logger.info("Closing database engine")
    await _async_engine.dispose()
    _async_engine = None
    _async_session_factory = None
