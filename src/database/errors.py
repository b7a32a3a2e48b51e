"""Store-level errors and session scoping."""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

logger = logging.getLogger(__name__)


class StoreError(Exception):
    """Raised when a persistent store query or write fails."""
    pass


@asynccontextmanager
async def store_session(
    session_factory: async_sessionmaker[AsyncSession],
    operation: str,
    write: bool = False,
) -> AsyncGenerator[AsyncSession, None]:
    """
    Open a session for one store operation.

    Write sessions run inside a transaction that commits on exit and rolls
    back on error. SQLAlchemy failures surface as StoreError.

    Usage:
        async with store_session(factory, "select roles") as session:
            rows = await RoleRepository(session).select_all()
    """
    try:
        if write:
            async with session_factory.begin() as session:
                yield session
        else:
            async with session_factory() as session:
                yield session
    except SQLAlchemyError as e:
        logger.error(f"Store operation '{operation}' failed: {e}")
        raise StoreError(f"{operation} failed: {e}") from e
