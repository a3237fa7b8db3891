"""Database engine and session management.

This module provides:
- An async engine factory configured from settings
- An AsyncSession factory for the SQL ledger store
- A transaction context manager for explicit transaction control

Nothing here is created at import time: the application lifespan builds the
engine and hands the session factory to the store that needs it.
"""

import logging
from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

from sqlalchemy.ext.asyncio import (
    AsyncEngine,
    AsyncSession,
    async_sessionmaker,
    create_async_engine,
)

from settlement.core.config import Settings

logger = logging.getLogger(__name__)


def create_engine_from_settings(settings: Settings) -> AsyncEngine:
    """Create the async engine for ``settings.DATABASE_URL``.

    Pool sizing only applies to server databases; SQLite URLs get the
    driver defaults.
    """
    if settings.DATABASE_URL.startswith("sqlite"):
        return create_async_engine(settings.DATABASE_URL, echo=settings.DB_ECHO)

    return create_async_engine(
        settings.DATABASE_URL,
        echo=settings.DB_ECHO,
        pool_size=settings.DB_POOL_SIZE,
        max_overflow=settings.DB_MAX_OVERFLOW,
        pool_pre_ping=True,
    )


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    """Create the session factory bound to ``engine``."""
    return async_sessionmaker(
        engine,
        class_=AsyncSession,
        expire_on_commit=False,
        autoflush=False,
    )


@asynccontextmanager
async def transactional(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """Open a session and run its work in one transaction.

    Commits on success and rolls back on any exception, which is re-raised.

    Example:
        ```python
        async with transactional(session_factory) as db:
            db.add(LedgerRecord(key="log", value=[]))
        ```
    """
    async with session_factory() as db:
        try:
            yield db
            await db.commit()
            logger.debug("Transaction committed successfully")
        except Exception as e:
            await db.rollback()
            logger.error(f"Transaction rolled back due to error: {type(e).__name__}: {e}")
            raise
