"""
Asynchronous Database Utilities Module

This module provides the asynchronous database plumbing used by the SQL
repositories: engine construction from settings, the session factory, a
session context manager with rollback on error, table creation and a
retrying health check.

**Security Note**: Ensure that the database connection URL (DATABASE_URL) is configured for SSL/TLS when
connecting over untrusted networks to prevent data interception (OWASP A02:2021 - Cryptographic Failures).
asyncpg does not accept 'sslmode' in connect_args; it is stripped from the URL here and must be configured
through the driver's own 'ssl' parameter if required. Avoid logging sensitive connection details to prevent
information disclosure (OWASP A09:2021 - Security Logging and Monitoring Failures).

Key Components:
    - create_engine_from_settings: Build the async engine for DATABASE_URL.
    - create_session_factory: A factory for creating asynchronous database sessions.
    - get_async_db: A context manager yielding a session, rolling back on error.
    - create_db_and_tables: Create the security core tables (mainly for test suites).
    - check_database_health: Verify connectivity with tenacity retries.
"""

from __future__ import annotations

import time
from contextlib import asynccontextmanager
from typing import AsyncGenerator, Optional

import structlog
from sqlalchemy import text
from sqlalchemy.engine import URL, make_url
from sqlalchemy.exc import OperationalError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine
from sqlmodel import SQLModel
from tenacity import AsyncRetrying, retry_if_exception_type, stop_after_attempt, wait_exponential
from tenacity.wait import wait_base

import authsentry.domain.entities  # noqa: F401  registers the tables on SQLModel.metadata
from authsentry.core.config.settings import Settings
from authsentry.core.config.settings import settings as default_settings

logger = structlog.get_logger(__name__)

_SYNC_POSTGRES_DRIVERS = ("postgresql", "postgresql+psycopg2")


def _build_async_url(database_url: str) -> URL:
    """
    Build the asynchronous database URL with proper handling of SSL parameters.

    A synchronous PostgreSQL driver is replaced with asyncpg and the sslmode
    query parameter, which asyncpg does not accept, is removed. Other URLs,
    SQLite included, are passed through unchanged.

    Returns:
        URL: The asynchronous database URL.
    """
    url = make_url(database_url)
    if url.drivername in _SYNC_POSTGRES_DRIVERS:
        url = url.set(drivername="postgresql+asyncpg")
    if "sslmode" in url.query:
        url = url.difference_update_query(["sslmode"])
    return url


def create_engine_from_settings(app_settings: Optional[Settings] = None) -> AsyncEngine:
    """Create the async engine described by the database settings.

    Pool sizing only applies to server databases; SQLite URLs (used by the
    test suite) get the driver defaults.
    """
    app_settings = app_settings or default_settings
    url = _build_async_url(app_settings.DATABASE_URL)

    engine_kwargs = {
        "echo": app_settings.DATABASE_ECHO,
        "pool_pre_ping": app_settings.DATABASE_POOL_PRE_PING,
    }
    if not url.drivername.startswith("sqlite"):
        engine_kwargs["pool_size"] = app_settings.DATABASE_POOL_SIZE
        engine_kwargs["max_overflow"] = app_settings.DATABASE_MAX_OVERFLOW

    engine = create_async_engine(url, **engine_kwargs)
    logger.debug("async_engine_created", driver=url.drivername, database=url.database)
    return engine


def create_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    return async_sessionmaker(bind=engine, class_=AsyncSession, expire_on_commit=False)


@asynccontextmanager
async def get_async_db(
    session_factory: async_sessionmaker[AsyncSession],
) -> AsyncGenerator[AsyncSession, None]:
    """
    Yield an AsyncSession for one unit of work.

    The transaction is rolled back if an exception occurs and the session is
    always closed.

    **Security Note**: Avoid logging sensitive session details to prevent information disclosure.
    """
    async with session_factory() as session:
        try:
            yield session
        except Exception:
            await session.rollback()
            logger.error("async_db_session_rollback")
            raise


async def create_db_and_tables(engine: AsyncEngine) -> None:
    """
    Create the security core tables using the async engine.

    Production schemas are managed by Alembic; this is for tests and local
    development.
    """
    start_time = time.time()
    async with engine.begin() as conn:
        await conn.run_sync(SQLModel.metadata.create_all)
    logger.info(
        "database_tables_created",
        execution_time=time.time() - start_time,
        tables=list(SQLModel.metadata.tables.keys()),
    )


async def check_database_health(
    engine: AsyncEngine,
    retries: Optional[int] = None,
    wait: Optional[wait_base] = None,
) -> bool:
    """
    Performs a health check on the database connection.

    Executes ``SELECT 1``, retrying connection errors with exponential
    backoff. Used at startup before the background sweeps are scheduled.

    **Security Note**: Health check failures are logged without connection
    details to prevent information disclosure.

    Args:
        engine: The engine to check.
        retries: Attempts before giving up (default: DATABASE_HEALTH_RETRIES).
        wait: Tenacity wait strategy between attempts.

    Returns:
        bool: True if database is healthy and responsive, False otherwise.
    """
    start_time = time.time()
    retrying = AsyncRetrying(
        stop=stop_after_attempt(retries or default_settings.DATABASE_HEALTH_RETRIES),
        wait=wait or wait_exponential(multiplier=1, min=4, max=10),
        retry=retry_if_exception_type(OperationalError),
        reraise=True,
    )
    try:
        async for attempt in retrying:
            with attempt:
                async with engine.connect() as conn:
                    await conn.execute(text("SELECT 1"))
    except Exception as e:
        logger.error(
            "database_health_check_failed",
            error=str(e),
            error_type=type(e).__name__,
            execution_time=time.time() - start_time,
        )
        return False

    logger.info("database_health_check_success", execution_time=time.time() - start_time)
    return True
