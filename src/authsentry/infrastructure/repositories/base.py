"""Shared unit-of-work handling for the SQL repositories."""

from contextlib import asynccontextmanager
from typing import AsyncGenerator

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from structlog import get_logger

from authsentry.core.exceptions import DatabaseError
from authsentry.infrastructure.database import get_async_db

logger = get_logger(__name__)


class SQLRepository:
    """Base class for repositories that open one session per call.

    Each public repository method is a unit of work: it opens a session,
    commits what it changed and closes the session. The session is rolled
    back on any error; driver errors are logged with the operation name and
    re-raised as `DatabaseError`.
    """

    def __init__(self, session_factory: async_sessionmaker[AsyncSession]):
        self._session_factory = session_factory

    @asynccontextmanager
    async def _unit_of_work(self, operation: str, **context) -> AsyncGenerator[AsyncSession, None]:
        try:
            async with get_async_db(self._session_factory) as session:
                yield session
        except SQLAlchemyError as e:
            logger.error(
                "Repository operation failed",
                repository=type(self).__name__,
                operation=operation,
                error=str(e),
                error_type=type(e).__name__,
                **context,
            )
            raise DatabaseError(f"Database operation '{operation}' failed") from e
