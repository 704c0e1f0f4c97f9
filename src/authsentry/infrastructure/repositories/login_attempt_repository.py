"""Login attempt counter repository implementation using SQLAlchemy.

Counters are keyed by ``(identifier, identifier_type)`` with a unique
constraint, so concurrent first failures for the same pair race on insert.
The loser of that race re-reads the winner's row and increments it.
"""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession
from structlog import get_logger

from authsentry.domain.entities.login_attempt import LoginAttempt
from authsentry.domain.interfaces.repositories import ILoginAttemptRepository
from authsentry.infrastructure.repositories.base import SQLRepository

logger = get_logger(__name__)


class _InsertRaced(Exception):
    """A concurrent request inserted the same counter first."""


class LoginAttemptRepository(SQLRepository, ILoginAttemptRepository):
    """SQLAlchemy implementation of `ILoginAttemptRepository`."""

    async def get(self, identifier: str, identifier_type: str) -> Optional[LoginAttempt]:
        async with self._unit_of_work("get", identifier_type=identifier_type) as session:
            attempt = await self._select(session, identifier, identifier_type)
            logger.debug(
                "Login attempt lookup completed",
                identifier_type=identifier_type,
                found=attempt is not None,
                operation="get",
            )
            return attempt

    async def record_attempt(
        self,
        identifier: str,
        identifier_type: str,
        *,
        now: datetime,
        stale_before: datetime,
        expires_at: datetime,
    ) -> LoginAttempt:
        try:
            return await self._record(identifier, identifier_type, now, stale_before, expires_at)
        except _InsertRaced:
            logger.debug(
                "Login attempt insert raced, retrying as update",
                identifier_type=identifier_type,
                operation="record_attempt",
            )
        return await self._record(
            identifier, identifier_type, now, stale_before, expires_at, retrying=True
        )

    async def _record(
        self,
        identifier: str,
        identifier_type: str,
        now: datetime,
        stale_before: datetime,
        expires_at: datetime,
        retrying: bool = False,
    ) -> LoginAttempt:
        async with self._unit_of_work("record_attempt", identifier_type=identifier_type) as session:
            attempt = await self._select(session, identifier, identifier_type)
            if attempt is None:
                attempt = LoginAttempt(
                    identifier=identifier,
                    identifier_type=identifier_type,
                    attempt_count=1,
                    first_attempt_at=now,
                    last_attempt_at=now,
                    expires_at=expires_at,
                    created_at=now,
                )
                session.add(attempt)
            elif attempt.last_attempt_at > stale_before:
                attempt.attempt_count += 1
                attempt.last_attempt_at = now
                attempt.expires_at = expires_at
            else:
                # Stale window: restart the counter in place
                attempt.attempt_count = 1
                attempt.first_attempt_at = now
                attempt.last_attempt_at = now
                attempt.expires_at = expires_at

            try:
                await session.commit()
            except IntegrityError:
                if retrying:
                    raise
                raise _InsertRaced() from None
            await session.refresh(attempt)

        logger.debug(
            "Login attempt recorded",
            identifier_type=identifier_type,
            attempt_count=attempt.attempt_count,
            operation="record_attempt",
        )
        return attempt

    async def delete_for(self, identifier: str, identifier_type: str) -> int:
        async with self._unit_of_work("delete_for", identifier_type=identifier_type) as session:
            result = await session.execute(
                delete(LoginAttempt).where(
                    LoginAttempt.identifier_type == identifier_type,
                    LoginAttempt.identifier == identifier,
                )
            )
            await session.commit()
            return result.rowcount or 0

    async def delete_expired(self, now: datetime) -> int:
        async with self._unit_of_work("delete_expired") as session:
            result = await session.execute(delete(LoginAttempt).where(LoginAttempt.expires_at <= now))
            await session.commit()
            return result.rowcount or 0

    async def count_all(self) -> int:
        async with self._unit_of_work("count_all") as session:
            result = await session.execute(select(func.count(LoginAttempt.id)))
            return result.scalar_one()

    async def count_recent(self, since: datetime) -> int:
        async with self._unit_of_work("count_recent") as session:
            result = await session.execute(
                select(func.count(LoginAttempt.id)).where(LoginAttempt.last_attempt_at > since)
            )
            return result.scalar_one()

    @staticmethod
    async def _select(
        session: AsyncSession, identifier: str, identifier_type: str
    ) -> Optional[LoginAttempt]:
        result = await session.execute(
            select(LoginAttempt).where(
                LoginAttempt.identifier_type == identifier_type,
                LoginAttempt.identifier == identifier,
            )
        )
        return result.scalars().first()
