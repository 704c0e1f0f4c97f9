"""Security event repository implementation using SQLAlchemy.

The audit trail is append-only: this repository inserts and queries events
but offers no update or delete.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Iterable, List, Optional, Tuple

from sqlalchemy import func, select
from structlog import get_logger

from authsentry.domain.entities.security_event import SecurityEvent
from authsentry.domain.interfaces.repositories import ISecurityEventRepository
from authsentry.domain.value_objects.security_events import SecurityEventFilter
from authsentry.infrastructure.repositories.base import SQLRepository

logger = get_logger(__name__)


def _plain(value: Any) -> Any:
    return value.value if isinstance(value, Enum) else value


class SecurityEventRepository(SQLRepository, ISecurityEventRepository):
    """SQLAlchemy implementation of `ISecurityEventRepository`."""

    async def add(self, event: SecurityEvent) -> SecurityEvent:
        async with self._unit_of_work("add", event_type=event.event_type) as session:
            session.add(event)
            await session.commit()
            await session.refresh(event)
            logger.debug("Security event stored", event_id=event.id, event_type=event.event_type)
            return event

    async def list(
        self,
        filters: Optional[SecurityEventFilter] = None,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> List[SecurityEvent]:
        async with self._unit_of_work("list") as session:
            statement = select(SecurityEvent)
            if filters is not None:
                statement = statement.where(*self._conditions(filters))
            statement = statement.order_by(SecurityEvent.timestamp.desc(), SecurityEvent.id.desc())
            if offset:
                statement = statement.offset(offset)
            if limit is not None:
                statement = statement.limit(limit)
            result = await session.execute(statement)
            return list(result.scalars().all())

    async def count_since(self, event_type: str, ip_address: str, since: datetime) -> int:
        async with self._unit_of_work("count_since", event_type=event_type) as session:
            result = await session.execute(
                select(func.count(SecurityEvent.id)).where(
                    SecurityEvent.event_type == _plain(event_type),
                    SecurityEvent.ip_address == ip_address,
                    SecurityEvent.timestamp >= since,
                )
            )
            return result.scalar_one()

    async def has_login_success(
        self, user_id: str, ip_address: str, exclude_id: Optional[int] = None
    ) -> bool:
        async with self._unit_of_work("has_login_success") as session:
            statement = select(SecurityEvent.id).where(
                SecurityEvent.event_type == "login_success",
                SecurityEvent.user_id == str(user_id),
                SecurityEvent.ip_address == ip_address,
            )
            if exclude_id is not None:
                statement = statement.where(SecurityEvent.id != exclude_id)
            result = await session.execute(statement.limit(1))
            return result.scalars().first() is not None

    async def count_by_type(self, from_date: datetime, to_date: datetime) -> List[Tuple[str, int]]:
        async with self._unit_of_work("count_by_type") as session:
            total = func.count(SecurityEvent.id).label("total")
            result = await session.execute(
                select(SecurityEvent.event_type, total)
                .where(SecurityEvent.timestamp >= from_date, SecurityEvent.timestamp <= to_date)
                .group_by(SecurityEvent.event_type)
                .order_by(total.desc(), SecurityEvent.event_type)
            )
            return [(event_type, count) for event_type, count in result.all()]

    async def top_ip_addresses(
        self, event_type: str, from_date: datetime, to_date: datetime, limit: int
    ) -> List[Tuple[str, int]]:
        async with self._unit_of_work("top_ip_addresses", event_type=event_type) as session:
            total = func.count(SecurityEvent.id).label("total")
            result = await session.execute(
                select(SecurityEvent.ip_address, total)
                .where(
                    SecurityEvent.event_type == _plain(event_type),
                    SecurityEvent.ip_address.is_not(None),
                    SecurityEvent.timestamp >= from_date,
                    SecurityEvent.timestamp <= to_date,
                )
                .group_by(SecurityEvent.ip_address)
                .order_by(total.desc(), SecurityEvent.ip_address)
                .limit(limit)
            )
            return [(ip_address, count) for ip_address, count in result.all()]

    async def latest_with_severity(
        self,
        severities: Iterable[str],
        from_date: datetime,
        to_date: datetime,
        limit: int,
    ) -> List[SecurityEvent]:
        async with self._unit_of_work("latest_with_severity") as session:
            result = await session.execute(
                select(SecurityEvent)
                .where(
                    SecurityEvent.severity.in_([_plain(s) for s in severities]),
                    SecurityEvent.timestamp >= from_date,
                    SecurityEvent.timestamp <= to_date,
                )
                .order_by(SecurityEvent.timestamp.desc(), SecurityEvent.id.desc())
                .limit(limit)
            )
            return list(result.scalars().all())

    @staticmethod
    def _conditions(filters: SecurityEventFilter) -> List[Any]:
        conditions = []
        if filters.event_type is not None:
            conditions.append(SecurityEvent.event_type == _plain(filters.event_type))
        if filters.user_id is not None:
            conditions.append(SecurityEvent.user_id == str(filters.user_id))
        if filters.ip_address is not None:
            conditions.append(SecurityEvent.ip_address == filters.ip_address)
        if filters.severity is not None:
            conditions.append(SecurityEvent.severity == _plain(filters.severity))
        if filters.success is not None:
            conditions.append(SecurityEvent.success == filters.success)
        if filters.from_date is not None:
            conditions.append(SecurityEvent.timestamp >= filters.from_date)
        if filters.to_date is not None:
            conditions.append(SecurityEvent.timestamp <= filters.to_date)
        return conditions
