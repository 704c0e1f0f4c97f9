"""Active block repository implementation using SQLAlchemy."""

from datetime import datetime
from typing import Optional

from sqlalchemy import delete, func, select
from structlog import get_logger

from authsentry.domain.entities.active_block import ActiveBlock
from authsentry.domain.interfaces.repositories import IActiveBlockRepository
from authsentry.infrastructure.repositories.base import SQLRepository

logger = get_logger(__name__)


class ActiveBlockRepository(SQLRepository, IActiveBlockRepository):
    """SQLAlchemy implementation of `IActiveBlockRepository`.

    Blocks are never updated in place; they are inserted, then deleted by an
    unblock or by the expiry sweep.
    """

    async def find_active(
        self, identifier: str, identifier_type: str, now: datetime
    ) -> Optional[ActiveBlock]:
        async with self._unit_of_work("find_active", identifier_type=identifier_type) as session:
            result = await session.execute(
                select(ActiveBlock)
                .where(
                    ActiveBlock.identifier_type == identifier_type,
                    ActiveBlock.identifier == identifier,
                    ActiveBlock.expires_at > now,
                )
                .order_by(ActiveBlock.expires_at.desc())
                .limit(1)
            )
            return result.scalars().first()

    async def add(self, block: ActiveBlock) -> ActiveBlock:
        async with self._unit_of_work("add", identifier_type=block.identifier_type) as session:
            session.add(block)
            await session.commit()
            await session.refresh(block)
            logger.debug(
                "Active block stored",
                block_id=block.id,
                identifier_type=block.identifier_type,
                reason=block.reason,
                operation="add",
            )
            return block

    async def delete_for(self, identifier: str, identifier_type: str) -> int:
        async with self._unit_of_work("delete_for", identifier_type=identifier_type) as session:
            result = await session.execute(
                delete(ActiveBlock).where(
                    ActiveBlock.identifier_type == identifier_type,
                    ActiveBlock.identifier == identifier,
                )
            )
            await session.commit()
            return result.rowcount or 0

    async def delete_expired(self, now: datetime) -> int:
        async with self._unit_of_work("delete_expired") as session:
            result = await session.execute(delete(ActiveBlock).where(ActiveBlock.expires_at <= now))
            await session.commit()
            return result.rowcount or 0

    async def count_active(self, now: datetime, identifier_type: Optional[str] = None) -> int:
        async with self._unit_of_work("count_active") as session:
            statement = select(func.count(ActiveBlock.id)).where(ActiveBlock.expires_at > now)
            if identifier_type is not None:
                statement = statement.where(ActiveBlock.identifier_type == identifier_type)
            result = await session.execute(statement)
            return result.scalar_one()
