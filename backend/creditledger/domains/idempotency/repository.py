"""Processed event repository and protocol."""

from datetime import datetime
from typing import Protocol

from sqlalchemy import delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.db.dialect import conflict_insert
from creditledger.models.processed_event import ProcessedEvent


class ProcessedEventRepositoryProtocol(Protocol):
    """Data access for processed event markers."""

    async def insert_if_absent(
        self, db: AsyncSession, *, event_id: str, event_type: str, processed_at: datetime
    ) -> bool:
        """Insert a marker; False when one already exists."""
        ...

    async def exists(self, db: AsyncSession, *, event_id: str) -> bool:
        """Whether a marker exists."""
        ...

    async def delete_older_than(self, db: AsyncSession, *, cutoff: datetime) -> int:
        """Delete markers processed before ``cutoff``."""
        ...


class ProcessedEventRepository(ProcessedEventRepositoryProtocol):
    """SQLAlchemy implementation of ProcessedEventRepositoryProtocol."""

    async def insert_if_absent(
        self, db: AsyncSession, *, event_id: str, event_type: str, processed_at: datetime
    ) -> bool:
        """INSERT ... ON CONFLICT DO NOTHING RETURNING: a row back means we won."""
        stmt = (
            conflict_insert(db, ProcessedEvent)
            .values(event_id=event_id, event_type=event_type, processed_at=processed_at)
            .on_conflict_do_nothing(index_elements=["event_id"])
            .returning(ProcessedEvent.event_id)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def exists(self, db: AsyncSession, *, event_id: str) -> bool:
        stmt = select(ProcessedEvent.event_id).where(ProcessedEvent.event_id == event_id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def delete_older_than(self, db: AsyncSession, *, cutoff: datetime) -> int:
        stmt = (
            delete(ProcessedEvent)
            .where(ProcessedEvent.processed_at < cutoff)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.rowcount or 0
