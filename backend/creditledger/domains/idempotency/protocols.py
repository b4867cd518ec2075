"""Idempotency domain protocols."""

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.db.unit_of_work import UnitOfWork


@runtime_checkable
class IdempotencyStoreProtocol(Protocol):
    """Remembers which billing events have been processed."""

    async def mark_if_new(
        self,
        db: AsyncSession,
        *,
        event_id: str,
        event_type: str,
        uow: Optional[UnitOfWork] = None,
    ) -> bool:
        """Atomically record ``event_id``. True only for the first caller.

        Pass the ``uow`` the event's mutations run in: if that transaction
        rolls back, the mark rolls back with it and a redelivery is processed.
        """
        ...

    async def is_processed(self, db: AsyncSession, *, event_id: str) -> bool:
        """Whether ``event_id`` has been marked and is still retained."""
        ...

    async def purge_expired(self, db: AsyncSession, *, now: Optional[datetime] = None) -> int:
        """Delete marks older than the retention window. Returns the count deleted."""
        ...
