"""Unit of work around an AsyncSession.

Repository and service methods accept an optional ``uow``. When one is given
they only flush and leave the commit to whoever opened the unit of work, so
several mutations (mark event processed, reset ledger, update subscription)
land in a single transaction:

    async with UnitOfWork(db) as uow:
        await idempotency.mark_if_new(uow.session, event_id, event_type)
        await ledger.reset(db, ..., uow=uow)
        await uow.commit()

Leaving the block without ``commit()`` rolls everything back.
"""

from types import TracebackType
from typing import Optional, Type

from sqlalchemy.ext.asyncio import AsyncSession


class UnitOfWork:
    """Transaction scope over a single session."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session
        self._committed = False

    async def __aenter__(self) -> "UnitOfWork":
        self._committed = False
        return self

    async def __aexit__(
        self,
        exc_type: Optional[Type[BaseException]],
        exc: Optional[BaseException],
        tb: Optional[TracebackType],
    ) -> None:
        if not self._committed:
            await self.rollback()

    async def commit(self) -> None:
        await self.session.commit()
        self._committed = True

    async def rollback(self) -> None:
        await self.session.rollback()

    async def flush(self) -> None:
        await self.session.flush()

    @property
    def committed(self) -> bool:
        return self._committed
