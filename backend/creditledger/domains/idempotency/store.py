"""Idempotency store for billing events.

A processed event is remembered for a retention window (30 days by default),
comfortably longer than the provider's redelivery horizon. Markers are
written in the same transaction as the event's effects.
"""

import asyncio
import logging
from datetime import datetime, timedelta
from typing import AsyncContextManager, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.core.datetime_utils import utc_now
from creditledger.db.transaction import run_in_transaction
from creditledger.db.unit_of_work import UnitOfWork
from creditledger.domains.idempotency.protocols import IdempotencyStoreProtocol
from creditledger.domains.idempotency.repository import ProcessedEventRepositoryProtocol

logger = logging.getLogger(__name__)


class IdempotencyStore(IdempotencyStoreProtocol):
    """Processed-event markers backed by the ``processed_event`` table."""

    def __init__(
        self,
        event_repo: ProcessedEventRepositoryProtocol,
        *,
        retention_days: int,
        store_timeout_seconds: float,
        store_max_attempts: int,
        store_retry_max_wait_seconds: float = 1.0,
    ) -> None:
        self._events = event_repo
        self._retention = timedelta(days=retention_days)
        self._timeout = store_timeout_seconds
        self._max_attempts = store_max_attempts
        self._max_wait = store_retry_max_wait_seconds

    @property
    def retention(self) -> timedelta:
        return self._retention

    async def mark_if_new(
        self,
        db: AsyncSession,
        *,
        event_id: str,
        event_type: str,
        uow: Optional[UnitOfWork] = None,
    ) -> bool:
        """Atomically record ``event_id``. True only for the first caller."""
        if uow is not None:
            return await self._events.insert_if_absent(
                uow.session, event_id=event_id, event_type=event_type, processed_at=utc_now()
            )
        return await run_in_transaction(
            db,
            lambda unit: self._events.insert_if_absent(
                unit.session, event_id=event_id, event_type=event_type, processed_at=utc_now()
            ),
            operation="idempotency.mark_if_new",
            max_attempts=self._max_attempts,
            timeout_seconds=self._timeout,
            max_wait_seconds=self._max_wait,
        )

    async def is_processed(self, db: AsyncSession, *, event_id: str) -> bool:
        return await self._events.exists(db, event_id=event_id)

    async def purge_expired(self, db: AsyncSession, *, now: Optional[datetime] = None) -> int:
        """Delete marks older than the retention window. Returns the count deleted."""
        cutoff = (now or utc_now()) - self._retention
        deleted = await run_in_transaction(
            db,
            lambda unit: self._events.delete_older_than(unit.session, cutoff=cutoff),
            operation="idempotency.purge_expired",
            max_attempts=self._max_attempts,
            timeout_seconds=self._timeout,
            max_wait_seconds=self._max_wait,
        )
        if deleted:
            logger.info(
                f"Purged {deleted} processed event marker(s) older than {cutoff.isoformat()}"
            )
        return deleted


async def run_purge_loop(
    store: IdempotencyStoreProtocol,
    session_factory: Callable[[], AsyncContextManager[AsyncSession]],
    *,
    interval_seconds: float,
) -> None:
    """Purge expired markers every ``interval_seconds`` until cancelled.

    A failed pass is logged and retried on the next tick.
    """
    logger.info(f"Processed event purge loop started (interval={interval_seconds}s)")
    while True:
        try:
            async with session_factory() as db:
                await store.purge_expired(db)
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.warning(f"Processed event purge failed, will retry next interval: {e}")
        await asyncio.sleep(interval_seconds)
