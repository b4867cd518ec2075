"""Subscription state tracker."""

import logging
from datetime import datetime
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.core.datetime_utils import ensure_utc
from creditledger.core.shared_models import SubscriptionStatus
from creditledger.db.transaction import run_in_transaction
from creditledger.db.unit_of_work import UnitOfWork
from creditledger.domains.subscriptions.protocols import SubscriptionStateTrackerProtocol
from creditledger.domains.subscriptions.repository import SubscriptionRepositoryProtocol
from creditledger.domains.subscriptions.types import (
    SubscriptionSnapshot,
    SubscriptionState,
    TrackerOutcome,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class SubscriptionStateTracker(SubscriptionStateTrackerProtocol):
    """Applies subscription snapshots in event-time order.

    Usage::

        outcome = await tracker.apply(
            db, snapshot=snapshot, event_id=event.id, occurred_at=event.created, uow=uow
        )
        if not outcome.applied:
            ...  # a newer event already landed
    """

    def __init__(
        self,
        subscription_repo: SubscriptionRepositoryProtocol,
        *,
        store_timeout_seconds: float,
        store_max_attempts: int,
        store_retry_max_wait_seconds: float = 1.0,
    ) -> None:
        self._subscriptions = subscription_repo
        self._timeout = store_timeout_seconds
        self._max_attempts = store_max_attempts
        self._max_wait = store_retry_max_wait_seconds

    async def _run(
        self,
        db: AsyncSession,
        operation: str,
        work: Callable[[AsyncSession], Awaitable[T]],
        uow: Optional[UnitOfWork],
    ) -> T:
        if uow is not None:
            return await work(uow.session)
        return await run_in_transaction(
            db,
            lambda unit: work(unit.session),
            operation=operation,
            max_attempts=self._max_attempts,
            timeout_seconds=self._timeout,
            max_wait_seconds=self._max_wait,
        )

    async def apply(
        self,
        db: AsyncSession,
        *,
        snapshot: SubscriptionSnapshot,
        event_id: str,
        occurred_at: datetime,
        uow: Optional[UnitOfWork] = None,
    ) -> TrackerOutcome:
        """Store the snapshot unless a newer event has already been applied."""
        occurred_at = ensure_utc(occurred_at)
        ref = snapshot.subscription_ref

        async def _work(session: AsyncSession) -> TrackerOutcome:
            await self._subscriptions.lock(session, subscription_ref=ref)
            existing = await self._subscriptions.get(session, subscription_ref=ref)
            previous_status = SubscriptionStatus(existing.status) if existing else None

            applied = await self._subscriptions.upsert_if_newer(
                session, snapshot=snapshot, event_id=event_id, occurred_at=occurred_at
            )
            record = await self._subscriptions.get(session, subscription_ref=ref)
            state = SubscriptionState.from_model(record) if record else None

            if not applied:
                logger.info(
                    f"Stale event {event_id} for subscription {ref}: occurred at "
                    f"{occurred_at.isoformat()}, stored state is from "
                    f"{state.last_event_at.isoformat() if state else 'unknown'}"
                )
            return TrackerOutcome(applied=applied, previous_status=previous_status, record=state)

        return await self._run(db, "subscriptions.apply", _work, uow)

    async def get(
        self, db: AsyncSession, *, subscription_ref: str, uow: Optional[UnitOfWork] = None
    ) -> Optional[SubscriptionState]:
        """Stored state for a subscription, if any."""

        async def _work(session: AsyncSession) -> Optional[SubscriptionState]:
            record = await self._subscriptions.get(session, subscription_ref=subscription_ref)
            return SubscriptionState.from_model(record) if record else None

        return await self._run(db, "subscriptions.get", _work, uow)
