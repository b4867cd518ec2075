"""Subscription domain protocols."""

from datetime import datetime
from typing import Optional, Protocol, runtime_checkable

from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.db.unit_of_work import UnitOfWork
from creditledger.domains.subscriptions.types import (
    SubscriptionSnapshot,
    SubscriptionState,
    TrackerOutcome,
)


@runtime_checkable
class SubscriptionStateTrackerProtocol(Protocol):
    """Durable mirror of provider subscriptions, ordered by event time."""

    async def apply(
        self,
        db: AsyncSession,
        *,
        snapshot: SubscriptionSnapshot,
        event_id: str,
        occurred_at: datetime,
        uow: Optional[UnitOfWork] = None,
    ) -> TrackerOutcome:
        """Store the snapshot unless a newer event has already been applied.

        Equal timestamps apply. A stale snapshot is not an error: the outcome
        has ``applied=False`` and the stored record is left untouched.
        """
        ...

    async def get(
        self, db: AsyncSession, *, subscription_ref: str, uow: Optional[UnitOfWork] = None
    ) -> Optional[SubscriptionState]:
        """Stored state for a subscription, if any."""
        ...
