"""Subscription record repository and protocol."""

from datetime import datetime
from typing import Optional, Protocol

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.core.datetime_utils import utc_now
from creditledger.db.dialect import conflict_insert, supports_row_locks
from creditledger.domains.subscriptions.types import SubscriptionSnapshot
from creditledger.models.subscription_record import SubscriptionRecord


class SubscriptionRepositoryProtocol(Protocol):
    """Data access for subscription records."""

    async def get(self, db: AsyncSession, *, subscription_ref: str) -> Optional[SubscriptionRecord]:
        """Get a record by provider subscription reference."""
        ...

    async def lock(self, db: AsyncSession, *, subscription_ref: str) -> None:
        """Serialize writers of one subscription until the transaction ends."""
        ...

    async def upsert_if_newer(
        self,
        db: AsyncSession,
        *,
        snapshot: SubscriptionSnapshot,
        event_id: str,
        occurred_at: datetime,
    ) -> bool:
        """Insert, or overwrite only when the stored event is not newer.

        Returns True when the row was written.
        """
        ...


class SubscriptionRepository(SubscriptionRepositoryProtocol):
    """SQLAlchemy implementation of SubscriptionRepositoryProtocol."""

    async def get(self, db: AsyncSession, *, subscription_ref: str) -> Optional[SubscriptionRecord]:
        """Get a record by provider subscription reference."""
        stmt = (
            select(SubscriptionRecord)
            .where(SubscriptionRecord.subscription_ref == subscription_ref)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def lock(self, db: AsyncSession, *, subscription_ref: str) -> None:
        """Take a transaction-scoped advisory lock keyed on the reference.

        Only PostgreSQL has advisory locks; elsewhere the conditional upsert
        alone decides ordering.
        """
        if not supports_row_locks(db):
            return
        await db.execute(select(func.pg_advisory_xact_lock(func.hashtext(subscription_ref))))

    async def upsert_if_newer(
        self,
        db: AsyncSession,
        *,
        snapshot: SubscriptionSnapshot,
        event_id: str,
        occurred_at: datetime,
    ) -> bool:
        """Insert, or overwrite only when the stored event is not newer.

        The ordering check lives in the ON CONFLICT clause, so it is evaluated
        against the row as committed rather than a value read earlier.
        """
        values = dict(
            subscription_ref=snapshot.subscription_ref,
            account_id=snapshot.account_id,
            status=snapshot.status.value,
            price_ref=snapshot.price_ref,
            period_start=snapshot.period_start,
            period_end=snapshot.period_end,
            cancel_at_period_end=snapshot.cancel_at_period_end,
            canceled_at=snapshot.canceled_at,
            ended_at=snapshot.ended_at,
            trial_start=snapshot.trial_start,
            trial_end=snapshot.trial_end,
            last_event_id=event_id,
            last_event_at=occurred_at,
        )
        stmt = conflict_insert(db, SubscriptionRecord).values(**values)
        updates = {k: v for k, v in values.items() if k != "subscription_ref"}
        updates["modified_at"] = utc_now()
        stmt = stmt.on_conflict_do_update(
            index_elements=["subscription_ref"],
            set_=updates,
            where=SubscriptionRecord.__table__.c.last_event_at <= stmt.excluded.last_event_at,
        ).returning(SubscriptionRecord.id)
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None
