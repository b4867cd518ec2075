"""Fake subscription repository for testing."""

from datetime import datetime
from typing import Optional
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.core.datetime_utils import utc_now
from creditledger.domains.subscriptions.types import SubscriptionSnapshot
from creditledger.models.subscription_record import SubscriptionRecord


class FakeSubscriptionRepository:
    """In-memory fake for SubscriptionRepositoryProtocol."""

    def __init__(self) -> None:
        self._records: dict[str, SubscriptionRecord] = {}
        self._calls: list[tuple] = []

    # ---- Test helpers ----

    def seed(self, *records: SubscriptionRecord) -> None:
        for record in records:
            self._records[record.subscription_ref] = record

    def call_count(self, method: str) -> int:
        return sum(1 for name, *_ in self._calls if name == method)

    def record(self, subscription_ref: str) -> Optional[SubscriptionRecord]:
        return self._records.get(subscription_ref)

    # ---- Protocol ----

    async def get(self, db: AsyncSession, *, subscription_ref: str) -> Optional[SubscriptionRecord]:
        self._calls.append(("get", subscription_ref))
        return self._records.get(subscription_ref)

    async def lock(self, db: AsyncSession, *, subscription_ref: str) -> None:
        self._calls.append(("lock", subscription_ref))

    async def upsert_if_newer(
        self,
        db: AsyncSession,
        *,
        snapshot: SubscriptionSnapshot,
        event_id: str,
        occurred_at: datetime,
    ) -> bool:
        self._calls.append(("upsert_if_newer", snapshot.subscription_ref, event_id))
        existing = self._records.get(snapshot.subscription_ref)
        if existing is not None and existing.last_event_at > occurred_at:
            return False

        now = utc_now()
        record = existing or SubscriptionRecord(
            id=uuid4(), subscription_ref=snapshot.subscription_ref, created_at=now
        )
        record.account_id = snapshot.account_id
        record.status = snapshot.status.value
        record.price_ref = snapshot.price_ref
        record.period_start = snapshot.period_start
        record.period_end = snapshot.period_end
        record.cancel_at_period_end = snapshot.cancel_at_period_end
        record.canceled_at = snapshot.canceled_at
        record.ended_at = snapshot.ended_at
        record.trial_start = snapshot.trial_start
        record.trial_end = snapshot.trial_end
        record.last_event_id = event_id
        record.last_event_at = occurred_at
        record.modified_at = now
        self._records[snapshot.subscription_ref] = record
        return True
