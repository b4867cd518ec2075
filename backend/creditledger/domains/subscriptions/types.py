"""Subscription domain types."""

from dataclasses import dataclass
from datetime import datetime
from typing import Optional

from creditledger.core.datetime_utils import ensure_utc
from creditledger.core.shared_models import SubscriptionStatus
from creditledger.models.subscription_record import SubscriptionRecord


@dataclass(frozen=True)
class SubscriptionSnapshot:
    """Provider subscription state carried by a billing event.

    ``price_ref`` is the price of the first subscription item; a subscription
    with several items is tracked by its primary price only.
    """

    subscription_ref: str
    account_id: str
    status: SubscriptionStatus
    price_ref: Optional[str] = None
    period_start: Optional[datetime] = None
    period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    canceled_at: Optional[datetime] = None
    ended_at: Optional[datetime] = None
    trial_start: Optional[datetime] = None
    trial_end: Optional[datetime] = None


@dataclass(frozen=True)
class SubscriptionState:
    """Stored subscription record, detached from the session."""

    subscription_ref: str
    account_id: str
    status: SubscriptionStatus
    price_ref: Optional[str]
    period_start: Optional[datetime]
    period_end: Optional[datetime]
    cancel_at_period_end: bool
    canceled_at: Optional[datetime]
    ended_at: Optional[datetime]
    last_event_id: str
    last_event_at: datetime

    @classmethod
    def from_model(cls, record: SubscriptionRecord) -> "SubscriptionState":
        return cls(
            subscription_ref=record.subscription_ref,
            account_id=record.account_id,
            status=SubscriptionStatus(record.status),
            price_ref=record.price_ref,
            period_start=ensure_utc(record.period_start),
            period_end=ensure_utc(record.period_end),
            cancel_at_period_end=bool(record.cancel_at_period_end),
            canceled_at=ensure_utc(record.canceled_at),
            ended_at=ensure_utc(record.ended_at),
            last_event_id=record.last_event_id,
            last_event_at=ensure_utc(record.last_event_at),
        )


@dataclass(frozen=True)
class TrackerOutcome:
    """Result of applying an event's snapshot.

    ``previous_status`` is the stored status before this apply, None on the
    first write. ``record`` is the stored state after the apply, which for a
    stale event is the newer state that was kept.
    """

    applied: bool
    previous_status: Optional[SubscriptionStatus]
    record: Optional[SubscriptionState]
