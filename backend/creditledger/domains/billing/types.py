"""Billing domain types and pure helpers for reading provider payloads.

Verified webhook payloads are plain dicts in Stripe's event envelope shape::

    {"id": "evt_...", "type": "invoice.paid", "created": 1767225600,
     "data": {"object": {...}, "previous_attributes": {...}}}

Stripe has moved a few invoice fields between API versions (subscription
and line prices now live under ``parent`` and ``pricing``); the readers
below accept both shapes.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional

from creditledger.core.datetime_utils import from_unix
from creditledger.core.shared_models import SubscriptionStatus
from creditledger.domains.billing.exceptions import MalformedEventError
from creditledger.domains.subscriptions.types import SubscriptionSnapshot

SUBSCRIPTION_CREATED = "customer.subscription.created"
SUBSCRIPTION_UPDATED = "customer.subscription.updated"
SUBSCRIPTION_DELETED = "customer.subscription.deleted"
INVOICE_PAID = "invoice.paid"
INVOICE_PAYMENT_SUCCEEDED = "invoice.payment_succeeded"
INVOICE_PAYMENT_FAILED = "invoice.payment_failed"


class WebhookOutcome(str, Enum):
    """How a delivered event was handled. Every outcome is acknowledged."""

    PROCESSED = "processed"
    DUPLICATE = "duplicate"
    IGNORED = "ignored"
    STALE = "stale"


@dataclass(frozen=True)
class BillingEvent:
    """A verified provider event."""

    event_id: str
    event_type: str
    occurred_at: datetime
    data_object: dict[str, Any]
    previous_attributes: dict[str, Any] = field(default_factory=dict)
    livemode: bool = False

    @classmethod
    def from_payload(cls, payload: Any) -> "BillingEvent":
        """Parse an event envelope.

        Raises:
            MalformedEventError: If id, type, created or data.object is missing
        """
        if not isinstance(payload, dict):
            raise MalformedEventError("Event payload is not an object")

        event_id = payload.get("id")
        event_type = payload.get("type")
        created = payload.get("created")
        data = payload.get("data")
        if not event_id or not isinstance(event_id, str):
            raise MalformedEventError("Event id missing")
        if not event_type or not isinstance(event_type, str):
            raise MalformedEventError(f"Event type missing on {event_id}")
        if isinstance(created, bool) or not isinstance(created, (int, float)):
            raise MalformedEventError(f"Event timestamp missing on {event_id}")
        if not isinstance(data, dict) or not isinstance(data.get("object"), dict):
            raise MalformedEventError(f"Event data missing on {event_id}")

        return cls(
            event_id=event_id,
            event_type=event_type,
            occurred_at=from_unix(created),
            data_object=data["object"],
            previous_attributes=data.get("previous_attributes") or {},
            livemode=bool(payload.get("livemode", False)),
        )

    @property
    def object_id(self) -> Optional[str]:
        return self.data_object.get("id")


@dataclass(frozen=True)
class PriceInfo:
    """What an event tells us about the price being paid for."""

    price_ref: Optional[str] = None
    product_name: Optional[str] = None
    nickname: Optional[str] = None

    @property
    def name_hint(self) -> Optional[str]:
        """Product name carried on the event itself, used when the catalog has none."""
        return self.product_name or self.nickname


def _dig(obj: Any, *path: Any) -> Any:
    """Walk nested dicts/lists, returning None at the first missing step."""
    for step in path:
        if isinstance(obj, dict):
            obj = obj.get(step)
        elif isinstance(obj, list) and isinstance(step, int):
            obj = obj[step] if -len(obj) <= step < len(obj) else None
        else:
            return None
        if obj is None:
            return None
    return obj


def _ref(value: Any) -> Optional[str]:
    """Reference from a field that is either an id string or an expanded object."""
    if isinstance(value, str):
        return value or None
    if isinstance(value, dict):
        return value.get("id")
    return None


def _price_info(price: Any) -> PriceInfo:
    if isinstance(price, str):
        return PriceInfo(price_ref=price)
    if not isinstance(price, dict):
        return PriceInfo()
    product = price.get("product")
    product_name = product.get("name") if isinstance(product, dict) else None
    return PriceInfo(
        price_ref=price.get("id"),
        product_name=product_name,
        nickname=price.get("nickname"),
    )


def customer_ref(obj: dict[str, Any]) -> Optional[str]:
    """Provider customer reference on a subscription or invoice."""
    return _ref(obj.get("customer"))


def metadata_of(obj: dict[str, Any]) -> dict[str, Any]:
    """Merged metadata: invoice-level subscription metadata first, object metadata wins."""
    merged: dict[str, Any] = {}
    for candidate in (
        _dig(obj, "parent", "subscription_details", "metadata"),
        _dig(obj, "subscription_details", "metadata"),
        obj.get("metadata"),
    ):
        if isinstance(candidate, dict):
            merged.update(candidate)
    return merged


def subscription_price(subscription: dict[str, Any]) -> PriceInfo:
    """Price of the first subscription item."""
    return _price_info(_dig(subscription, "items", "data", 0, "price"))


def invoice_price(invoice: dict[str, Any]) -> PriceInfo:
    """Price of the first invoice line, if the invoice carries one."""
    line = _dig(invoice, "lines", "data", 0)
    if not isinstance(line, dict):
        return PriceInfo()
    if line.get("price"):
        return _price_info(line["price"])
    return _price_info(_dig(line, "pricing", "price_details", "price"))


def invoice_subscription_ref(invoice: dict[str, Any]) -> Optional[str]:
    """Subscription an invoice bills for."""
    return _ref(invoice.get("subscription")) or _ref(
        _dig(invoice, "parent", "subscription_details", "subscription")
    )


def provider_status(value: Optional[str]) -> SubscriptionStatus:
    """Map a provider status string, rejecting states this ledger does not know."""
    try:
        return SubscriptionStatus.from_provider(value)
    except ValueError as e:
        raise MalformedEventError(f"Unknown subscription status {value!r}") from e


def subscription_snapshot(
    subscription: dict[str, Any],
    account_id: str,
    status: Optional[SubscriptionStatus] = None,
) -> SubscriptionSnapshot:
    """Build the tracker snapshot from a provider subscription object.

    Period bounds moved from the subscription onto its items in newer API
    versions; both locations are read.
    """
    first_item = _dig(subscription, "items", "data", 0) or {}
    period_start = subscription.get("current_period_start") or first_item.get(
        "current_period_start"
    )
    period_end = subscription.get("current_period_end") or first_item.get("current_period_end")
    return SubscriptionSnapshot(
        subscription_ref=subscription["id"],
        account_id=account_id,
        status=status or provider_status(subscription.get("status")),
        price_ref=subscription_price(subscription).price_ref,
        period_start=from_unix(period_start),
        period_end=from_unix(period_end),
        cancel_at_period_end=bool(subscription.get("cancel_at_period_end", False)),
        canceled_at=from_unix(subscription.get("canceled_at")),
        ended_at=from_unix(subscription.get("ended_at")),
        trial_start=from_unix(subscription.get("trial_start")),
        trial_end=from_unix(subscription.get("trial_end")),
    )
