"""Billing domain test fixtures and helpers.

Provides ORM seeds, processor wiring and Stripe event shapes, following the
pattern from domains/ledger/tests/.
"""

import json
from datetime import datetime, timezone
from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest

from creditledger.adapters.payment.fake import VALID_SIGNATURE, FakePaymentGateway
from creditledger.core.shared_models import SubscriptionStatus, Tier
from creditledger.domains.billing.fakes.catalog import FakePriceCatalog
from creditledger.domains.billing.webhook_processor import BillingWebhookProcessor
from creditledger.domains.idempotency.fakes.repository import FakeProcessedEventRepository
from creditledger.domains.idempotency.store import IdempotencyStore
from creditledger.domains.ledger.fakes.repository import FakeAccountRepository
from creditledger.domains.ledger.service import AccountLedger
from creditledger.domains.subscriptions.fakes.repository import FakeSubscriptionRepository
from creditledger.domains.subscriptions.tracker import SubscriptionStateTracker
from creditledger.domains.tiers.policy import SubstringTierPolicy
from creditledger.models.account import Account

DEFAULT_ACCOUNT_ID = "acct_test"
DEFAULT_CUSTOMER = "cus_test"
DEFAULT_SUBSCRIPTION = "sub_test"
FREE_LIMIT = 10

T0 = 1_767_225_600  # 2026-01-01T00:00:00Z

PRICES = {
    "price_basic": "Starter Plan",
    "price_premium": "Premium Monthly",
    "price_enterprise": "Enterprise Annual",
}

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_account(account_id: str = DEFAULT_ACCOUNT_ID, **overrides: Any) -> Account:
    """Return a free-tier Account ORM model with a full balance."""
    now = datetime.now(timezone.utc)
    defaults = dict(
        id=account_id,
        tier=Tier.FREE.value,
        subscription_status=SubscriptionStatus.ACTIVE.value,
        credits_remaining=FREE_LIMIT,
        credit_limit=FREE_LIMIT,
        billing_customer_ref=DEFAULT_CUSTOMER,
        created_at=now,
        modified_at=now,
    )
    defaults.update(overrides)
    return Account(**defaults)


def _make_webhook_processor(
    *,
    payment_gateway: Optional[FakePaymentGateway] = None,
    account_repo: Optional[FakeAccountRepository] = None,
    subscription_repo: Optional[FakeSubscriptionRepository] = None,
    event_repo: Optional[FakeProcessedEventRepository] = None,
    catalog: Optional[FakePriceCatalog] = None,
) -> tuple[
    BillingWebhookProcessor,
    FakePaymentGateway,
    FakeAccountRepository,
    FakeSubscriptionRepository,
    FakeProcessedEventRepository,
    FakePriceCatalog,
]:
    """Build a BillingWebhookProcessor over real services and fake stores.

    Returns (processor, gateway, accounts, subscriptions, events, catalog).
    """
    gw = payment_gateway or FakePaymentGateway()
    ar = account_repo or FakeAccountRepository()
    sr = subscription_repo or FakeSubscriptionRepository()
    er = event_repo or FakeProcessedEventRepository()
    cat = catalog or FakePriceCatalog(PRICES)
    limits = dict(
        store_timeout_seconds=1.0, store_max_attempts=2, store_retry_max_wait_seconds=0.01
    )
    proc = BillingWebhookProcessor(
        payment_gateway=gw,
        ledger=AccountLedger(ar, free_credit_limit=FREE_LIMIT, **limits),
        tracker=SubscriptionStateTracker(sr, **limits),
        idempotency=IdempotencyStore(er, retention_days=30, **limits),
        tier_policy=SubstringTierPolicy(),
        price_catalog=cat,
        free_credit_limit=FREE_LIMIT,
        **limits,
    )
    return proc, gw, ar, sr, er, cat


def _make_event(
    event_type: str,
    data_object: dict[str, Any],
    event_id: str = "evt_test",
    created: int = T0,
    previous_attributes: Optional[dict[str, Any]] = None,
) -> dict[str, Any]:
    """Build a Stripe event envelope."""
    data: dict[str, Any] = {"object": data_object}
    if previous_attributes is not None:
        data["previous_attributes"] = previous_attributes
    return {
        "id": event_id,
        "object": "event",
        "type": event_type,
        "created": created,
        "livemode": False,
        "data": data,
    }


def _make_subscription(
    subscription_id: str = DEFAULT_SUBSCRIPTION,
    status: str = "active",
    price_id: str = "price_premium",
    **overrides: Any,
) -> dict[str, Any]:
    """Build a Stripe subscription object."""
    defaults = dict(
        id=subscription_id,
        object="subscription",
        customer=DEFAULT_CUSTOMER,
        status=status,
        cancel_at_period_end=False,
        canceled_at=None,
        ended_at=None,
        trial_start=None,
        trial_end=None,
        items={
            "object": "list",
            "data": [
                {
                    "id": "si_test",
                    "price": {"id": price_id, "nickname": None, "product": "prod_test"},
                    "quantity": 1,
                    "current_period_start": T0,
                    "current_period_end": T0 + 30 * 86400,
                }
            ],
        },
        metadata={"account_id": DEFAULT_ACCOUNT_ID},
    )
    defaults.update(overrides)
    return defaults


def _make_invoice(
    invoice_id: str = "in_test",
    subscription_id: Optional[str] = DEFAULT_SUBSCRIPTION,
    price_id: Optional[str] = "price_premium",
    **overrides: Any,
) -> dict[str, Any]:
    """Build a Stripe invoice object in the current API shape."""
    lines = []
    if price_id:
        lines.append(
            {
                "id": "il_test",
                "pricing": {"type": "price_details", "price_details": {"price": price_id}},
            }
        )
    defaults: dict[str, Any] = dict(
        id=invoice_id,
        object="invoice",
        customer=DEFAULT_CUSTOMER,
        status="paid",
        lines={"object": "list", "data": lines},
        metadata={},
    )
    if subscription_id:
        defaults["parent"] = {
            "type": "subscription_details",
            "subscription_details": {"subscription": subscription_id, "metadata": {}},
        }
    defaults.update(overrides)
    return defaults


def _payload(event: dict[str, Any]) -> bytes:
    return json.dumps(event).encode()


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db():
    """AsyncMock database session: fakes ignore it."""
    return AsyncMock()


@pytest.fixture
def signature():
    return VALID_SIGNATURE
