"""Fixtures for ledger integration tests.

Real services and repositories over a SQLite database; only the payment
gateway is faked so deliveries can be signed with VALID_SIGNATURE.
"""

import json
from dataclasses import dataclass
from typing import Any

import pytest_asyncio

from creditledger.adapters.payment.fake import VALID_SIGNATURE, FakePaymentGateway
from creditledger.domains.billing.catalog import PriceCatalog
from creditledger.domains.billing.types import WebhookOutcome
from creditledger.domains.billing.webhook_processor import BillingWebhookProcessor
from creditledger.domains.idempotency.repository import ProcessedEventRepository
from creditledger.domains.idempotency.store import IdempotencyStore
from creditledger.domains.ledger.repository import AccountRepository
from creditledger.domains.ledger.service import AccountLedger
from creditledger.domains.subscriptions.repository import SubscriptionRepository
from creditledger.domains.subscriptions.tracker import SubscriptionStateTracker
from creditledger.domains.tiers.policy import SubstringTierPolicy
from creditledger.domains.usage.gate import UsageGate
from creditledger.models.billing_price import BillingPrice

FREE_LIMIT = 10
LIMITS = dict(store_timeout_seconds=5.0, store_max_attempts=2, store_retry_max_wait_seconds=0.01)


@dataclass
class LedgerStack:
    ledger: AccountLedger
    tracker: SubscriptionStateTracker
    idempotency: IdempotencyStore
    processor: BillingWebhookProcessor
    gate: UsageGate

    async def deliver(self, db, event: dict[str, Any]) -> WebhookOutcome:
        return await self.processor.process_webhook(
            db, json.dumps(event).encode(), VALID_SIGNATURE
        )


@pytest_asyncio.fixture
async def stack(sqlite_db) -> LedgerStack:
    """Wired services plus a seeded price catalog."""
    sqlite_db.add_all(
        [
            BillingPrice(price_ref="price_basic", product_name="Starter Plan"),
            BillingPrice(price_ref="price_premium", product_name="Premium Monthly"),
            BillingPrice(price_ref="price_enterprise", product_name="Enterprise Annual"),
        ]
    )
    await sqlite_db.commit()

    policy = SubstringTierPolicy()
    ledger = AccountLedger(AccountRepository(), free_credit_limit=FREE_LIMIT, **LIMITS)
    tracker = SubscriptionStateTracker(SubscriptionRepository(), **LIMITS)
    idempotency = IdempotencyStore(ProcessedEventRepository(), retention_days=30, **LIMITS)
    processor = BillingWebhookProcessor(
        payment_gateway=FakePaymentGateway(),
        ledger=ledger,
        tracker=tracker,
        idempotency=idempotency,
        tier_policy=policy,
        price_catalog=PriceCatalog(),
        free_credit_limit=FREE_LIMIT,
        **LIMITS,
    )
    return LedgerStack(
        ledger=ledger,
        tracker=tracker,
        idempotency=idempotency,
        processor=processor,
        gate=UsageGate(ledger),
    )
