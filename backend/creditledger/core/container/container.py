"""Dependency Injection Container.

The container is a simple immutable dataclass that holds protocol implementations.
It has no construction logic: that belongs in the factory.

Design principles:
- Container serves, factory builds
- Fail fast: all construction at startup
- Type safety: fields are protocol types
- Testing: construct directly with fakes
"""

from dataclasses import dataclass, replace
from typing import Any

from creditledger.core.protocols.payment import PaymentGatewayProtocol
from creditledger.domains.billing.protocols import BillingWebhookProtocol, PriceCatalogProtocol
from creditledger.domains.idempotency.protocols import IdempotencyStoreProtocol
from creditledger.domains.ledger.protocols import AccountLedgerProtocol
from creditledger.domains.subscriptions.protocols import SubscriptionStateTrackerProtocol
from creditledger.domains.tiers.protocols import TierPolicyProtocol
from creditledger.domains.usage.protocols import UsageGateProtocol


@dataclass(frozen=True)
class Container:
    """Immutable container holding all protocol implementations.

    Usage:
        # Production: use the global container built by factory
        from creditledger.core.container import container
        await container.ledger.spend(db, account_id=..., credits_used=5, action_type="chat")

        # Testing: construct directly with fakes (see backend/conftest.py
        # for the full test_container fixture)
        test_container = Container(ledger=AccountLedger(FakeAccountRepository(), ...), ...)

        # FastAPI endpoints: use Inject() to pull individual protocols
        from creditledger.api.deps import Inject
        async def my_endpoint(gate: UsageGateProtocol = Inject(UsageGateProtocol)):
            await gate.authorize(...)
    """

    # Tier classification table
    tier_policy: TierPolicyProtocol

    # Ledger domain: balances and spend log
    ledger: AccountLedgerProtocol

    # Subscriptions domain: provider subscription mirror
    tracker: SubscriptionStateTrackerProtocol

    # Idempotency domain: processed event markers
    idempotency: IdempotencyStoreProtocol

    # Billing domain
    price_catalog: PriceCatalogProtocol
    billing_webhook: BillingWebhookProtocol

    # Usage domain: allow/deny gate for metered actions
    usage_gate: UsageGateProtocol

    payment_gateway: PaymentGatewayProtocol

    # -----------------------------------------------------------------
    # Convenience methods
    # -----------------------------------------------------------------

    def replace(self, **changes: Any) -> "Container":
        """Create a new container with some dependencies replaced.

        Useful for partial overrides in tests:

            modified = container.replace(payment_gateway=FakePaymentGateway())

        Args:
            **changes: Dependency name -> new implementation

        Returns:
            New Container with specified dependencies replaced
        """
        return replace(self, **changes)
