"""Billing domain protocols.

BillingWebhookProtocol: the only thing the webhook endpoint needs injected.
PriceCatalogProtocol: price reference to product name lookup.
"""

from typing import Optional, Protocol, runtime_checkable

from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.domains.billing.types import BillingEvent, WebhookOutcome


@runtime_checkable
class BillingWebhookProtocol(Protocol):
    """Processes billing provider webhook deliveries."""

    async def process_webhook(
        self, db: AsyncSession, payload: bytes, signature: Optional[str]
    ) -> WebhookOutcome:
        """Verify a delivery and apply its event exactly once.

        Raises AuthenticityFailureError before touching any state when the
        signature does not verify.
        """
        ...

    async def process_event(self, db: AsyncSession, event: BillingEvent) -> WebhookOutcome:
        """Apply an already verified event exactly once."""
        ...


@runtime_checkable
class PriceCatalogProtocol(Protocol):
    """Read access to the provider price catalog."""

    async def product_name(self, db: AsyncSession, *, price_ref: str) -> Optional[str]:
        """Name of the product a price belongs to, if the price is known."""
        ...
