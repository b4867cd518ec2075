"""Payment gateway protocol.

Cross-cutting infrastructure protocol for the billing provider (Stripe).
The ledger only ever receives from the provider, so the surface is the
webhook verification step.

Direct consumers: BillingWebhookProcessor.
"""

from typing import Any, Optional, Protocol, runtime_checkable


@runtime_checkable
class PaymentGatewayProtocol(Protocol):
    """Protocol for payment gateway operations."""

    def verify_webhook_signature(self, payload: bytes, signature: Optional[str]) -> dict[str, Any]:
        """Verify a webhook delivery and return the decoded event envelope.

        Raises:
            AuthenticityFailureError: Missing, malformed or non-matching signature
            MalformedEventError: Verified body that is not a JSON object
        """
        ...
