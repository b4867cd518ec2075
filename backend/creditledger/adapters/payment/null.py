"""Null payment gateway for when Stripe is disabled.

Satisfies PaymentGatewayProtocol so the container can always be fully
constructed. Every webhook delivery is rejected as unauthenticated: without
a provider there is no secret to verify against.
"""

from typing import Any, Optional

from creditledger.core.protocols.payment import PaymentGatewayProtocol
from creditledger.domains.billing.exceptions import AuthenticityFailureError


class NullPaymentGateway(PaymentGatewayProtocol):
    """No-op payment gateway used when Stripe is disabled."""

    def verify_webhook_signature(self, payload: bytes, signature: Optional[str]) -> dict[str, Any]:
        """Reject: billing is not enabled."""
        raise AuthenticityFailureError("Billing is not enabled")
