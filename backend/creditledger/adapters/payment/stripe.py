"""Stripe payment gateway adapter."""

import json
import logging
from typing import Any, Optional

import stripe

from creditledger.core.protocols.payment import PaymentGatewayProtocol
from creditledger.domains.billing.exceptions import AuthenticityFailureError, MalformedEventError

logger = logging.getLogger(__name__)


class StripePaymentGateway(PaymentGatewayProtocol):
    """Verifies Stripe webhook deliveries against the endpoint secret.

    The event is returned as a plain dict rather than a ``stripe.Event`` so
    the billing domain never depends on Stripe's object model.
    """

    def __init__(self, webhook_secret: str, tolerance_seconds: int = 300) -> None:
        if not webhook_secret:
            raise ValueError("STRIPE_WEBHOOK_SECRET is required when Stripe is enabled")
        self._webhook_secret = webhook_secret
        self._tolerance = tolerance_seconds

    def verify_webhook_signature(self, payload: bytes, signature: Optional[str]) -> dict[str, Any]:
        """Verify the ``Stripe-Signature`` header and decode the event."""
        if not signature:
            logger.warning("Rejected webhook delivery without a Stripe-Signature header")
            raise AuthenticityFailureError("Stripe signature missing")

        try:
            body = payload.decode("utf-8")
        except UnicodeDecodeError as e:
            raise MalformedEventError("Webhook body is not valid UTF-8") from e

        try:
            stripe.WebhookSignature.verify_header(
                body, signature, self._webhook_secret, tolerance=self._tolerance
            )
        except stripe.SignatureVerificationError as e:
            logger.warning(f"Webhook signature verification failed: {e}")
            raise AuthenticityFailureError() from e

        try:
            event = json.loads(body)
        except json.JSONDecodeError as e:
            raise MalformedEventError(f"Webhook body is not valid JSON: {e}") from e
        if not isinstance(event, dict):
            raise MalformedEventError("Webhook body is not a JSON object")
        return event
