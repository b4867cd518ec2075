"""Fake payment gateway for testing.

Accepts a fixed signature and decodes the body as JSON. Records all calls
for assertions. No external API calls.
"""

import json
from typing import Any, Optional

from creditledger.core.protocols.payment import PaymentGatewayProtocol
from creditledger.domains.billing.exceptions import AuthenticityFailureError, MalformedEventError

VALID_SIGNATURE = "t=0,v1=fake"


class FakePaymentGateway(PaymentGatewayProtocol):
    """Test implementation of PaymentGatewayProtocol.

    Usage::

        fake = FakePaymentGateway()
        event = fake.verify_webhook_signature(json.dumps(envelope).encode(), VALID_SIGNATURE)
        assert fake.call_count("verify_webhook_signature") == 1
    """

    def __init__(
        self,
        valid_signature: str = VALID_SIGNATURE,
        should_raise: Optional[Exception] = None,
    ) -> None:
        self._valid_signature = valid_signature
        self._should_raise = should_raise
        self._calls: list[tuple[str, tuple, dict]] = []

    def _record(self, method: str, *args: Any, **kwargs: Any) -> None:
        self._calls.append((method, args, kwargs))
        if self._should_raise:
            raise self._should_raise

    # ---- Test helpers ----

    def call_count(self, method: str) -> int:
        """Number of times a method was called."""
        return sum(1 for name, _, _ in self._calls if name == method)

    # ---- Webhook operations ----

    def verify_webhook_signature(self, payload: bytes, signature: Optional[str]) -> dict[str, Any]:
        """Accept only the configured signature, then decode the body."""
        self._record("verify_webhook_signature", payload, signature)
        if signature != self._valid_signature:
            raise AuthenticityFailureError()
        try:
            event = json.loads(payload)
        except ValueError as e:
            raise MalformedEventError(str(e)) from e
        if not isinstance(event, dict):
            raise MalformedEventError("Webhook body is not a JSON object")
        return event
