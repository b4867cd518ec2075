"""Tests for StripePaymentGateway signature verification.

Signatures are produced the way Stripe produces them: an HMAC-SHA256 of
``"{timestamp}.{payload}"`` keyed with the endpoint secret.
"""

import hashlib
import hmac
import json
import time

import pytest

from creditledger.adapters.payment.stripe import StripePaymentGateway
from creditledger.domains.billing.exceptions import AuthenticityFailureError, MalformedEventError

SECRET = "whsec_test_secret"


def _sign(payload: bytes, secret: str = SECRET, timestamp: int | None = None) -> str:
    timestamp = int(time.time()) if timestamp is None else timestamp
    signed = f"{timestamp}.{payload.decode()}".encode()
    digest = hmac.new(secret.encode(), signed, hashlib.sha256).hexdigest()
    return f"t={timestamp},v1={digest}"


def _payload() -> bytes:
    return json.dumps(
        {"id": "evt_1", "type": "invoice.paid", "created": 1, "data": {"object": {}}}
    ).encode()


class TestVerifyWebhookSignature:
    def test_valid_signature_returns_event(self):
        gateway = StripePaymentGateway(SECRET)
        payload = _payload()

        event = gateway.verify_webhook_signature(payload, _sign(payload))

        assert event["id"] == "evt_1"

    def test_missing_signature_rejected(self):
        gateway = StripePaymentGateway(SECRET)

        with pytest.raises(AuthenticityFailureError):
            gateway.verify_webhook_signature(_payload(), None)

    def test_wrong_secret_rejected(self):
        gateway = StripePaymentGateway(SECRET)
        payload = _payload()

        with pytest.raises(AuthenticityFailureError):
            gateway.verify_webhook_signature(payload, _sign(payload, secret="whsec_other"))

    def test_tampered_body_rejected(self):
        gateway = StripePaymentGateway(SECRET)
        payload = _payload()
        signature = _sign(payload)

        with pytest.raises(AuthenticityFailureError):
            gateway.verify_webhook_signature(payload.replace(b"evt_1", b"evt_2"), signature)

    def test_expired_timestamp_rejected(self):
        gateway = StripePaymentGateway(SECRET, tolerance_seconds=300)
        payload = _payload()

        with pytest.raises(AuthenticityFailureError):
            gateway.verify_webhook_signature(
                payload, _sign(payload, timestamp=int(time.time()) - 3600)
            )

    def test_signed_non_json_body_is_malformed(self):
        gateway = StripePaymentGateway(SECRET)
        payload = b"not json"

        with pytest.raises(MalformedEventError):
            gateway.verify_webhook_signature(payload, _sign(payload))

    def test_empty_secret_refused(self):
        with pytest.raises(ValueError):
            StripePaymentGateway("")
