"""Billing domain: verified provider events applied to the ledger exactly once.

Use Inject(BillingWebhookProtocol) in the webhook endpoint.
"""

from creditledger.domains.billing.exceptions import (
    AccountResolutionError,
    AuthenticityFailureError,
    DuplicateEventError,
    MalformedEventError,
    StaleEventError,
    UnknownEventTypeError,
)
from creditledger.domains.billing.protocols import BillingWebhookProtocol, PriceCatalogProtocol
from creditledger.domains.billing.types import BillingEvent, WebhookOutcome
from creditledger.domains.billing.webhook_processor import BillingWebhookProcessor

__all__ = [
    "AccountResolutionError",
    "AuthenticityFailureError",
    "BillingEvent",
    "BillingWebhookProcessor",
    "BillingWebhookProtocol",
    "DuplicateEventError",
    "MalformedEventError",
    "PriceCatalogProtocol",
    "StaleEventError",
    "UnknownEventTypeError",
    "WebhookOutcome",
]
