"""Billing webhook schemas."""

from pydantic import BaseModel

from creditledger.domains.billing.types import WebhookOutcome


class WebhookAck(BaseModel):
    """Acknowledgement returned to the billing provider."""

    received: bool = True
    outcome: WebhookOutcome
