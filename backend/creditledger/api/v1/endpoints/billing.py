"""API endpoints for billing provider webhooks."""

from typing import Optional

from fastapi import Depends, Header, Request
from fastapi.routing import APIRouter
from sqlalchemy.ext.asyncio import AsyncSession

from creditledger import schemas
from creditledger.api import deps
from creditledger.api.deps import Inject
from creditledger.domains.billing.protocols import BillingWebhookProtocol

router = APIRouter()


@router.post("/webhook", response_model=schemas.WebhookAck, include_in_schema=False)
async def stripe_webhook(
    request: Request,
    stripe_signature: Optional[str] = Header(None),
    db: AsyncSession = Depends(deps.get_db),
    webhook: BillingWebhookProtocol = Inject(BillingWebhookProtocol),
) -> schemas.WebhookAck:
    """Handle Stripe webhook events.

    Security:
    - Verifies the signature over the raw body before parsing anything
    - Idempotent: redeliveries are acknowledged without effect

    Args:
        request: Raw HTTP request
        stripe_signature: Stripe signature header
        db: Database session
        webhook: Webhook processor (handles signature verification + processing)

    Returns:
        200 with the outcome for every handled, duplicate, stale or unknown event.
        Errors are mapped by the exception handlers: 400 for a bad signature or
        payload (not retried), 503 for transient failures (retried).
    """
    payload = await request.body()
    outcome = await webhook.process_webhook(db, payload, stripe_signature)
    return schemas.WebhookAck(outcome=outcome)
