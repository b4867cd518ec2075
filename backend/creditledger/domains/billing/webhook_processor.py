"""Webhook processor for Stripe billing events.

Each verified event is applied in one transaction that starts by marking the
event id as processed. A redelivered event therefore finds its mark and does
nothing, and an event whose application fails rolls its mark back with
everything else, so the provider's redelivery gets a clean second attempt.
"""

from typing import Any, Awaitable, Callable, Optional, Sequence

from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.core.logging import ContextualLogger, logger
from creditledger.core.protocols.payment import PaymentGatewayProtocol
from creditledger.core.shared_models import CreditResetCause, SubscriptionStatus, Tier
from creditledger.db.transaction import run_in_transaction
from creditledger.db.unit_of_work import UnitOfWork
from creditledger.domains.billing.exceptions import (
    AccountResolutionError,
    AuthenticityFailureError,
    DuplicateEventError,
    MalformedEventError,
    StaleEventError,
    UnknownEventTypeError,
)
from creditledger.domains.billing.protocols import BillingWebhookProtocol, PriceCatalogProtocol
from creditledger.domains.billing.types import (
    INVOICE_PAID,
    INVOICE_PAYMENT_FAILED,
    INVOICE_PAYMENT_SUCCEEDED,
    SUBSCRIPTION_CREATED,
    SUBSCRIPTION_DELETED,
    SUBSCRIPTION_UPDATED,
    BillingEvent,
    PriceInfo,
    WebhookOutcome,
    customer_ref,
    invoice_price,
    invoice_subscription_ref,
    metadata_of,
    provider_status,
    subscription_price,
    subscription_snapshot,
)
from creditledger.domains.idempotency.protocols import IdempotencyStoreProtocol
from creditledger.domains.ledger.exceptions import AccountNotFoundError
from creditledger.domains.ledger.protocols import AccountLedgerProtocol
from creditledger.domains.subscriptions.protocols import SubscriptionStateTrackerProtocol
from creditledger.domains.subscriptions.types import SubscriptionState
from creditledger.domains.tiers.protocols import TierPolicyProtocol
from creditledger.domains.tiers.types import TierResolution

EventHandler = Callable[
    [AsyncSession, BillingEvent, UnitOfWork, ContextualLogger], Awaitable[WebhookOutcome]
]


class BillingWebhookProcessor(BillingWebhookProtocol):
    """Process Stripe webhook events for the credit ledger."""

    def __init__(
        self,
        payment_gateway: PaymentGatewayProtocol,
        ledger: AccountLedgerProtocol,
        tracker: SubscriptionStateTrackerProtocol,
        idempotency: IdempotencyStoreProtocol,
        tier_policy: TierPolicyProtocol,
        price_catalog: PriceCatalogProtocol,
        *,
        free_credit_limit: int,
        store_timeout_seconds: float,
        store_max_attempts: int,
        store_retry_max_wait_seconds: float = 1.0,
        account_metadata_keys: Sequence[str] = ("account_id", "userId"),
    ) -> None:
        """Initialize with all required dependencies."""
        self._payment_gateway = payment_gateway
        self._ledger = ledger
        self._tracker = tracker
        self._idempotency = idempotency
        self._tier_policy = tier_policy
        self._catalog = price_catalog
        self._free_credit_limit = free_credit_limit
        self._timeout = store_timeout_seconds
        self._max_attempts = store_max_attempts
        self._max_wait = store_retry_max_wait_seconds
        self._metadata_keys = tuple(account_metadata_keys)

        # Event handler mapping
        self.handlers: dict[str, EventHandler] = {
            SUBSCRIPTION_CREATED: self._handle_subscription_changed,
            SUBSCRIPTION_UPDATED: self._handle_subscription_changed,
            SUBSCRIPTION_DELETED: self._handle_subscription_deleted,
            INVOICE_PAID: self._handle_invoice_paid,
            INVOICE_PAYMENT_SUCCEEDED: self._handle_invoice_paid,
            INVOICE_PAYMENT_FAILED: self._handle_payment_failed,
        }

    # ------------------------------------------------------------------
    # Entry points
    # ------------------------------------------------------------------

    async def process_webhook(
        self, db: AsyncSession, payload: bytes, signature: Optional[str]
    ) -> WebhookOutcome:
        """Verify webhook signature and process the resulting event.

        Raises:
            AuthenticityFailureError: If the signature is missing or invalid
            MalformedEventError: If the verified body is not an event envelope
            TransientError: If the event could not be applied yet; safe to redeliver
        """
        try:
            envelope = self._payment_gateway.verify_webhook_signature(payload, signature)
        except AuthenticityFailureError as e:
            logger.with_context(security_event="webhook_authenticity_failure").warning(
                f"Rejected billing webhook: {e.message}"
            )
            raise

        event = BillingEvent.from_payload(envelope)
        return await self.process_event(db, event)

    async def process_event(self, db: AsyncSession, event: BillingEvent) -> WebhookOutcome:
        """Process a verified event exactly once."""
        log = logger.with_context(event_id=event.event_id, event_type=event.event_type)

        async def _work(uow: UnitOfWork) -> WebhookOutcome:
            try:
                await self._claim(db, event, uow)
                handler = self.handlers.get(event.event_type)
                if handler is None:
                    raise UnknownEventTypeError(event.event_type)
                log.info(f"Processing webhook event: {event.event_type}")
                return await handler(db, event, uow, log)
            except DuplicateEventError:
                log.info(f"Duplicate webhook event {event.event_id}, already processed")
                return WebhookOutcome.DUPLICATE
            except UnknownEventTypeError:
                log.info(f"Unhandled webhook event type: {event.event_type}")
                return WebhookOutcome.IGNORED
            except StaleEventError as e:
                log.info(f"StaleEvent: {e}")
                return WebhookOutcome.STALE
            except AccountNotFoundError as e:
                raise AccountResolutionError(event.event_id, e.message) from e

        try:
            return await run_in_transaction(
                db,
                _work,
                operation=f"billing.{event.event_type}",
                max_attempts=self._max_attempts,
                timeout_seconds=self._timeout,
                max_wait_seconds=self._max_wait,
            )
        except AccountResolutionError as e:
            log.warning(f"{e}; leaving the event for redelivery")
            raise
        except MalformedEventError as e:
            log.warning(f"Malformed {event.event_type} event: {e.message}")
            raise
        except Exception as e:
            log.error(f"Error handling {event.event_type}: {e}", exc_info=True)
            raise

    async def _claim(self, db: AsyncSession, event: BillingEvent, uow: UnitOfWork) -> None:
        is_new = await self._idempotency.mark_if_new(
            db, event_id=event.event_id, event_type=event.event_type, uow=uow
        )
        if not is_new:
            raise DuplicateEventError(event.event_id)

    # ------------------------------------------------------------------
    # Resolution helpers
    # ------------------------------------------------------------------

    async def _resolve_account_id(
        self,
        db: AsyncSession,
        event: BillingEvent,
        uow: UnitOfWork,
        *,
        metadata: dict[str, Any],
        subscription_ref: Optional[str] = None,
        state: Optional[SubscriptionState] = None,
        billing_customer_ref: Optional[str] = None,
    ) -> str:
        """Find the local account an event belongs to.

        Order: account id in metadata, then the stored subscription record,
        then the account linked to the provider customer. An account named in
        metadata must already exist: the subscription record references it.
        """
        for key in self._metadata_keys:
            value = metadata.get(key)
            if value:
                account = await self._ledger.get_account(db, account_id=str(value), uow=uow)
                return account.account_id

        if state is None and subscription_ref:
            state = await self._tracker.get(db, subscription_ref=subscription_ref, uow=uow)
        if state is not None:
            return state.account_id

        if billing_customer_ref:
            account = await self._ledger.find_by_customer(
                db, billing_customer_ref=billing_customer_ref, uow=uow
            )
            if account is not None:
                return account.account_id

        raise AccountResolutionError(
            event.event_id, "no account metadata, subscription record or linked customer"
        )

    async def _resolve_tier(self, uow: UnitOfWork, price: PriceInfo) -> TierResolution:
        """Catalog product name first, then whatever name the event carries."""
        product_name = None
        if price.price_ref:
            product_name = await self._catalog.product_name(uow.session, price_ref=price.price_ref)
        return self._tier_policy.resolve(product_name or price.name_hint)

    @staticmethod
    def _is_activation(
        event: BillingEvent,
        status: SubscriptionStatus,
        previous_status: Optional[SubscriptionStatus],
    ) -> bool:
        """Whether this event moves the subscription into active.

        ``previous_attributes.status`` is authoritative when present; otherwise
        the tracker's stored status is used, and an unseen subscription counts
        as not previously active.
        """
        if status != SubscriptionStatus.ACTIVE:
            return False
        if event.event_type == SUBSCRIPTION_CREATED:
            return True
        if "status" in event.previous_attributes:
            previous = provider_status(event.previous_attributes["status"])
            return previous != SubscriptionStatus.ACTIVE
        return previous_status != SubscriptionStatus.ACTIVE

    # ------------------------------------------------------------------
    # Event handlers
    # ------------------------------------------------------------------

    async def _handle_subscription_changed(
        self,
        db: AsyncSession,
        event: BillingEvent,
        uow: UnitOfWork,
        log: ContextualLogger,
    ) -> WebhookOutcome:
        """Handle subscription creation and updates."""
        subscription = event.data_object
        subscription_ref = event.object_id
        if not subscription_ref:
            raise MalformedEventError(f"Subscription id missing on {event.event_id}")

        account_id = await self._resolve_account_id(
            db,
            event,
            uow,
            metadata=metadata_of(subscription),
            subscription_ref=subscription_ref,
            billing_customer_ref=customer_ref(subscription),
        )
        log = log.with_context(subscription_ref=subscription_ref, account_id=account_id)

        snapshot = subscription_snapshot(subscription, account_id)
        outcome = await self._tracker.apply(
            db, snapshot=snapshot, event_id=event.event_id, occurred_at=event.occurred_at, uow=uow
        )
        if not outcome.applied:
            raise StaleEventError(event.event_id, subscription_ref)

        if not self._is_activation(event, snapshot.status, outcome.previous_status):
            log.info(
                f"Subscription {subscription_ref} recorded as {snapshot.status.value}, "
                f"credits unchanged"
            )
            return WebhookOutcome.PROCESSED

        resolution = await self._resolve_tier(uow, subscription_price(subscription))
        await self._ledger.reset(
            db,
            account_id=account_id,
            tier=resolution.tier,
            credit_limit=resolution.credit_limit,
            status=SubscriptionStatus.ACTIVE,
            cause=CreditResetCause.SUBSCRIPTION_ACTIVATED,
            cause_ref=event.event_id,
            uow=uow,
        )
        log.info(
            f"Subscription {subscription_ref} activated: {resolution.tier.value} "
            f"with {resolution.credit_limit} credits"
        )
        return WebhookOutcome.PROCESSED

    async def _handle_subscription_deleted(
        self,
        db: AsyncSession,
        event: BillingEvent,
        uow: UnitOfWork,
        log: ContextualLogger,
    ) -> WebhookOutcome:
        """Handle subscription cancellation: back to free, balance untouched."""
        subscription = event.data_object
        subscription_ref = event.object_id
        if not subscription_ref:
            raise MalformedEventError(f"Subscription id missing on {event.event_id}")

        account_id = await self._resolve_account_id(
            db,
            event,
            uow,
            metadata=metadata_of(subscription),
            subscription_ref=subscription_ref,
            billing_customer_ref=customer_ref(subscription),
        )
        log = log.with_context(subscription_ref=subscription_ref, account_id=account_id)

        snapshot = subscription_snapshot(
            subscription, account_id, status=SubscriptionStatus.CANCELED
        )
        outcome = await self._tracker.apply(
            db, snapshot=snapshot, event_id=event.event_id, occurred_at=event.occurred_at, uow=uow
        )
        if not outcome.applied:
            raise StaleEventError(event.event_id, subscription_ref)

        await self._ledger.downgrade(
            db,
            account_id=account_id,
            tier=Tier.FREE,
            credit_limit=self._free_credit_limit,
            status=SubscriptionStatus.CANCELED,
            cause_ref=event.event_id,
            uow=uow,
        )
        log.info(f"Subscription {subscription_ref} deleted, account moved to free tier")
        return WebhookOutcome.PROCESSED

    async def _handle_invoice_paid(
        self,
        db: AsyncSession,
        event: BillingEvent,
        uow: UnitOfWork,
        log: ContextualLogger,
    ) -> WebhookOutcome:
        """Handle a paid invoice: refill for the new period.

        ``invoice.paid`` and ``invoice.payment_succeeded`` arrive for the same
        invoice; the reset is keyed on the invoice id so only one refills.
        """
        invoice = event.data_object
        invoice_ref = event.object_id
        if not invoice_ref:
            raise MalformedEventError(f"Invoice id missing on {event.event_id}")

        subscription_ref = invoice_subscription_ref(invoice)
        if not subscription_ref:
            log.info(f"Invoice {invoice_ref} is not for a subscription, nothing to credit")
            return WebhookOutcome.IGNORED

        state = await self._tracker.get(db, subscription_ref=subscription_ref, uow=uow)
        if (
            state is not None
            and state.status == SubscriptionStatus.CANCELED
            and state.last_event_at > event.occurred_at
        ):
            raise StaleEventError(event.event_id, subscription_ref)

        account_id = await self._resolve_account_id(
            db,
            event,
            uow,
            metadata=metadata_of(invoice),
            state=state,
            billing_customer_ref=customer_ref(invoice),
        )
        log = log.with_context(subscription_ref=subscription_ref, account_id=account_id)

        price = invoice_price(invoice)
        if not price.price_ref and state is not None:
            price = PriceInfo(price_ref=state.price_ref)
        resolution = await self._resolve_tier(uow, price)

        outcome = await self._ledger.reset(
            db,
            account_id=account_id,
            tier=resolution.tier,
            credit_limit=resolution.credit_limit,
            status=SubscriptionStatus.ACTIVE,
            cause=CreditResetCause.INVOICE_PAID,
            cause_ref=invoice_ref,
            uow=uow,
        )
        if outcome.applied:
            log.info(
                f"Invoice {invoice_ref} paid: {resolution.tier.value} "
                f"refilled to {resolution.credit_limit} credits"
            )
        else:
            log.info(f"Invoice {invoice_ref} already credited")
        return WebhookOutcome.PROCESSED

    async def _handle_payment_failed(
        self,
        db: AsyncSession,
        event: BillingEvent,
        uow: UnitOfWork,
        log: ContextualLogger,
    ) -> WebhookOutcome:
        """Handle a failed payment: mark past due, credits untouched.

        A canceled subscription stays canceled, and a failure older than the
        last applied subscription event does not overwrite it.
        """
        invoice = event.data_object
        subscription_ref = invoice_subscription_ref(invoice)
        state = None
        if subscription_ref:
            state = await self._tracker.get(db, subscription_ref=subscription_ref, uow=uow)
        if state is not None and (
            state.status == SubscriptionStatus.CANCELED
            or state.last_event_at > event.occurred_at
        ):
            raise StaleEventError(event.event_id, subscription_ref)

        account_id = await self._resolve_account_id(
            db,
            event,
            uow,
            metadata=metadata_of(invoice),
            state=state,
            billing_customer_ref=customer_ref(invoice),
        )
        log = log.with_context(account_id=account_id)

        await self._ledger.update_status(
            db, account_id=account_id, status=SubscriptionStatus.PAST_DUE, uow=uow
        )
        log.warning(f"Payment failed for invoice {event.object_id}, account marked past_due")
        return WebhookOutcome.PROCESSED
