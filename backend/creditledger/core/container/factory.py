"""Container Factory.

All construction logic lives here. The factory reads settings and builds
the container with environment-appropriate implementations.

Design principles:
- Single place for all wiring decisions
- Fail fast: broken wiring crashes at startup, not at 3am
- Testable: can unit test factory logic with mock settings
"""

from creditledger.core.config import Settings
from creditledger.core.container.container import Container
from creditledger.core.logging import logger
from creditledger.core.protocols.payment import PaymentGatewayProtocol
from creditledger.core.shared_models import Tier
from creditledger.domains.billing.catalog import PriceCatalog
from creditledger.domains.billing.webhook_processor import BillingWebhookProcessor
from creditledger.domains.idempotency.repository import ProcessedEventRepository
from creditledger.domains.idempotency.store import IdempotencyStore
from creditledger.domains.ledger.repository import AccountRepository
from creditledger.domains.ledger.service import AccountLedger
from creditledger.domains.subscriptions.repository import SubscriptionRepository
from creditledger.domains.subscriptions.tracker import SubscriptionStateTracker
from creditledger.domains.tiers.policy import SubstringTierPolicy
from creditledger.domains.tiers.protocols import TierPolicyProtocol
from creditledger.domains.tiers.types import TierResolution, rules_from_config
from creditledger.domains.usage.gate import UsageGate


def create_container(settings: Settings) -> Container:
    """Build container with environment-appropriate implementations.

    This is the single source of truth for dependency wiring. It reads
    the settings and decides which adapter implementation to use for
    each protocol.

    Args:
        settings: Application settings (from core/config.py)

    Returns:
        Fully constructed Container ready for use

    Example:
        # In main.py
        from creditledger.core.config import settings
        from creditledger.core.container import create_container

        container = create_container(settings)
    """
    store_limits = _store_limits(settings)

    tier_policy = _create_tier_policy(settings)
    payment_gateway = _create_payment_gateway(settings)

    ledger = AccountLedger(
        AccountRepository(),
        free_credit_limit=settings.FREE_TIER_CREDIT_LIMIT,
        recent_entries_limit=settings.LEDGER_RECENT_ENTRIES_LIMIT,
        **store_limits,
    )
    tracker = SubscriptionStateTracker(SubscriptionRepository(), **store_limits)
    idempotency = IdempotencyStore(
        ProcessedEventRepository(),
        retention_days=settings.PROCESSED_EVENT_RETENTION_DAYS,
        **store_limits,
    )
    price_catalog = PriceCatalog()

    billing_webhook = BillingWebhookProcessor(
        payment_gateway=payment_gateway,
        ledger=ledger,
        tracker=tracker,
        idempotency=idempotency,
        tier_policy=tier_policy,
        price_catalog=price_catalog,
        free_credit_limit=settings.FREE_TIER_CREDIT_LIMIT,
        account_metadata_keys=settings.ACCOUNT_METADATA_KEYS,
        **store_limits,
    )

    return Container(
        tier_policy=tier_policy,
        ledger=ledger,
        tracker=tracker,
        idempotency=idempotency,
        price_catalog=price_catalog,
        billing_webhook=billing_webhook,
        usage_gate=UsageGate(ledger),
        payment_gateway=payment_gateway,
    )


# ---------------------------------------------------------------------------
# Private factory functions
# ---------------------------------------------------------------------------


def _store_limits(settings: Settings) -> dict:
    """Timeout and retry bounds shared by every store-backed service."""
    return {
        "store_timeout_seconds": settings.STORE_TIMEOUT_SECONDS,
        "store_max_attempts": settings.STORE_MAX_ATTEMPTS,
        "store_retry_max_wait_seconds": settings.STORE_RETRY_MAX_WAIT_SECONDS,
    }


def _create_tier_policy(settings: Settings) -> TierPolicyProtocol:
    """Create the tier policy from the configured rule table."""
    default = TierResolution(
        tier=Tier(settings.TIER_DEFAULT_NAME), credit_limit=settings.TIER_DEFAULT_CREDIT_LIMIT
    )
    return SubstringTierPolicy(rules=rules_from_config(settings.TIER_RULES), default=default)


def _create_payment_gateway(settings: Settings) -> PaymentGatewayProtocol:
    """Create payment gateway: Stripe if enabled, otherwise a null implementation."""
    if settings.STRIPE_ENABLED:
        from creditledger.adapters.payment.stripe import StripePaymentGateway

        return StripePaymentGateway(
            webhook_secret=settings.STRIPE_WEBHOOK_SECRET,
            tolerance_seconds=settings.STRIPE_WEBHOOK_TOLERANCE_SECONDS,
        )

    from creditledger.adapters.payment.null import NullPaymentGateway

    logger.info("Stripe disabled, billing webhooks will be rejected")
    return NullPaymentGateway()
