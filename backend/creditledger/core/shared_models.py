"""Shared models for the backend."""

from enum import Enum


class Tier(str, Enum):
    """Subscription tier enum."""

    FREE = "free"
    BASIC = "basic"
    PREMIUM = "premium"
    ENTERPRISE = "enterprise"


class SubscriptionStatus(str, Enum):
    """Subscription status enum, mirrors the provider's lifecycle states."""

    ACTIVE = "active"
    TRIALING = "trialing"
    PAST_DUE = "past_due"
    CANCELED = "canceled"
    INCOMPLETE = "incomplete"

    @classmethod
    def from_provider(cls, value: str | None) -> "SubscriptionStatus":
        """Map a provider status string onto the states this ledger tracks.

        Stripe also reports ``unpaid``, ``paused`` and ``incomplete_expired``;
        those collapse onto the closest tracked state. Anything else raises
        ``ValueError``.
        """
        aliases = {
            "unpaid": cls.PAST_DUE,
            "paused": cls.PAST_DUE,
            "incomplete_expired": cls.CANCELED,
            "ended": cls.CANCELED,
        }
        if not value:
            return cls.INCOMPLETE
        if value in aliases:
            return aliases[value]
        return cls(value)


class CreditResetCause(str, Enum):
    """Why an account's tier, limit or balance was rewritten."""

    SUBSCRIPTION_ACTIVATED = "subscription_activated"
    INVOICE_PAID = "invoice_paid"
    SUBSCRIPTION_DELETED = "subscription_deleted"
