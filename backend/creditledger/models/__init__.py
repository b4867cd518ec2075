"""Models for the application."""

from ._base import Base
from .account import Account
from .billing_price import BillingPrice
from .credit_reset import CreditReset
from .processed_event import ProcessedEvent
from .spend_entry import SpendEntry
from .subscription_record import SubscriptionRecord

__all__ = [
    "Account",
    "Base",
    "BillingPrice",
    "CreditReset",
    "ProcessedEvent",
    "SpendEntry",
    "SubscriptionRecord",
]
