"""Schemas for the API."""

from .account import Account, AccountCreate, AccountLedger, LedgerStatistics, SpendEntry
from .billing import WebhookAck
from .health import LivenessResponse
from .usage import SpendAccepted, SpendDenied, SpendRequest

__all__ = [
    "Account",
    "AccountCreate",
    "AccountLedger",
    "LedgerStatistics",
    "LivenessResponse",
    "SpendAccepted",
    "SpendDenied",
    "SpendEntry",
    "SpendRequest",
    "WebhookAck",
]
