"""Ledger domain: balances, spend log and billing-driven resets.

Use Inject(AccountLedgerProtocol) in FastAPI endpoints for the singleton ledger.
"""

from creditledger.domains.ledger.exceptions import (
    AccountNotFoundError,
    InsufficientCreditsError,
    InvalidSpendAmountError,
)
from creditledger.domains.ledger.protocols import AccountLedgerProtocol
from creditledger.domains.ledger.service import AccountLedger

__all__ = [
    "AccountLedger",
    "AccountLedgerProtocol",
    "AccountNotFoundError",
    "InsufficientCreditsError",
    "InvalidSpendAmountError",
]
