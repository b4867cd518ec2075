"""Ledger domain exceptions."""

from creditledger.core.exceptions import BadRequestError, CreditLedgerException, NotFoundException


class AccountNotFoundError(NotFoundException):
    """Raised when an operation targets an account that was never opened."""

    def __init__(self, account_id: str):
        """Initialize with the missing account id."""
        self.account_id = account_id
        super().__init__(f"Account '{account_id}' not found")


class InsufficientCreditsError(CreditLedgerException):
    """Raised when a spend would take the balance below zero.

    Carries the balance observed by the failed conditional update so callers
    can report it without a second read.
    """

    def __init__(self, account_id: str, requested: int, credits_remaining: int):
        """Initialize with the requested amount and the current balance."""
        self.account_id = account_id
        self.requested = requested
        self.credits_remaining = credits_remaining
        super().__init__(
            f"Insufficient credits: requested {requested}, {credits_remaining} remaining"
        )


class InvalidSpendAmountError(BadRequestError):
    """Raised when a spend asks for zero or negative credits."""

    def __init__(self, credits_used: int):
        """Initialize with the rejected amount."""
        self.credits_used = credits_used
        super().__init__(f"credits_used must be a positive integer, got {credits_used}")


class CustomerAlreadyLinkedError(BadRequestError):
    """Raised when a billing customer is already linked to a different account."""

    def __init__(self, billing_customer_ref: str, account_id: str):
        """Initialize with the customer reference and its current owner."""
        self.billing_customer_ref = billing_customer_ref
        self.account_id = account_id
        super().__init__(
            f"Billing customer '{billing_customer_ref}' is already linked to another account"
        )
