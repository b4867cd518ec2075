"""Billing domain exceptions."""

from typing import Optional

from creditledger.core.exceptions import BadRequestError, CreditLedgerException, TransientError


class AuthenticityFailureError(CreditLedgerException):
    """Raised when a webhook signature is missing or does not verify.

    Nothing is parsed or stored for such a request.
    """

    def __init__(self, message: str = "Webhook signature verification failed"):
        """Initialize with default message."""
        self.message = message
        super().__init__(message)


class MalformedEventError(BadRequestError):
    """Raised when a verified payload is not a usable billing event envelope."""

    def __init__(self, message: str = "Malformed billing event"):
        """Initialize with default message."""
        super().__init__(message)


class DuplicateEventError(CreditLedgerException):
    """Raised when an event id has already been processed."""

    def __init__(self, event_id: str):
        """Initialize with the duplicated event id."""
        self.event_id = event_id
        super().__init__(f"Event {event_id} already processed")


class StaleEventError(CreditLedgerException):
    """Raised when a newer event for the same subscription has already been applied."""

    def __init__(self, event_id: str, subscription_ref: str):
        """Initialize with the stale event and its subscription."""
        self.event_id = event_id
        self.subscription_ref = subscription_ref
        super().__init__(f"Event {event_id} is older than the stored state of {subscription_ref}")


class UnknownEventTypeError(CreditLedgerException):
    """Raised for event types the processor has no handler for."""

    def __init__(self, event_type: str):
        """Initialize with the unrecognized type."""
        self.event_type = event_type
        super().__init__(f"Unhandled billing event type: {event_type}")


class AccountResolutionError(TransientError):
    """Raised when a billing event cannot be tied to a local account.

    Retryable: the account or subscription record may simply not exist yet,
    and the provider redelivers on a 5xx.
    """

    def __init__(self, event_id: str, detail: Optional[str] = None):
        """Initialize with the event that could not be resolved."""
        self.event_id = event_id
        super().__init__(
            f"Could not resolve account for event {event_id}" + (f": {detail}" if detail else "")
        )
