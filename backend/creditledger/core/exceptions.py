"""Shared exceptions module."""

from typing import Optional

from pydantic import ValidationError


class CreditLedgerException(Exception):
    """Base exception for creditledger services."""

    pass


class NotFoundException(CreditLedgerException):
    """Exception raised when an object is not found."""

    def __init__(self, message: Optional[str] = "Object not found"):
        """Create a new NotFoundException instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class BadRequestError(CreditLedgerException):
    """Exception raised when the caller supplied an invalid request."""

    def __init__(self, message: Optional[str] = "Invalid request"):
        """Create a new BadRequestError instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class TransientError(CreditLedgerException):
    """Exception raised for failures that are safe to retry.

    Every mutating operation in the ledger is idempotent or conditionally
    atomic, so callers (including the billing provider) may retry with backoff.
    """

    def __init__(self, message: Optional[str] = "Temporary failure, retry later"):
        """Create a new TransientError instance.

        Args:
        ----
            message (str, optional): The error message. Has default message.

        """
        self.message = message
        super().__init__(self.message)


class TransientStoreFailureError(TransientError):
    """Raised when the durable store timed out or kept conflicting after retries."""

    def __init__(self, operation: str, attempts: int, message: Optional[str] = None):
        """Create a new TransientStoreFailureError instance.

        Args:
        ----
            operation (str): Name of the store operation that failed.
            attempts (int): How many attempts were made before giving up.
            message (str, optional): Custom error message.

        """
        self.operation = operation
        self.attempts = attempts
        super().__init__(
            message or f"Store operation '{operation}' failed after {attempts} attempt(s)"
        )


def unpack_validation_error(exc: ValidationError) -> dict:
    """Unpack a Pydantic validation error into a dictionary.

    Args:
    ----
        exc (ValidationError): The Pydantic validation error.

    Returns:
    -------
        dict: The dictionary representation of the validation error.

    """
    error_messages = []
    for error in exc.errors():
        field = ".".join(str(loc) for loc in error["loc"])
        error_messages.append({field: error["msg"]})

    return {"errors": error_messages}
