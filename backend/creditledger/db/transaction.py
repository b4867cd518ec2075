"""Bounded, retried transactions against the durable store.

Every ledger mutation runs through ``run_in_transaction``: each attempt gets
its own unit of work and a hard timeout, transient database failures
(connection drops, serialization failures, deadlocks, lock timeouts) raised
while the work runs are retried a small number of times with jittered
backoff, and exhaustion surfaces as ``TransientStoreFailureError``. Business
errors raised by the work function are never retried.

The commit is never retried. A commit that times out or loses its connection
may already be durable, so replaying the work could apply it twice; it
surfaces as ``TransientStoreFailureError`` straight away.
"""

import asyncio
import logging
from typing import Awaitable, Callable, Optional, TypeVar

from sqlalchemy.exc import DBAPIError, InterfaceError, OperationalError
from sqlalchemy.ext.asyncio import AsyncSession
from tenacity import (
    AsyncRetrying,
    RetryCallState,
    RetryError,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from creditledger.core.exceptions import TransientStoreFailureError
from creditledger.db.unit_of_work import UnitOfWork

logger = logging.getLogger(__name__)

T = TypeVar("T")

# serialization_failure, deadlock_detected, lock_not_available, query_canceled
RETRYABLE_SQLSTATES = frozenset({"40001", "40P01", "55P03", "57014"})


def _sqlstate(exc: BaseException) -> Optional[str]:
    orig = getattr(exc, "orig", None)
    for candidate in (orig, getattr(orig, "__cause__", None)):
        code = getattr(candidate, "sqlstate", None) or getattr(candidate, "pgcode", None)
        if code:
            return str(code)
    return None


def is_transient_store_error(exception: BaseException) -> bool:
    """Check if a store exception is worth another attempt.

    Args:
        exception: Exception raised by a transaction attempt

    Returns:
        True for timeouts, dropped connections and retryable SQLSTATEs
    """
    if isinstance(exception, asyncio.TimeoutError):
        return True
    if isinstance(exception, DBAPIError):
        if exception.connection_invalidated:
            return True
        if isinstance(exception, (OperationalError, InterfaceError)):
            return True
        return _sqlstate(exception) in RETRYABLE_SQLSTATES
    return False


def log_retry_attempt(operation: str, max_attempts: int) -> Callable[[RetryCallState], None]:
    """Create a before_sleep callback that logs store retry attempts."""

    def before_sleep(retry_state: RetryCallState) -> None:
        exception = retry_state.outcome.exception() if retry_state.outcome else None
        wait_time = retry_state.next_action.sleep if retry_state.next_action else 0
        logger.warning(
            f"Store operation '{operation}' failed ({type(exception).__name__}: {exception}), "
            f"retrying in {wait_time:.2f}s (attempt {retry_state.attempt_number}/{max_attempts})"
        )

    return before_sleep



class _CommitInterrupted(Exception):
    """A commit failed in a way that leaves its outcome unknown."""


def _commit_outcome_unknown(exception: BaseException) -> bool:
    # A retryable SQLSTATE at commit means the server rolled back.
    if _sqlstate(exception) in RETRYABLE_SQLSTATES:
        return False
    return is_transient_store_error(exception)


async def run_in_transaction(
    db: AsyncSession,
    work: Callable[[UnitOfWork], Awaitable[T]],
    *,
    operation: str,
    max_attempts: int,
    timeout_seconds: float,
    max_wait_seconds: float = 1.0,
) -> T:
    """Run ``work`` inside its own committed transaction with bounded retries.

    Args:
        db: Session the transaction runs on
        work: Coroutine function receiving the unit of work; must not commit
        operation: Name used in logs and in the failure exception
        max_attempts: Upper bound on attempts, including the first
        timeout_seconds: Deadline for the work of a single attempt, and
            separately for its commit
        max_wait_seconds: Cap on the backoff between attempts

    Returns:
        Whatever ``work`` returned on the successful attempt

    Raises:
        TransientStoreFailureError: When every attempt timed out or hit a
            transient database error, or when the commit was interrupted
    """
    attempts = 0

    async def _attempt() -> T:
        nonlocal attempts
        attempts += 1
        committing = False
        try:
            async with UnitOfWork(db) as uow:
                result = await asyncio.wait_for(work(uow), timeout=timeout_seconds)
                committing = True
                await asyncio.wait_for(uow.commit(), timeout=timeout_seconds)
                return result
        except Exception as e:
            # Covers a rollback that fails after the commit was cut off.
            if committing and _commit_outcome_unknown(e):
                raise _CommitInterrupted() from e
            raise

    try:
        async for attempt in AsyncRetrying(
            stop=stop_after_attempt(max_attempts),
            retry=retry_if_exception(is_transient_store_error),
            wait=wait_exponential_jitter(initial=0.05, max=max_wait_seconds),
            before_sleep=log_retry_attempt(operation, max_attempts),
        ):
            with attempt:
                return await _attempt()
    except RetryError as e:
        last = e.last_attempt.exception()
        logger.error(f"Store operation '{operation}' gave up after {max_attempts} attempt(s)")
        raise TransientStoreFailureError(operation, max_attempts) from last
    except _CommitInterrupted as e:
        cause = e.__cause__
        logger.error(
            f"Commit of store operation '{operation}' interrupted "
            f"({type(cause).__name__}: {cause}); outcome unknown, not retrying"
        )
        raise TransientStoreFailureError(
            operation,
            attempts,
            message=f"Store operation '{operation}' commit interrupted; outcome unknown",
        ) from cause
    raise TransientStoreFailureError(operation, max_attempts)
