"""Ledger domain protocols."""

from typing import Any, Optional, Protocol, runtime_checkable

from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.core.shared_models import CreditResetCause, SubscriptionStatus, Tier
from creditledger.db.unit_of_work import UnitOfWork
from creditledger.domains.ledger.types import (
    AccountLedgerView,
    AccountSnapshot,
    ResetOutcome,
    SpendResult,
)


@runtime_checkable
class AccountLedgerProtocol(Protocol):
    """Owns the per-account balance tuple and the spend log.

    Every method runs in its own bounded, retried transaction unless a
    ``uow`` is passed, in which case it joins the caller's transaction and
    leaves the commit (and any retry) to the caller.
    """

    async def spend(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        credits_used: int,
        action_type: str,
        metadata: Optional[dict[str, Any]] = None,
        uow: Optional[UnitOfWork] = None,
    ) -> SpendResult:
        """Atomically debit credits and append a spend entry.

        Raises InsufficientCreditsError without mutating anything when the
        balance does not cover ``credits_used``.
        """
        ...

    async def reset(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        tier: Tier,
        credit_limit: int,
        status: SubscriptionStatus,
        cause: CreditResetCause,
        cause_ref: Optional[str] = None,
        uow: Optional[UnitOfWork] = None,
    ) -> ResetOutcome:
        """Set remaining and limit to ``credit_limit``, plus tier and status."""
        ...

    async def downgrade(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        tier: Tier,
        credit_limit: int,
        status: SubscriptionStatus,
        cause_ref: Optional[str] = None,
        uow: Optional[UnitOfWork] = None,
    ) -> ResetOutcome:
        """Set tier, limit and status; the remaining balance is left as is."""
        ...

    async def update_status(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        status: SubscriptionStatus,
        uow: Optional[UnitOfWork] = None,
    ) -> None:
        """Change the subscription status without touching credits."""
        ...

    async def open_account(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        billing_customer_ref: Optional[str] = None,
    ) -> AccountSnapshot:
        """Create a free-tier account, or return the existing one."""
        ...

    async def link_customer(
        self, db: AsyncSession, *, account_id: str, billing_customer_ref: str
    ) -> AccountSnapshot:
        """Attach the provider's customer reference to an account."""
        ...

    async def get_account(
        self, db: AsyncSession, *, account_id: str, uow: Optional[UnitOfWork] = None
    ) -> AccountSnapshot:
        """Current snapshot of an account."""
        ...

    async def find_by_customer(
        self,
        db: AsyncSession,
        *,
        billing_customer_ref: str,
        uow: Optional[UnitOfWork] = None,
    ) -> Optional[AccountSnapshot]:
        """Account linked to a provider customer, if any."""
        ...

    async def get_ledger(
        self, db: AsyncSession, *, account_id: str, limit: Optional[int] = None
    ) -> AccountLedgerView:
        """Snapshot, newest spend entries and period statistics."""
        ...
