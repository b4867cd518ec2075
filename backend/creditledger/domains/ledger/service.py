"""Account ledger service.

The account row is the single point of truth for a balance. Spends are one
conditional decrement plus an entry insert; resets lock the row, claim their
cause in the audit table and rewrite it. Both commit as one transaction, so
a caller abandoning a request after commit cannot undo the effect.
"""

import logging
from typing import Any, Awaitable, Callable, Optional, TypeVar

from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.core.shared_models import CreditResetCause, SubscriptionStatus, Tier
from creditledger.db.transaction import run_in_transaction
from creditledger.db.unit_of_work import UnitOfWork
from creditledger.domains.ledger.exceptions import (
    AccountNotFoundError,
    CustomerAlreadyLinkedError,
    InsufficientCreditsError,
    InvalidSpendAmountError,
)
from creditledger.domains.ledger.protocols import AccountLedgerProtocol
from creditledger.domains.ledger.repository import AccountRepositoryProtocol
from creditledger.domains.ledger.types import (
    AccountLedgerView,
    AccountSnapshot,
    ResetOutcome,
    ResetRequest,
    SpendRecord,
    SpendResult,
    compute_statistics,
)

logger = logging.getLogger(__name__)

T = TypeVar("T")


class AccountLedger(AccountLedgerProtocol):
    """Atomic spend, reset and status operations over the account store."""

    def __init__(
        self,
        account_repo: AccountRepositoryProtocol,
        *,
        free_credit_limit: int,
        store_timeout_seconds: float,
        store_max_attempts: int,
        store_retry_max_wait_seconds: float = 1.0,
        recent_entries_limit: int = 100,
    ) -> None:
        """Initialize with the repository and store limits."""
        self._accounts = account_repo
        self._free_credit_limit = free_credit_limit
        self._timeout = store_timeout_seconds
        self._max_attempts = store_max_attempts
        self._max_wait = store_retry_max_wait_seconds
        self._recent_entries_limit = recent_entries_limit

    async def _run(
        self,
        db: AsyncSession,
        operation: str,
        work: Callable[[AsyncSession], Awaitable[T]],
        uow: Optional[UnitOfWork],
    ) -> T:
        if uow is not None:
            return await work(uow.session)
        return await run_in_transaction(
            db,
            lambda unit: work(unit.session),
            operation=operation,
            max_attempts=self._max_attempts,
            timeout_seconds=self._timeout,
            max_wait_seconds=self._max_wait,
        )

    # ------------------------------------------------------------------
    # Spend path
    # ------------------------------------------------------------------

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
        """Atomically debit credits and append a spend entry."""
        if isinstance(credits_used, bool) or not isinstance(credits_used, int) or credits_used <= 0:
            raise InvalidSpendAmountError(credits_used)

        async def _work(session: AsyncSession) -> SpendResult:
            remaining = await self._accounts.debit(
                session, account_id=account_id, amount=credits_used
            )
            if remaining is None:
                account = await self._accounts.get(session, account_id=account_id)
                if account is None:
                    raise AccountNotFoundError(account_id)
                raise InsufficientCreditsError(account_id, credits_used, account.credits_remaining)

            entry = await self._accounts.add_spend_entry(
                session,
                account_id=account_id,
                action_type=action_type,
                credits_used=credits_used,
                metadata=metadata,
            )
            return SpendResult(accepted=True, credits_remaining=remaining, entry_id=entry.id)

        try:
            result = await self._run(db, "ledger.spend", _work, uow)
        except InsufficientCreditsError as e:
            logger.info(
                f"Spend denied for account {account_id}: requested {credits_used}, "
                f"{e.credits_remaining} remaining"
            )
            raise

        logger.debug(
            f"Spent {credits_used} credits on {action_type} for account {account_id}, "
            f"{result.credits_remaining} remaining"
        )
        return result

    # ------------------------------------------------------------------
    # Billing-driven mutations
    # ------------------------------------------------------------------

    async def _apply_reset(self, session: AsyncSession, request: ResetRequest) -> ResetOutcome:
        account = await self._accounts.lock_for_update(session, account_id=request.account_id)
        if account is None:
            raise AccountNotFoundError(request.account_id)

        before = account.credits_remaining
        after = request.credit_limit if request.refill else before

        claimed = await self._accounts.claim_reset(
            session,
            account_id=request.account_id,
            tier=request.tier,
            credit_limit=request.credit_limit,
            credits_before=before,
            credits_after=after,
            cause=request.cause,
            cause_ref=request.cause_ref,
        )
        if not claimed:
            logger.info(
                f"Reset for account {request.account_id} already applied "
                f"(cause_ref={request.cause_ref}), skipping"
            )
            return ResetOutcome(applied=False, credits_before=before, credits_after=before)

        await self._accounts.rewrite(
            session,
            account_id=request.account_id,
            tier=request.tier,
            credit_limit=request.credit_limit,
            status=request.status,
            credits_remaining=after if request.refill else None,
        )
        logger.info(
            f"Account {request.account_id} {request.cause.value}: tier={request.tier.value} "
            f"limit={request.credit_limit} credits {before} -> {after}"
        )
        return ResetOutcome(applied=True, credits_before=before, credits_after=after)

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
        request = ResetRequest(
            account_id=account_id,
            tier=tier,
            credit_limit=credit_limit,
            status=status,
            cause=cause,
            cause_ref=cause_ref,
            refill=True,
        )
        return await self._run(
            db, "ledger.reset", lambda session: self._apply_reset(session, request), uow
        )

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
        request = ResetRequest(
            account_id=account_id,
            tier=tier,
            credit_limit=credit_limit,
            status=status,
            cause=CreditResetCause.SUBSCRIPTION_DELETED,
            cause_ref=cause_ref,
            refill=False,
        )
        return await self._run(
            db, "ledger.downgrade", lambda session: self._apply_reset(session, request), uow
        )

    async def update_status(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        status: SubscriptionStatus,
        uow: Optional[UnitOfWork] = None,
    ) -> None:
        """Change the subscription status without touching credits."""

        async def _work(session: AsyncSession) -> None:
            found = await self._accounts.set_status(session, account_id=account_id, status=status)
            if not found:
                raise AccountNotFoundError(account_id)

        await self._run(db, "ledger.update_status", _work, uow)
        logger.info(f"Account {account_id} status -> {status.value}")

    # ------------------------------------------------------------------
    # Accounts
    # ------------------------------------------------------------------

    async def open_account(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        billing_customer_ref: Optional[str] = None,
    ) -> AccountSnapshot:
        """Create a free-tier account, or return the existing one."""

        async def _work(session: AsyncSession) -> AccountSnapshot:
            if billing_customer_ref:
                owner = await self._accounts.get_by_customer_ref(
                    session, billing_customer_ref=billing_customer_ref
                )
                if owner is not None and owner.id != account_id:
                    raise CustomerAlreadyLinkedError(billing_customer_ref, owner.id)

            account = await self._accounts.create_if_absent(
                session,
                account_id=account_id,
                tier=Tier.FREE,
                credit_limit=self._free_credit_limit,
                status=SubscriptionStatus.ACTIVE,
                billing_customer_ref=billing_customer_ref,
            )
            if billing_customer_ref and account.billing_customer_ref is None:
                await self._accounts.set_customer_ref(
                    session, account_id=account_id, billing_customer_ref=billing_customer_ref
                )
                account = await self._accounts.get(session, account_id=account_id)
            return AccountSnapshot.from_model(account)

        return await self._run(db, "ledger.open_account", _work, None)

    async def link_customer(
        self, db: AsyncSession, *, account_id: str, billing_customer_ref: str
    ) -> AccountSnapshot:
        """Attach the provider's customer reference to an account."""

        async def _work(session: AsyncSession) -> AccountSnapshot:
            owner = await self._accounts.get_by_customer_ref(
                session, billing_customer_ref=billing_customer_ref
            )
            if owner is not None and owner.id != account_id:
                raise CustomerAlreadyLinkedError(billing_customer_ref, owner.id)
            found = await self._accounts.set_customer_ref(
                session, account_id=account_id, billing_customer_ref=billing_customer_ref
            )
            if not found:
                raise AccountNotFoundError(account_id)
            account = await self._accounts.get(session, account_id=account_id)
            return AccountSnapshot.from_model(account)

        return await self._run(db, "ledger.link_customer", _work, None)

    async def get_account(
        self, db: AsyncSession, *, account_id: str, uow: Optional[UnitOfWork] = None
    ) -> AccountSnapshot:
        """Current snapshot of an account."""

        async def _work(session: AsyncSession) -> AccountSnapshot:
            account = await self._accounts.get(session, account_id=account_id)
            if account is None:
                raise AccountNotFoundError(account_id)
            return AccountSnapshot.from_model(account)

        return await self._run(db, "ledger.get_account", _work, uow)

    async def find_by_customer(
        self,
        db: AsyncSession,
        *,
        billing_customer_ref: str,
        uow: Optional[UnitOfWork] = None,
    ) -> Optional[AccountSnapshot]:
        """Account linked to a provider customer, if any."""

        async def _work(session: AsyncSession) -> Optional[AccountSnapshot]:
            account = await self._accounts.get_by_customer_ref(
                session, billing_customer_ref=billing_customer_ref
            )
            return AccountSnapshot.from_model(account) if account else None

        return await self._run(db, "ledger.find_by_customer", _work, uow)

    async def get_ledger(
        self, db: AsyncSession, *, account_id: str, limit: Optional[int] = None
    ) -> AccountLedgerView:
        """Snapshot, newest spend entries and period statistics."""
        limit = limit or self._recent_entries_limit

        async def _work(session: AsyncSession) -> AccountLedgerView:
            account = await self._accounts.get(session, account_id=account_id)
            if account is None:
                raise AccountNotFoundError(account_id)
            snapshot = AccountSnapshot.from_model(account)

            entries = await self._accounts.recent_entries(
                session, account_id=account_id, limit=limit
            )
            since = await self._accounts.last_refill_at(session, account_id=account_id)
            usage_by_type = await self._accounts.usage_by_type_since(
                session, account_id=account_id, since=since
            )
            return AccountLedgerView(
                account=snapshot,
                recent_entries=[SpendRecord.from_model(e) for e in entries],
                statistics=compute_statistics(
                    snapshot.credits_remaining, snapshot.credit_limit, usage_by_type
                ),
            )

        return await self._run(db, "ledger.get_ledger", _work, None)
