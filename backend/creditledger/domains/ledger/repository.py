"""Account ledger repository and protocol.

All balance changes are expressed as single SQL statements against the
account row. Nothing here commits: callers run these inside a unit of work.
"""

from datetime import datetime
from typing import Any, Optional, Protocol

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.core.datetime_utils import ensure_utc, utc_now
from creditledger.core.shared_models import CreditResetCause, SubscriptionStatus, Tier
from creditledger.db.dialect import conflict_insert
from creditledger.models.account import Account
from creditledger.models.credit_reset import CreditReset
from creditledger.models.spend_entry import SpendEntry


class AccountRepositoryProtocol(Protocol):
    """Data access for accounts, spend entries and reset audits."""

    async def get(self, db: AsyncSession, *, account_id: str) -> Optional[Account]:
        """Get an account by id, refreshed from the store."""
        ...

    async def get_by_customer_ref(
        self, db: AsyncSession, *, billing_customer_ref: str
    ) -> Optional[Account]:
        """Get the account linked to a provider customer."""
        ...

    async def lock_for_update(self, db: AsyncSession, *, account_id: str) -> Optional[Account]:
        """Get an account and hold its row lock until the transaction ends."""
        ...

    async def create_if_absent(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        tier: Tier,
        credit_limit: int,
        status: SubscriptionStatus,
        billing_customer_ref: Optional[str] = None,
    ) -> Account:
        """Insert the account unless it exists; return the stored row either way."""
        ...

    async def set_customer_ref(
        self, db: AsyncSession, *, account_id: str, billing_customer_ref: str
    ) -> bool:
        """Link a provider customer. Returns False if the account does not exist."""
        ...

    async def debit(self, db: AsyncSession, *, account_id: str, amount: int) -> Optional[int]:
        """Decrement the balance only if it covers ``amount``.

        Returns the new balance, or None when the account is missing or short.
        """
        ...

    async def add_spend_entry(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        action_type: str,
        credits_used: int,
        metadata: Optional[dict[str, Any]] = None,
    ) -> SpendEntry:
        """Append a spend entry."""
        ...

    async def rewrite(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        tier: Tier,
        credit_limit: int,
        status: SubscriptionStatus,
        credits_remaining: Optional[int] = None,
    ) -> None:
        """Overwrite tier, limit and status; balance only when given."""
        ...

    async def set_status(
        self, db: AsyncSession, *, account_id: str, status: SubscriptionStatus
    ) -> bool:
        """Change status only. Returns False if the account does not exist."""
        ...

    async def claim_reset(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        tier: Tier,
        credit_limit: int,
        credits_before: int,
        credits_after: int,
        cause: CreditResetCause,
        cause_ref: Optional[str] = None,
    ) -> bool:
        """Record a reset audit row. Returns False if ``cause_ref`` was already used."""
        ...

    async def recent_entries(
        self, db: AsyncSession, *, account_id: str, limit: int
    ) -> list[SpendEntry]:
        """Newest spend entries first."""
        ...

    async def usage_by_type_since(
        self, db: AsyncSession, *, account_id: str, since: Optional[datetime]
    ) -> dict[str, int]:
        """Credits spent per action type since ``since`` (all time when None)."""
        ...

    async def last_refill_at(self, db: AsyncSession, *, account_id: str) -> Optional[datetime]:
        """When the balance was last refilled by a billing event."""
        ...


class AccountRepository(AccountRepositoryProtocol):
    """SQLAlchemy implementation of AccountRepositoryProtocol."""

    async def get(self, db: AsyncSession, *, account_id: str) -> Optional[Account]:
        """Get an account by id, refreshed from the store."""
        stmt = (
            select(Account)
            .where(Account.id == account_id)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def get_by_customer_ref(
        self, db: AsyncSession, *, billing_customer_ref: str
    ) -> Optional[Account]:
        """Get the account linked to a provider customer."""
        stmt = (
            select(Account)
            .where(Account.billing_customer_ref == billing_customer_ref)
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def lock_for_update(self, db: AsyncSession, *, account_id: str) -> Optional[Account]:
        """Get an account and hold its row lock until the transaction ends."""
        # FOR UPDATE is dropped by the SQLite compiler, which locks the whole db anyway
        stmt = (
            select(Account)
            .where(Account.id == account_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def create_if_absent(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        tier: Tier,
        credit_limit: int,
        status: SubscriptionStatus,
        billing_customer_ref: Optional[str] = None,
    ) -> Account:
        """Insert the account unless it exists; return the stored row either way."""
        now = utc_now()
        stmt = (
            conflict_insert(db, Account)
            .values(
                id=account_id,
                tier=tier.value,
                subscription_status=status.value,
                credits_remaining=credit_limit,
                credit_limit=credit_limit,
                billing_customer_ref=billing_customer_ref,
                created_at=now,
                modified_at=now,
            )
            .on_conflict_do_nothing(index_elements=["id"])
        )
        await db.execute(stmt)
        account = await self.get(db, account_id=account_id)
        assert account is not None
        return account

    async def set_customer_ref(
        self, db: AsyncSession, *, account_id: str, billing_customer_ref: str
    ) -> bool:
        """Link a provider customer. Returns False if the account does not exist."""
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(billing_customer_ref=billing_customer_ref, modified_at=utc_now())
            .returning(Account.id)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def debit(self, db: AsyncSession, *, account_id: str, amount: int) -> Optional[int]:
        """Decrement the balance only if it covers ``amount``.

        A single conditional UPDATE: concurrent debits of the same row are
        serialized by the row lock and each re-checks the predicate against
        the committed balance, so two debits can never both pass on a stale
        read.
        """
        stmt = (
            update(Account)
            .where(Account.id == account_id, Account.credits_remaining >= amount)
            .values(credits_remaining=Account.credits_remaining - amount, modified_at=utc_now())
            .returning(Account.credits_remaining)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none()

    async def add_spend_entry(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        action_type: str,
        credits_used: int,
        metadata: Optional[dict[str, Any]] = None,
    ) -> SpendEntry:
        """Append a spend entry."""
        entry = SpendEntry(
            account_id=account_id,
            action_type=action_type,
            credits_used=credits_used,
            entry_metadata=metadata or {},
        )
        db.add(entry)
        await db.flush()
        return entry

    async def rewrite(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        tier: Tier,
        credit_limit: int,
        status: SubscriptionStatus,
        credits_remaining: Optional[int] = None,
    ) -> None:
        """Overwrite tier, limit and status; balance only when given."""
        values: dict[str, Any] = {
            "tier": tier.value,
            "credit_limit": credit_limit,
            "subscription_status": status.value,
            "modified_at": utc_now(),
        }
        if credits_remaining is not None:
            values["credits_remaining"] = credits_remaining
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(**values)
            .execution_options(synchronize_session=False)
        )
        await db.execute(stmt)

    async def set_status(
        self, db: AsyncSession, *, account_id: str, status: SubscriptionStatus
    ) -> bool:
        """Change status only. Returns False if the account does not exist."""
        stmt = (
            update(Account)
            .where(Account.id == account_id)
            .values(subscription_status=status.value, modified_at=utc_now())
            .returning(Account.id)
            .execution_options(synchronize_session=False)
        )
        result = await db.execute(stmt)
        return result.scalar_one_or_none() is not None

    async def claim_reset(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        tier: Tier,
        credit_limit: int,
        credits_before: int,
        credits_after: int,
        cause: CreditResetCause,
        cause_ref: Optional[str] = None,
    ) -> bool:
        """Record a reset audit row. Returns False if ``cause_ref`` was already used."""
        stmt = conflict_insert(db, CreditReset).values(
            account_id=account_id,
            tier=tier.value,
            credit_limit=credit_limit,
            credits_before=credits_before,
            credits_after=credits_after,
            cause=cause.value,
            cause_ref=cause_ref,
        )
        if cause_ref is not None:
            stmt = stmt.on_conflict_do_nothing(index_elements=["cause_ref"])
        result = await db.execute(stmt.returning(CreditReset.id))
        return result.scalar_one_or_none() is not None

    async def recent_entries(
        self, db: AsyncSession, *, account_id: str, limit: int
    ) -> list[SpendEntry]:
        """Newest spend entries first."""
        stmt = (
            select(SpendEntry)
            .where(SpendEntry.account_id == account_id)
            .order_by(SpendEntry.created_at.desc(), SpendEntry.id.desc())
            .limit(limit)
        )
        result = await db.execute(stmt)
        return list(result.scalars().all())

    async def usage_by_type_since(
        self, db: AsyncSession, *, account_id: str, since: Optional[datetime]
    ) -> dict[str, int]:
        """Credits spent per action type since ``since`` (all time when None)."""
        stmt = (
            select(SpendEntry.action_type, func.sum(SpendEntry.credits_used))
            .where(SpendEntry.account_id == account_id)
            .group_by(SpendEntry.action_type)
        )
        if since is not None:
            stmt = stmt.where(SpendEntry.created_at >= since)
        result = await db.execute(stmt)
        return {action_type: int(total or 0) for action_type, total in result.all()}

    async def last_refill_at(self, db: AsyncSession, *, account_id: str) -> Optional[datetime]:
        """When the balance was last refilled by a billing event."""
        stmt = select(func.max(CreditReset.created_at)).where(
            CreditReset.account_id == account_id,
            CreditReset.cause != CreditResetCause.SUBSCRIPTION_DELETED.value,
        )
        result = await db.execute(stmt)
        return ensure_utc(result.scalar_one_or_none())
