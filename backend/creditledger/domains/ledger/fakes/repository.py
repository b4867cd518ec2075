"""Fake account repository for testing."""

import asyncio
from datetime import datetime
from typing import Any, Optional
from uuid import uuid4

from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.core.datetime_utils import utc_now
from creditledger.core.shared_models import CreditResetCause, SubscriptionStatus, Tier
from creditledger.models.account import Account
from creditledger.models.credit_reset import CreditReset
from creditledger.models.spend_entry import SpendEntry


class FakeAccountRepository:
    """In-memory fake for AccountRepositoryProtocol.

    ``debit`` yields to the event loop before its check-and-write so that
    concurrent spends genuinely interleave in tests; the check and the write
    themselves never straddle an await, mirroring the single conditional
    UPDATE of the real repository.
    """

    def __init__(self) -> None:
        """Initialize empty in-memory stores."""
        self._accounts: dict[str, Account] = {}
        self._entries: list[SpendEntry] = []
        self._resets: list[CreditReset] = []
        self._calls: list[tuple] = []

    # ---- Test helpers ----

    def seed(self, *accounts: Account) -> None:
        """Store accounts directly."""
        for account in accounts:
            self._accounts[account.id] = account

    def call_count(self, method: str) -> int:
        """Return the number of times a method was called."""
        return sum(1 for name, *_ in self._calls if name == method)

    def account(self, account_id: str) -> Optional[Account]:
        return self._accounts.get(account_id)

    @property
    def entries(self) -> list[SpendEntry]:
        return list(self._entries)

    @property
    def resets(self) -> list[CreditReset]:
        return list(self._resets)

    # ---- Protocol ----

    async def get(self, db: AsyncSession, *, account_id: str) -> Optional[Account]:
        self._calls.append(("get", account_id))
        return self._accounts.get(account_id)

    async def get_by_customer_ref(
        self, db: AsyncSession, *, billing_customer_ref: str
    ) -> Optional[Account]:
        self._calls.append(("get_by_customer_ref", billing_customer_ref))
        for account in self._accounts.values():
            if account.billing_customer_ref == billing_customer_ref:
                return account
        return None

    async def lock_for_update(self, db: AsyncSession, *, account_id: str) -> Optional[Account]:
        self._calls.append(("lock_for_update", account_id))
        return self._accounts.get(account_id)

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
        self._calls.append(("create_if_absent", account_id))
        if account_id not in self._accounts:
            now = utc_now()
            self._accounts[account_id] = Account(
                id=account_id,
                tier=tier.value,
                subscription_status=status.value,
                credits_remaining=credit_limit,
                credit_limit=credit_limit,
                billing_customer_ref=billing_customer_ref,
                created_at=now,
                modified_at=now,
            )
        return self._accounts[account_id]

    async def set_customer_ref(
        self, db: AsyncSession, *, account_id: str, billing_customer_ref: str
    ) -> bool:
        self._calls.append(("set_customer_ref", account_id, billing_customer_ref))
        account = self._accounts.get(account_id)
        if account is None:
            return False
        account.billing_customer_ref = billing_customer_ref
        account.modified_at = utc_now()
        return True

    async def debit(self, db: AsyncSession, *, account_id: str, amount: int) -> Optional[int]:
        self._calls.append(("debit", account_id, amount))
        await asyncio.sleep(0)
        account = self._accounts.get(account_id)
        if account is None or account.credits_remaining < amount:
            return None
        account.credits_remaining -= amount
        account.modified_at = utc_now()
        return account.credits_remaining

    async def add_spend_entry(
        self,
        db: AsyncSession,
        *,
        account_id: str,
        action_type: str,
        credits_used: int,
        metadata: Optional[dict[str, Any]] = None,
    ) -> SpendEntry:
        self._calls.append(("add_spend_entry", account_id, action_type, credits_used))
        now = utc_now()
        entry = SpendEntry(
            id=uuid4(),
            account_id=account_id,
            action_type=action_type,
            credits_used=credits_used,
            entry_metadata=metadata or {},
            created_at=now,
            modified_at=now,
        )
        self._entries.append(entry)
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
        self._calls.append(("rewrite", account_id, tier, credit_limit, status, credits_remaining))
        account = self._accounts[account_id]
        account.tier = tier.value
        account.credit_limit = credit_limit
        account.subscription_status = status.value
        if credits_remaining is not None:
            account.credits_remaining = credits_remaining
        account.modified_at = utc_now()

    async def set_status(
        self, db: AsyncSession, *, account_id: str, status: SubscriptionStatus
    ) -> bool:
        self._calls.append(("set_status", account_id, status))
        account = self._accounts.get(account_id)
        if account is None:
            return False
        account.subscription_status = status.value
        account.modified_at = utc_now()
        return True

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
        self._calls.append(("claim_reset", account_id, cause, cause_ref))
        if cause_ref is not None and any(r.cause_ref == cause_ref for r in self._resets):
            return False
        now = utc_now()
        self._resets.append(
            CreditReset(
                id=uuid4(),
                account_id=account_id,
                tier=tier.value,
                credit_limit=credit_limit,
                credits_before=credits_before,
                credits_after=credits_after,
                cause=cause.value,
                cause_ref=cause_ref,
                created_at=now,
                modified_at=now,
            )
        )
        return True

    async def recent_entries(
        self, db: AsyncSession, *, account_id: str, limit: int
    ) -> list[SpendEntry]:
        self._calls.append(("recent_entries", account_id, limit))
        mine = [e for e in self._entries if e.account_id == account_id]
        return list(reversed(mine))[:limit]

    async def usage_by_type_since(
        self, db: AsyncSession, *, account_id: str, since: Optional[datetime]
    ) -> dict[str, int]:
        self._calls.append(("usage_by_type_since", account_id, since))
        totals: dict[str, int] = {}
        for entry in self._entries:
            if entry.account_id != account_id:
                continue
            if since is not None and entry.created_at < since:
                continue
            totals[entry.action_type] = totals.get(entry.action_type, 0) + entry.credits_used
        return totals

    async def last_refill_at(self, db: AsyncSession, *, account_id: str) -> Optional[datetime]:
        self._calls.append(("last_refill_at", account_id))
        refills = [
            r.created_at
            for r in self._resets
            if r.account_id == account_id
            and r.cause != CreditResetCause.SUBSCRIPTION_DELETED.value
        ]
        return max(refills) if refills else None
