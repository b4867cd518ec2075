"""Ledger domain types and pure helpers.

Snapshots returned by the ledger are immutable copies of the stored rows, so
callers never hold a live ORM object across a transaction boundary.
"""

from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from creditledger.core.datetime_utils import ensure_utc
from creditledger.core.shared_models import CreditResetCause, SubscriptionStatus, Tier
from creditledger.models.account import Account
from creditledger.models.spend_entry import SpendEntry


@dataclass(frozen=True)
class AccountSnapshot:
    account_id: str
    tier: Tier
    subscription_status: SubscriptionStatus
    credits_remaining: int
    credit_limit: int
    billing_customer_ref: Optional[str] = None
    updated_at: Optional[datetime] = None

    @classmethod
    def from_model(cls, account: Account) -> "AccountSnapshot":
        return cls(
            account_id=account.id,
            tier=Tier(account.tier),
            subscription_status=SubscriptionStatus(account.subscription_status),
            credits_remaining=account.credits_remaining,
            credit_limit=account.credit_limit,
            billing_customer_ref=account.billing_customer_ref,
            updated_at=ensure_utc(account.modified_at),
        )


@dataclass(frozen=True)
class SpendRecord:
    entry_id: UUID
    account_id: str
    action_type: str
    credits_used: int
    metadata: dict[str, Any]
    created_at: Optional[datetime]

    @classmethod
    def from_model(cls, entry: SpendEntry) -> "SpendRecord":
        return cls(
            entry_id=entry.id,
            account_id=entry.account_id,
            action_type=entry.action_type,
            credits_used=entry.credits_used,
            metadata=dict(entry.entry_metadata or {}),
            created_at=ensure_utc(entry.created_at),
        )


@dataclass(frozen=True)
class SpendResult:
    """Outcome of an accepted spend."""

    accepted: bool
    credits_remaining: int
    entry_id: Optional[UUID] = None


@dataclass(frozen=True)
class ResetRequest:
    """Everything needed to rewrite an account's tier and limit.

    ``refill`` decides whether ``credits_remaining`` is set to the new limit
    (activation, invoice paid) or left alone (downgrade on deletion).
    """

    account_id: str
    tier: Tier
    credit_limit: int
    status: SubscriptionStatus
    cause: CreditResetCause
    cause_ref: Optional[str] = None
    refill: bool = True


@dataclass(frozen=True)
class ResetOutcome:
    applied: bool
    credits_before: int
    credits_after: int


@dataclass(frozen=True)
class LedgerStatistics:
    total_used: int
    usage_by_type: dict[str, int] = field(default_factory=dict)
    percent_used: float = 0.0


@dataclass(frozen=True)
class AccountLedgerView:
    account: AccountSnapshot
    recent_entries: list[SpendRecord]
    statistics: LedgerStatistics


def compute_statistics(
    credits_remaining: int, credit_limit: int, usage_by_type: dict[str, int]
) -> LedgerStatistics:
    """Summarise usage in the current period.

    ``total_used`` is derived from the balance rather than summed from
    entries: the balance is authoritative and entries may be paginated away.
    A downgrade can leave remaining above the limit, which counts as zero use.
    """
    total_used = max(credit_limit - credits_remaining, 0)
    percent_used = round(total_used / credit_limit * 100, 2) if credit_limit > 0 else 0.0
    return LedgerStatistics(
        total_used=total_used,
        usage_by_type=dict(usage_by_type),
        percent_used=percent_used,
    )
