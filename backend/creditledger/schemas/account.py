"""Account schemas."""

from datetime import datetime
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from creditledger.core.shared_models import SubscriptionStatus, Tier


class AccountCreate(BaseModel):
    """Schema for opening an account."""

    account_id: str = Field(..., min_length=1, max_length=255)
    billing_customer_ref: Optional[str] = Field(
        None, description="Billing provider customer id, e.g. cus_..."
    )


class Account(BaseModel):
    """Serialized account balance and tier."""

    account_id: str
    tier: Tier
    subscription_status: SubscriptionStatus
    credits_remaining: int
    credit_limit: int
    billing_customer_ref: Optional[str] = None
    updated_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class SpendEntry(BaseModel):
    """One line of the spend log."""

    entry_id: UUID
    action_type: str
    credits_used: int
    metadata: dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None

    model_config = ConfigDict(from_attributes=True)


class LedgerStatistics(BaseModel):
    """Usage in the current period."""

    total_used: int
    usage_by_type: dict[str, int] = Field(default_factory=dict)
    percent_used: float = 0.0

    model_config = ConfigDict(from_attributes=True)


class AccountLedger(BaseModel):
    """Account snapshot with its newest spend entries and statistics."""

    account: Account
    recent_entries: list[SpendEntry]
    statistics: LedgerStatistics

    model_config = ConfigDict(from_attributes=True)
