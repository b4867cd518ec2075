"""Account model."""

from typing import Optional

from sqlalchemy import CheckConstraint, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from creditledger.core.shared_models import SubscriptionStatus, Tier
from creditledger.models._base import Base, TimestampMixin


class Account(TimestampMixin, Base):
    """One subscriber and its credit balance.

    The row is the single source of truth for the balance. It is mutated only
    by the conditional decrement in the spend path and by billing-driven
    resets, never through a read-modify-write in Python.
    """

    __tablename__ = "account"

    id: Mapped[str] = mapped_column(String(128), primary_key=True)
    tier: Mapped[str] = mapped_column(String(32), nullable=False, default=Tier.FREE.value)
    subscription_status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=SubscriptionStatus.ACTIVE.value
    )
    credits_remaining: Mapped[int] = mapped_column(Integer, nullable=False)
    credit_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    billing_customer_ref: Mapped[Optional[str]] = mapped_column(
        String(255), nullable=True
    )

    __table_args__ = (
        CheckConstraint("credits_remaining >= 0", name="ck_account_credits_non_negative"),
        CheckConstraint("credit_limit > 0", name="ck_account_credit_limit_positive"),
        UniqueConstraint("billing_customer_ref", name="uq_account_billing_customer_ref"),
        Index("idx_account_tier", "tier"),
    )

    def __repr__(self) -> str:
        return (
            f"<Account(id={self.id}, tier={self.tier}, "
            f"remaining={self.credits_remaining}/{self.credit_limit})>"
        )
