"""Subscription record model."""

from datetime import datetime
from typing import Optional

from sqlalchemy import Boolean, DateTime, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from creditledger.models._base import EntityBase


class SubscriptionRecord(EntityBase):
    """Local mirror of the provider's subscription object.

    ``last_event_at`` is the ordering watermark: an event older than it is
    stale and must not overwrite the row.
    """

    __tablename__ = "subscription_record"

    subscription_ref: Mapped[str] = mapped_column(String(255), nullable=False)
    account_id: Mapped[str] = mapped_column(
        ForeignKey("account.id", ondelete="RESTRICT", name="fk_subscription_record_account_id"),
        nullable=False,
    )
    status: Mapped[str] = mapped_column(String(32), nullable=False)
    price_ref: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    period_start: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    period_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    canceled_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    trial_start: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    trial_end: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    last_event_id: Mapped[str] = mapped_column(String(255), nullable=False)
    last_event_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    __table_args__ = (
        Index("idx_subscription_record_account_id", "account_id"),
        UniqueConstraint("subscription_ref", name="uq_subscription_record_subscription_ref"),
    )
