"""Credit reset audit model."""

from typing import Optional

from sqlalchemy import ForeignKey, Index, Integer, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from creditledger.models._base import EntityBase


class CreditReset(EntityBase):
    """Audit row for every billing-driven rewrite of an account's tier or balance.

    ``cause_ref`` is the event id (or invoice id for invoice refills) that
    caused the rewrite; it is unique so one cause can only land once.
    """

    __tablename__ = "credit_reset"

    account_id: Mapped[str] = mapped_column(
        ForeignKey("account.id", ondelete="RESTRICT", name="fk_credit_reset_account_id"),
        nullable=False,
    )
    tier: Mapped[str] = mapped_column(String(32), nullable=False)
    credit_limit: Mapped[int] = mapped_column(Integer, nullable=False)
    credits_before: Mapped[int] = mapped_column(Integer, nullable=False)
    credits_after: Mapped[int] = mapped_column(Integer, nullable=False)
    cause: Mapped[str] = mapped_column(String(50), nullable=False)
    cause_ref: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)

    __table_args__ = (
        Index("idx_credit_reset_account_created", "account_id", "created_at"),
        UniqueConstraint("cause_ref", name="uq_credit_reset_cause_ref"),
    )
