"""Spend entry model."""

from typing import Optional

from sqlalchemy import CheckConstraint, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from creditledger.models._base import EntityBase, JSONType


class SpendEntry(EntityBase):
    """Append-only record of one successful spend."""

    __tablename__ = "spend_entry"

    account_id: Mapped[str] = mapped_column(
        ForeignKey("account.id", ondelete="RESTRICT", name="fk_spend_entry_account_id"),
        nullable=False,
    )
    action_type: Mapped[str] = mapped_column(String(100), nullable=False)
    credits_used: Mapped[int] = mapped_column(Integer, nullable=False)
    # "metadata" is reserved on declarative classes
    entry_metadata: Mapped[Optional[dict]] = mapped_column("metadata", JSONType, nullable=True)

    __table_args__ = (
        CheckConstraint("credits_used > 0", name="ck_spend_entry_credits_positive"),
        Index("idx_spend_entry_account_created", "account_id", "created_at"),
    )
