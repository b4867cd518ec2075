"""Processed billing event model."""

from datetime import datetime

from sqlalchemy import DateTime, Index, String
from sqlalchemy.orm import Mapped, mapped_column

from creditledger.core.datetime_utils import utc_now
from creditledger.models._base import Base


class ProcessedEvent(Base):
    """Idempotency marker for a billing event that has been fully applied."""

    __tablename__ = "processed_event"

    event_id: Mapped[str] = mapped_column(String(255), primary_key=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    processed_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, default=utc_now
    )

    __table_args__ = (Index("idx_processed_event_processed_at", "processed_at"),)
