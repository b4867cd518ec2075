"""Billing price catalog model."""

from typing import Optional

from sqlalchemy import Boolean, String
from sqlalchemy.orm import Mapped, mapped_column

from creditledger.models._base import Base, TimestampMixin


class BillingPrice(TimestampMixin, Base):
    """Provider price with the name of the product it belongs to.

    Populated by the provider catalog sync; the ledger only reads it to turn
    a price reference on an event into a product name for tier resolution.
    """

    __tablename__ = "billing_price"

    price_ref: Mapped[str] = mapped_column(String(255), primary_key=True)
    product_ref: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    product_name: Mapped[Optional[str]] = mapped_column(String(255), nullable=True)
    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
