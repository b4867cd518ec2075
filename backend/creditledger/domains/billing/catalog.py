"""Price catalog backed by the ``billing_price`` table."""

from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from creditledger.domains.billing.protocols import PriceCatalogProtocol
from creditledger.models.billing_price import BillingPrice


class PriceCatalog(PriceCatalogProtocol):
    """SQLAlchemy implementation of PriceCatalogProtocol."""

    async def product_name(self, db: AsyncSession, *, price_ref: str) -> Optional[str]:
        """Name of the product a price belongs to, if the price is known.

        Inactive prices still resolve: an existing subscription keeps billing
        on a price after it is archived.
        """
        stmt = select(BillingPrice.product_name).where(BillingPrice.price_ref == price_ref)
        result = await db.execute(stmt)
        return result.scalar_one_or_none()
