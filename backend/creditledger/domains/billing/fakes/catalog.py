"""Fake price catalog for testing."""

from typing import Optional

from sqlalchemy.ext.asyncio import AsyncSession


class FakePriceCatalog:
    """In-memory fake for PriceCatalogProtocol."""

    def __init__(self, prices: Optional[dict[str, str]] = None) -> None:
        self._prices: dict[str, str] = dict(prices or {})
        self._calls: list[tuple] = []

    def seed(self, price_ref: str, product_name: str) -> None:
        self._prices[price_ref] = product_name

    def call_count(self, method: str) -> int:
        return sum(1 for name, *_ in self._calls if name == method)

    async def product_name(self, db: AsyncSession, *, price_ref: str) -> Optional[str]:
        self._calls.append(("product_name", price_ref))
        return self._prices.get(price_ref)
