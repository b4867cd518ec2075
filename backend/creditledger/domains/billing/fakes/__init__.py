"""Fake implementations for billing domain testing."""

from creditledger.domains.billing.fakes.catalog import FakePriceCatalog

__all__ = ["FakePriceCatalog"]
