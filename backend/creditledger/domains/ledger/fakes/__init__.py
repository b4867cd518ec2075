"""Fake implementations for ledger domain testing."""

from creditledger.domains.ledger.fakes.repository import FakeAccountRepository

__all__ = ["FakeAccountRepository"]
