"""Fake implementations for idempotency domain testing."""

from creditledger.domains.idempotency.fakes.repository import FakeProcessedEventRepository

__all__ = ["FakeProcessedEventRepository"]
