"""Fake implementations for subscriptions domain testing."""

from creditledger.domains.subscriptions.fakes.repository import FakeSubscriptionRepository

__all__ = ["FakeSubscriptionRepository"]
