"""Subscriptions domain: local mirror of provider subscription state."""

from creditledger.domains.subscriptions.protocols import SubscriptionStateTrackerProtocol
from creditledger.domains.subscriptions.tracker import SubscriptionStateTracker
from creditledger.domains.subscriptions.types import (
    SubscriptionSnapshot,
    SubscriptionState,
    TrackerOutcome,
)

__all__ = [
    "SubscriptionSnapshot",
    "SubscriptionState",
    "SubscriptionStateTracker",
    "SubscriptionStateTrackerProtocol",
    "TrackerOutcome",
]
