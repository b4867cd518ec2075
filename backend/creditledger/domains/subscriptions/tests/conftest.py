"""Subscriptions domain test helpers."""

from datetime import datetime, timedelta, timezone
from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest

from creditledger.core.shared_models import SubscriptionStatus
from creditledger.domains.subscriptions.fakes.repository import FakeSubscriptionRepository
from creditledger.domains.subscriptions.tracker import SubscriptionStateTracker
from creditledger.domains.subscriptions.types import SubscriptionSnapshot

T0 = datetime(2026, 3, 1, 12, 0, tzinfo=timezone.utc)


def _at(seconds: int) -> datetime:
    """T0 shifted by ``seconds``."""
    return T0 + timedelta(seconds=seconds)


def _make_snapshot(
    subscription_ref: str = "sub_1",
    status: SubscriptionStatus = SubscriptionStatus.ACTIVE,
    **overrides: Any,
) -> SubscriptionSnapshot:
    defaults = dict(
        subscription_ref=subscription_ref,
        account_id="acct_test",
        status=status,
        price_ref="price_premium",
        period_start=T0,
        period_end=T0 + timedelta(days=30),
    )
    defaults.update(overrides)
    return SubscriptionSnapshot(**defaults)


def _make_tracker(
    repo: Optional[FakeSubscriptionRepository] = None,
) -> tuple[SubscriptionStateTracker, FakeSubscriptionRepository]:
    repo = repo or FakeSubscriptionRepository()
    tracker = SubscriptionStateTracker(
        repo, store_timeout_seconds=1.0, store_max_attempts=2, store_retry_max_wait_seconds=0.01
    )
    return tracker, repo


@pytest.fixture
def db():
    return AsyncMock()
