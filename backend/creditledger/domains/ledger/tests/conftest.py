"""Ledger domain test fixtures and helpers."""

from typing import Any, Optional
from unittest.mock import AsyncMock

import pytest

from creditledger.core.datetime_utils import utc_now
from creditledger.core.shared_models import SubscriptionStatus, Tier
from creditledger.domains.ledger.fakes.repository import FakeAccountRepository
from creditledger.domains.ledger.service import AccountLedger
from creditledger.models.account import Account

DEFAULT_ACCOUNT_ID = "acct_test"
FREE_LIMIT = 10

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _make_account(account_id: str = DEFAULT_ACCOUNT_ID, **overrides: Any) -> Account:
    """Return an Account ORM model on the free tier with a full balance."""
    now = utc_now()
    defaults = dict(
        id=account_id,
        tier=Tier.FREE.value,
        subscription_status=SubscriptionStatus.ACTIVE.value,
        credits_remaining=FREE_LIMIT,
        credit_limit=FREE_LIMIT,
        billing_customer_ref=None,
        created_at=now,
        modified_at=now,
    )
    defaults.update(overrides)
    return Account(**defaults)


def _make_ledger(
    *,
    account_repo: Optional[FakeAccountRepository] = None,
    store_timeout_seconds: float = 1.0,
    store_max_attempts: int = 3,
) -> tuple[AccountLedger, FakeAccountRepository]:
    """Build an AccountLedger wired to a fake repository. Returns (ledger, repo)."""
    repo = account_repo or FakeAccountRepository()
    ledger = AccountLedger(
        repo,
        free_credit_limit=FREE_LIMIT,
        store_timeout_seconds=store_timeout_seconds,
        store_max_attempts=store_max_attempts,
        store_retry_max_wait_seconds=0.01,
    )
    return ledger, repo


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def db():
    """AsyncMock database session: fakes ignore it."""
    return AsyncMock()
