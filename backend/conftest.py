"""Root conftest for pytest configuration and shared fixtures.

This conftest is loaded before both testpaths (tests/ and creditledger/),
making its fixtures available to centralized tests AND colocated domain tests.
"""

import os

import pytest
import pytest_asyncio

# Register pytest-asyncio plugin at the root level
pytest_plugins = ("pytest_asyncio",)

# ---------------------------------------------------------------------------
# Environment variables: must be set before any creditledger module import
# Uses setdefault so real env vars (CI, e2e) are never overridden.
# ---------------------------------------------------------------------------
os.environ.setdefault("ENVIRONMENT", "test")
os.environ.setdefault("LOG_LEVEL", "WARNING")
os.environ.setdefault("POSTGRES_HOST", "localhost")
os.environ.setdefault("POSTGRES_USER", "test_user")
os.environ.setdefault("POSTGRES_PASSWORD", "test_password")
os.environ.setdefault("POSTGRES_DB", "test_db")
os.environ.setdefault("STRIPE_WEBHOOK_SECRET", "whsec_test_secret")
os.environ.setdefault("STORE_TIMEOUT_SECONDS", "2")
os.environ.setdefault("STORE_MAX_ATTEMPTS", "2")
os.environ.setdefault("STORE_RETRY_MAX_WAIT_SECONDS", "0.01")

TEST_FREE_LIMIT = 10
TEST_STORE_LIMITS = dict(
    store_timeout_seconds=2.0, store_max_attempts=2, store_retry_max_wait_seconds=0.01
)


# ---------------------------------------------------------------------------
# Shared fake fixtures: individual protocol fakes
# ---------------------------------------------------------------------------


@pytest.fixture
def fake_payment_gateway():
    """Fake PaymentGateway that accepts VALID_SIGNATURE."""
    from creditledger.adapters.payment.fake import FakePaymentGateway

    return FakePaymentGateway()


@pytest.fixture
def fake_account_repo():
    """Fake AccountRepository holding accounts, spend entries and resets in memory."""
    from creditledger.domains.ledger.fakes.repository import FakeAccountRepository

    return FakeAccountRepository()


@pytest.fixture
def fake_subscription_repo():
    """Fake SubscriptionRepository with the last-event-wins upsert."""
    from creditledger.domains.subscriptions.fakes.repository import FakeSubscriptionRepository

    return FakeSubscriptionRepository()


@pytest.fixture
def fake_event_repo():
    """Fake ProcessedEventRepository keyed by event id."""
    from creditledger.domains.idempotency.fakes.repository import FakeProcessedEventRepository

    return FakeProcessedEventRepository()


@pytest.fixture
def fake_price_catalog():
    """Fake PriceCatalog with one price per paid tier."""
    from creditledger.domains.billing.fakes.catalog import FakePriceCatalog

    return FakePriceCatalog(
        {
            "price_basic": "Starter Plan",
            "price_premium": "Premium Monthly",
            "price_enterprise": "Enterprise Annual",
        }
    )


# ---------------------------------------------------------------------------
# Test container: real services over fake stores
# ---------------------------------------------------------------------------


@pytest.fixture
def test_container(
    fake_payment_gateway,
    fake_account_repo,
    fake_subscription_repo,
    fake_event_repo,
    fake_price_catalog,
):
    """A Container whose services run over in-memory fakes.

    Use this when testing code that receives a Container or individual
    protocols via dependency injection.

    For partial overrides, use container.replace():
        other = test_container.replace(payment_gateway=FakePaymentGateway("t=1,v1=x"))
    """
    from creditledger.core.container import Container
    from creditledger.domains.billing.webhook_processor import BillingWebhookProcessor
    from creditledger.domains.idempotency.store import IdempotencyStore
    from creditledger.domains.ledger.service import AccountLedger
    from creditledger.domains.subscriptions.tracker import SubscriptionStateTracker
    from creditledger.domains.tiers.policy import SubstringTierPolicy
    from creditledger.domains.usage.gate import UsageGate

    tier_policy = SubstringTierPolicy()
    ledger = AccountLedger(
        fake_account_repo, free_credit_limit=TEST_FREE_LIMIT, **TEST_STORE_LIMITS
    )
    tracker = SubscriptionStateTracker(fake_subscription_repo, **TEST_STORE_LIMITS)
    idempotency = IdempotencyStore(fake_event_repo, retention_days=30, **TEST_STORE_LIMITS)

    return Container(
        tier_policy=tier_policy,
        ledger=ledger,
        tracker=tracker,
        idempotency=idempotency,
        price_catalog=fake_price_catalog,
        billing_webhook=BillingWebhookProcessor(
            payment_gateway=fake_payment_gateway,
            ledger=ledger,
            tracker=tracker,
            idempotency=idempotency,
            tier_policy=tier_policy,
            price_catalog=fake_price_catalog,
            free_credit_limit=TEST_FREE_LIMIT,
            **TEST_STORE_LIMITS,
        ),
        usage_gate=UsageGate(ledger),
        payment_gateway=fake_payment_gateway,
    )


# ---------------------------------------------------------------------------
# SQLite-backed session for repository and integration tests
# ---------------------------------------------------------------------------


@pytest_asyncio.fixture
async def sqlite_db(tmp_path):
    """AsyncSession on a fresh SQLite file with every table created."""
    from sqlalchemy import event
    from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine

    from creditledger.models import Base

    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'ledger.db'}")

    @event.listens_for(engine.sync_engine, "connect")
    def _enable_foreign_keys(dbapi_connection, connection_record):
        cursor = dbapi_connection.cursor()
        cursor.execute("PRAGMA foreign_keys=ON")
        cursor.close()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    session_factory = async_sessionmaker(engine, expire_on_commit=False, autoflush=False)
    async with session_factory() as session:
        yield session

    await engine.dispose()
