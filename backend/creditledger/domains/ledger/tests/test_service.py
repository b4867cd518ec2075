"""Unit tests for AccountLedger against the in-memory repository."""

import asyncio
from datetime import timedelta

import pytest
from sqlalchemy.exc import OperationalError

from creditledger.core.exceptions import TransientStoreFailureError
from creditledger.core.shared_models import CreditResetCause, SubscriptionStatus, Tier
from creditledger.db.unit_of_work import UnitOfWork
from creditledger.domains.ledger.exceptions import (
    AccountNotFoundError,
    CustomerAlreadyLinkedError,
    InsufficientCreditsError,
    InvalidSpendAmountError,
)
from creditledger.domains.ledger.tests.conftest import (
    DEFAULT_ACCOUNT_ID,
    FREE_LIMIT,
    _make_account,
    _make_ledger,
)


# ===========================================================================
# spend
# ===========================================================================


class TestSpend:
    @pytest.mark.asyncio
    async def test_accepted_spend_decrements_and_logs(self, db):
        ledger, repo = _make_ledger()
        repo.seed(_make_account())

        result = await ledger.spend(
            db,
            account_id=DEFAULT_ACCOUNT_ID,
            credits_used=5,
            action_type="summarize",
            metadata={"doc": "a.pdf"},
        )

        assert result.accepted is True
        assert result.credits_remaining == 5
        assert repo.account(DEFAULT_ACCOUNT_ID).credits_remaining == 5
        assert len(repo.entries) == 1
        entry = repo.entries[0]
        assert entry.id == result.entry_id
        assert entry.action_type == "summarize"
        assert entry.entry_metadata == {"doc": "a.pdf"}
        db.commit.assert_awaited()

    @pytest.mark.asyncio
    async def test_insufficient_credits_makes_no_mutation(self, db):
        ledger, repo = _make_ledger()
        repo.seed(_make_account(credits_remaining=5))

        with pytest.raises(InsufficientCreditsError) as exc_info:
            await ledger.spend(
                db, account_id=DEFAULT_ACCOUNT_ID, credits_used=8, action_type="summarize"
            )

        assert exc_info.value.credits_remaining == 5
        assert exc_info.value.requested == 8
        assert repo.account(DEFAULT_ACCOUNT_ID).credits_remaining == 5
        assert repo.entries == []

    @pytest.mark.asyncio
    async def test_spend_of_exact_balance_reaches_zero(self, db):
        ledger, repo = _make_ledger()
        repo.seed(_make_account())

        result = await ledger.spend(
            db, account_id=DEFAULT_ACCOUNT_ID, credits_used=FREE_LIMIT, action_type="x"
        )

        assert result.credits_remaining == 0
        with pytest.raises(InsufficientCreditsError):
            await ledger.spend(db, account_id=DEFAULT_ACCOUNT_ID, credits_used=1, action_type="x")

    @pytest.mark.asyncio
    @pytest.mark.parametrize("amount", [0, -3, True, 2.5])
    async def test_rejects_non_positive_or_non_integer_amounts(self, db, amount):
        ledger, repo = _make_ledger()
        repo.seed(_make_account())

        with pytest.raises(InvalidSpendAmountError):
            await ledger.spend(
                db, account_id=DEFAULT_ACCOUNT_ID, credits_used=amount, action_type="x"
            )

        assert repo.call_count("debit") == 0

    @pytest.mark.asyncio
    async def test_unknown_account(self, db):
        ledger, _ = _make_ledger()

        with pytest.raises(AccountNotFoundError):
            await ledger.spend(db, account_id="nobody", credits_used=1, action_type="x")

    @pytest.mark.asyncio
    async def test_balance_never_negative_over_random_sequence(self, db):
        ledger, repo = _make_ledger()
        repo.seed(_make_account(credits_remaining=37, credit_limit=37))

        for amount in [5, 9, 1, 30, 7, 2, 13, 4, 4, 1, 1, 6]:
            try:
                await ledger.spend(
                    db, account_id=DEFAULT_ACCOUNT_ID, credits_used=amount, action_type="x"
                )
            except InsufficientCreditsError:
                pass
            assert repo.account(DEFAULT_ACCOUNT_ID).credits_remaining >= 0

        spent = sum(e.credits_used for e in repo.entries)
        assert spent == 37 - repo.account(DEFAULT_ACCOUNT_ID).credits_remaining

    @pytest.mark.asyncio
    async def test_joins_caller_unit_of_work_without_committing(self, db):
        ledger, repo = _make_ledger()
        repo.seed(_make_account())

        async with UnitOfWork(db) as uow:
            await ledger.spend(
                db, account_id=DEFAULT_ACCOUNT_ID, credits_used=1, action_type="x", uow=uow
            )
            db.commit.assert_not_awaited()
            await uow.commit()

        db.commit.assert_awaited_once()


class TestConcurrentSpend:
    @pytest.mark.asyncio
    @pytest.mark.parametrize("n", [2, 5, 10])
    async def test_exactly_one_of_n_oversized_spends_succeeds(self, db, n):
        limit = 100
        ledger, repo = _make_ledger()
        repo.seed(_make_account(credits_remaining=limit, credit_limit=limit))
        each = limit // n + 1

        results = await asyncio.gather(
            *[
                ledger.spend(
                    db, account_id=DEFAULT_ACCOUNT_ID, credits_used=each, action_type="x"
                )
                for _ in range(n)
            ],
            return_exceptions=True,
        )

        accepted = [r for r in results if not isinstance(r, Exception)]
        denied = [r for r in results if isinstance(r, InsufficientCreditsError)]
        expected_accepted = limit // each
        assert len(accepted) == expected_accepted
        assert len(denied) == n - expected_accepted
        assert repo.account(DEFAULT_ACCOUNT_ID).credits_remaining == limit - each * len(accepted)
        assert repo.account(DEFAULT_ACCOUNT_ID).credits_remaining >= 0

    @pytest.mark.asyncio
    @pytest.mark.parametrize("n", [2, 4, 8])
    async def test_no_double_spend_when_each_request_exceeds_half(self, db, n):
        # Each request is larger than half the balance: only one can ever fit.
        limit = 100
        ledger, repo = _make_ledger()
        repo.seed(_make_account(credits_remaining=limit, credit_limit=limit))

        results = await asyncio.gather(
            *[
                ledger.spend(db, account_id=DEFAULT_ACCOUNT_ID, credits_used=51, action_type="x")
                for _ in range(n)
            ],
            return_exceptions=True,
        )

        assert sum(1 for r in results if not isinstance(r, Exception)) == 1
        assert sum(1 for r in results if isinstance(r, InsufficientCreditsError)) == n - 1
        assert repo.account(DEFAULT_ACCOUNT_ID).credits_remaining == 49
        assert len(repo.entries) == 1


# ===========================================================================
# reset / downgrade / status
# ===========================================================================


class TestReset:
    @pytest.mark.asyncio
    async def test_reset_refills_and_audits(self, db):
        ledger, repo = _make_ledger()
        repo.seed(_make_account(credits_remaining=3))

        outcome = await ledger.reset(
            db,
            account_id=DEFAULT_ACCOUNT_ID,
            tier=Tier.PREMIUM,
            credit_limit=2000,
            status=SubscriptionStatus.ACTIVE,
            cause=CreditResetCause.INVOICE_PAID,
            cause_ref="in_1",
        )

        account = repo.account(DEFAULT_ACCOUNT_ID)
        assert outcome.applied is True
        assert (outcome.credits_before, outcome.credits_after) == (3, 2000)
        assert account.tier == Tier.PREMIUM.value
        assert account.credit_limit == 2000
        assert account.credits_remaining == 2000
        assert len(repo.resets) == 1
        assert repo.resets[0].cause == CreditResetCause.INVOICE_PAID.value

    @pytest.mark.asyncio
    async def test_same_cause_ref_applies_once(self, db):
        ledger, repo = _make_ledger()
        repo.seed(_make_account())
        kwargs = dict(
            account_id=DEFAULT_ACCOUNT_ID,
            tier=Tier.PREMIUM,
            credit_limit=2000,
            status=SubscriptionStatus.ACTIVE,
            cause=CreditResetCause.INVOICE_PAID,
            cause_ref="in_1",
        )

        await ledger.reset(db, **kwargs)
        await ledger.spend(db, account_id=DEFAULT_ACCOUNT_ID, credits_used=100, action_type="x")
        second = await ledger.reset(db, **kwargs)

        assert second.applied is False
        assert repo.account(DEFAULT_ACCOUNT_ID).credits_remaining == 1900
        assert len(repo.resets) == 1

    @pytest.mark.asyncio
    async def test_downgrade_keeps_remaining(self, db):
        ledger, repo = _make_ledger()
        repo.seed(
            _make_account(
                tier=Tier.PREMIUM.value, credits_remaining=1500, credit_limit=2000
            )
        )

        outcome = await ledger.downgrade(
            db,
            account_id=DEFAULT_ACCOUNT_ID,
            tier=Tier.FREE,
            credit_limit=FREE_LIMIT,
            status=SubscriptionStatus.CANCELED,
            cause_ref="evt_del",
        )

        account = repo.account(DEFAULT_ACCOUNT_ID)
        assert outcome.applied is True
        assert outcome.credits_after == 1500
        assert account.tier == Tier.FREE.value
        assert account.credit_limit == FREE_LIMIT
        assert account.subscription_status == SubscriptionStatus.CANCELED.value
        assert account.credits_remaining == 1500

    @pytest.mark.asyncio
    async def test_reset_unknown_account(self, db):
        ledger, _ = _make_ledger()

        with pytest.raises(AccountNotFoundError):
            await ledger.reset(
                db,
                account_id="nobody",
                tier=Tier.BASIC,
                credit_limit=500,
                status=SubscriptionStatus.ACTIVE,
                cause=CreditResetCause.SUBSCRIPTION_ACTIVATED,
            )

    @pytest.mark.asyncio
    async def test_update_status_leaves_credits(self, db):
        ledger, repo = _make_ledger()
        repo.seed(_make_account(credits_remaining=4))

        await ledger.update_status(
            db, account_id=DEFAULT_ACCOUNT_ID, status=SubscriptionStatus.PAST_DUE
        )

        account = repo.account(DEFAULT_ACCOUNT_ID)
        assert account.subscription_status == SubscriptionStatus.PAST_DUE.value
        assert account.credits_remaining == 4

    @pytest.mark.asyncio
    async def test_update_status_unknown_account(self, db):
        ledger, _ = _make_ledger()

        with pytest.raises(AccountNotFoundError):
            await ledger.update_status(db, account_id="x", status=SubscriptionStatus.PAST_DUE)


# ===========================================================================
# accounts and ledger view
# ===========================================================================


class TestAccounts:
    @pytest.mark.asyncio
    async def test_open_account_is_free_and_full(self, db):
        ledger, _ = _make_ledger()

        snapshot = await ledger.open_account(db, account_id="new", billing_customer_ref="cus_1")

        assert snapshot.tier == Tier.FREE
        assert snapshot.credit_limit == FREE_LIMIT
        assert snapshot.credits_remaining == FREE_LIMIT
        assert snapshot.subscription_status == SubscriptionStatus.ACTIVE
        assert snapshot.billing_customer_ref == "cus_1"

    @pytest.mark.asyncio
    async def test_open_account_twice_returns_existing(self, db):
        ledger, repo = _make_ledger()
        repo.seed(_make_account(credits_remaining=2))

        snapshot = await ledger.open_account(db, account_id=DEFAULT_ACCOUNT_ID)

        assert snapshot.credits_remaining == 2

    @pytest.mark.asyncio
    async def test_link_customer_conflict(self, db):
        ledger, repo = _make_ledger()
        repo.seed(_make_account(), _make_account("other", billing_customer_ref="cus_1"))

        with pytest.raises(CustomerAlreadyLinkedError):
            await ledger.link_customer(
                db, account_id=DEFAULT_ACCOUNT_ID, billing_customer_ref="cus_1"
            )

    @pytest.mark.asyncio
    async def test_find_by_customer(self, db):
        ledger, repo = _make_ledger()
        repo.seed(_make_account(billing_customer_ref="cus_9"))

        found = await ledger.find_by_customer(db, billing_customer_ref="cus_9")
        missing = await ledger.find_by_customer(db, billing_customer_ref="cus_0")

        assert found.account_id == DEFAULT_ACCOUNT_ID
        assert missing is None

    @pytest.mark.asyncio
    async def test_get_ledger_statistics_since_last_refill(self, db):
        ledger, repo = _make_ledger()
        repo.seed(_make_account())

        await ledger.spend(db, account_id=DEFAULT_ACCOUNT_ID, credits_used=4, action_type="old")
        repo.entries[0].created_at -= timedelta(seconds=5)
        await ledger.reset(
            db,
            account_id=DEFAULT_ACCOUNT_ID,
            tier=Tier.BASIC,
            credit_limit=500,
            status=SubscriptionStatus.ACTIVE,
            cause=CreditResetCause.SUBSCRIPTION_ACTIVATED,
            cause_ref="evt_1",
        )
        await ledger.spend(db, account_id=DEFAULT_ACCOUNT_ID, credits_used=20, action_type="chat")
        await ledger.spend(db, account_id=DEFAULT_ACCOUNT_ID, credits_used=30, action_type="image")
        await ledger.spend(db, account_id=DEFAULT_ACCOUNT_ID, credits_used=5, action_type="chat")

        view = await ledger.get_ledger(db, account_id=DEFAULT_ACCOUNT_ID, limit=2)

        assert view.account.credits_remaining == 445
        assert [e.credits_used for e in view.recent_entries] == [5, 30]
        assert view.statistics.total_used == 55
        assert view.statistics.usage_by_type == {"chat": 25, "image": 30}
        assert view.statistics.percent_used == 11.0

    @pytest.mark.asyncio
    async def test_get_ledger_unknown_account(self, db):
        ledger, _ = _make_ledger()

        with pytest.raises(AccountNotFoundError):
            await ledger.get_ledger(db, account_id="nobody")


# ===========================================================================
# store failures
# ===========================================================================


def _operational_error() -> OperationalError:
    return OperationalError("UPDATE account", {}, Exception("connection reset"))


class TestStoreFailures:
    @pytest.mark.asyncio
    async def test_transient_error_is_retried(self, db, monkeypatch):
        ledger, repo = _make_ledger(store_max_attempts=3)
        repo.seed(_make_account())
        original = repo.debit
        failures = {"left": 2}

        async def flaky_debit(*args, **kwargs):
            if failures["left"] > 0:
                failures["left"] -= 1
                raise _operational_error()
            return await original(*args, **kwargs)

        monkeypatch.setattr(repo, "debit", flaky_debit)

        result = await ledger.spend(
            db, account_id=DEFAULT_ACCOUNT_ID, credits_used=1, action_type="x"
        )

        assert result.credits_remaining == FREE_LIMIT - 1
        assert db.rollback.await_count >= 2

    @pytest.mark.asyncio
    async def test_exhausted_retries_surface_transient_failure(self, db, monkeypatch):
        ledger, repo = _make_ledger(store_max_attempts=2)
        repo.seed(_make_account())

        async def broken_debit(*args, **kwargs):
            raise _operational_error()

        monkeypatch.setattr(repo, "debit", broken_debit)

        with pytest.raises(TransientStoreFailureError) as exc_info:
            await ledger.spend(db, account_id=DEFAULT_ACCOUNT_ID, credits_used=1, action_type="x")

        assert exc_info.value.attempts == 2
        assert repo.account(DEFAULT_ACCOUNT_ID).credits_remaining == FREE_LIMIT

    @pytest.mark.asyncio
    async def test_store_timeout_is_bounded(self, db, monkeypatch):
        ledger, repo = _make_ledger(store_timeout_seconds=0.01, store_max_attempts=2)
        repo.seed(_make_account())

        async def hanging_debit(*args, **kwargs):
            await asyncio.sleep(10)

        monkeypatch.setattr(repo, "debit", hanging_debit)

        with pytest.raises(TransientStoreFailureError):
            await ledger.spend(db, account_id=DEFAULT_ACCOUNT_ID, credits_used=1, action_type="x")

    @pytest.mark.asyncio
    async def test_business_errors_are_not_retried(self, db):
        ledger, repo = _make_ledger(store_max_attempts=3)
        repo.seed(_make_account(credits_remaining=0))

        with pytest.raises(InsufficientCreditsError):
            await ledger.spend(db, account_id=DEFAULT_ACCOUNT_ID, credits_used=1, action_type="x")

        assert repo.call_count("debit") == 1
