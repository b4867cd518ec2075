"""API tests for the usage endpoint."""

import pytest

from creditledger.domains.ledger.tests.conftest import _make_account


@pytest.mark.asyncio
async def test_spend_within_balance_is_accepted(client, fake_account_repo):
    fake_account_repo.seed(_make_account("acct_1"))

    response = await client.post(
        "/api/v1/usage/spend",
        json={"account_id": "acct_1", "action_type": "chat_message", "credits": 3},
    )

    assert response.status_code == 200
    body = response.json()
    assert body["accepted"] is True
    assert body["credits_remaining"] == 7
    assert body["entry_id"]
    assert fake_account_repo.account("acct_1").credits_remaining == 7


@pytest.mark.asyncio
async def test_spend_over_balance_is_402_and_debits_nothing(client, fake_account_repo):
    fake_account_repo.seed(_make_account("acct_1", credits_remaining=5))

    response = await client.post(
        "/api/v1/usage/spend",
        json={"account_id": "acct_1", "action_type": "chat_message", "credits": 8},
    )

    assert response.status_code == 402
    assert response.json() == {
        "accepted": False,
        "reason": "insufficient_credits",
        "credits_remaining": 5,
    }
    assert fake_account_repo.account("acct_1").credits_remaining == 5
    assert fake_account_repo.entries == []


@pytest.mark.asyncio
async def test_spend_on_unknown_account_is_404(client):
    response = await client.post(
        "/api/v1/usage/spend",
        json={"account_id": "ghost", "action_type": "chat_message", "credits": 1},
    )

    assert response.status_code == 404


@pytest.mark.asyncio
@pytest.mark.parametrize("credits", [0, -3])
async def test_non_positive_amount_is_422(client, fake_account_repo, credits):
    fake_account_repo.seed(_make_account("acct_1"))

    response = await client.post(
        "/api/v1/usage/spend",
        json={"account_id": "acct_1", "action_type": "chat_message", "credits": credits},
    )

    assert response.status_code == 422
    assert fake_account_repo.account("acct_1").credits_remaining == 10


@pytest.mark.asyncio
async def test_metadata_is_stored_on_the_entry(client, fake_account_repo):
    fake_account_repo.seed(_make_account("acct_1"))

    await client.post(
        "/api/v1/usage/spend",
        json={
            "account_id": "acct_1",
            "action_type": "image",
            "credits": 2,
            "metadata": {"model": "sdxl"},
        },
    )

    (entry,) = fake_account_repo.entries
    assert entry.action_type == "image"
    assert entry.entry_metadata == {"model": "sdxl"}
