"""API tests for the accounts endpoints."""

import pytest

from creditledger.domains.ledger.tests.conftest import _make_account


@pytest.mark.asyncio
async def test_open_account_starts_on_free_tier(client, fake_account_repo):
    response = await client.post(
        "/api/v1/accounts", json={"account_id": "acct_new", "billing_customer_ref": "cus_new"}
    )

    assert response.status_code == 200
    body = response.json()
    assert body["account_id"] == "acct_new"
    assert body["tier"] == "free"
    assert body["credits_remaining"] == body["credit_limit"] == 10
    assert body["billing_customer_ref"] == "cus_new"
    assert fake_account_repo.account("acct_new") is not None


@pytest.mark.asyncio
async def test_open_existing_account_returns_it_unchanged(client, fake_account_repo):
    fake_account_repo.seed(_make_account("acct_1", tier="premium", credit_limit=2000))

    response = await client.post("/api/v1/accounts", json={"account_id": "acct_1"})

    assert response.status_code == 200
    assert response.json()["tier"] == "premium"


@pytest.mark.asyncio
async def test_ledger_lists_entries_and_statistics(client, fake_account_repo):
    fake_account_repo.seed(_make_account("acct_1"))
    for credits in (1, 2):
        await client.post(
            "/api/v1/usage/spend",
            json={"account_id": "acct_1", "action_type": "chat_message", "credits": credits},
        )

    response = await client.get("/api/v1/accounts/acct_1/ledger", params={"limit": 1})

    assert response.status_code == 200
    body = response.json()
    assert body["account"]["credits_remaining"] == 7
    assert len(body["recent_entries"]) == 1
    assert body["statistics"]["total_used"] == 3
    assert body["statistics"]["usage_by_type"] == {"chat_message": 3}


@pytest.mark.asyncio
async def test_ledger_of_unknown_account_is_404(client):
    response = await client.get("/api/v1/accounts/ghost/ledger")

    assert response.status_code == 404
