"""Wallet summary, ledger listing and payout bank account."""

from decimal import Decimal

from httpx import AsyncClient

from tests.helpers import (
    API,
    create_active_campaign,
    create_fundraiser,
    donate,
    donor_headers,
    money,
    wallet,
)


async def test_empty_wallet_summary(client: AsyncClient):
    headers, fundraiser_id = await create_fundraiser(client)
    summary = await wallet(client, headers)
    assert summary["fundraiser_id"] == str(fundraiser_id)
    assert money(summary["available_balance"]) == 0
    assert summary["campaigns"] == []
    assert summary["bank_account"] is None


async def test_wallet_is_fundraiser_only(client: AsyncClient):
    r = await client.get(f"{API}/wallet", headers=donor_headers())
    assert r.status_code == 403


async def test_transactions_filters(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    first = await create_active_campaign(client, headers)
    second = await create_active_campaign(client, headers)
    await donate(client, first, "10.00")
    await donate(client, first, "20.00")
    await donate(client, second, "5.00")

    r = await client.get(f"{API}/wallet/transactions", headers=headers)
    assert r.status_code == 200
    assert len(r.json()["data"]) == 3

    r = await client.get(
        f"{API}/wallet/transactions", params={"campaign_id": first}, headers=headers
    )
    assert sorted(money(t["amount"]) for t in r.json()["data"]) == [
        Decimal("10"),
        Decimal("20"),
    ]

    r = await client.get(f"{API}/wallet/transactions", params={"limit": 1}, headers=headers)
    assert len(r.json()["data"]) == 1

    r = await client.get(f"{API}/wallet/transactions", params={"type": "debit"}, headers=headers)
    assert r.json()["data"] == []

    r = await client.get(f"{API}/wallet/transactions", params={"type": "bonus"}, headers=headers)
    assert r.status_code == 400
    assert r.json()["data"]["allowed"] == ["credit", "debit", "reversal"]


async def test_bank_list(client: AsyncClient):
    r = await client.get(f"{API}/wallet/banks")
    assert r.status_code == 200
    assert {"name": "Zenith Bank", "code": "057"} in r.json()["data"]


async def test_set_bank_account_resolves_code(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    r = await client.put(
        f"{API}/wallet/bank-account",
        json={
            "bank_name": "zenith bank",
            "account_number": "0123456789",
            "account_name": "Clean Water Org",
        },
        headers=headers,
    )
    assert r.status_code == 200
    assert r.json()["data"]["bank_code"] == "057"

    summary = await wallet(client, headers)
    assert summary["bank_account"]["account_number"] == "0123456789"
    assert summary["bank_account"]["bank_code"] == "057"


async def test_set_bank_account_validation(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    r = await client.put(
        f"{API}/wallet/bank-account",
        json={"bank_name": "Moon Bank", "account_number": "0123456789", "account_name": "Org"},
        headers=headers,
    )
    assert r.status_code == 400
    assert r.json()["message"] == "Unknown bank 'Moon Bank'"

    r = await client.put(
        f"{API}/wallet/bank-account",
        json={"bank_name": "Access Bank", "account_number": "12345", "account_name": "Org"},
        headers=headers,
    )
    assert r.status_code == 422
