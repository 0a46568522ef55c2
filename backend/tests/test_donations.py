"""Donation initiation and webhook settlement."""

from decimal import Decimal

from httpx import AsyncClient

from tests.helpers import (
    API,
    campaign_detail,
    create_active_campaign,
    create_campaign,
    create_fundraiser,
    donate,
    donor_headers,
    initiate_donation,
    money,
    send_webhook,
    wallet,
)


async def test_only_donors_can_donate(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers)
    r = await client.post(
        f"{API}/donations", json={"campaign_id": campaign_id, "amount": "10.00"}, headers=headers
    )
    assert r.status_code == 403


async def test_inactive_campaign_rejects_donations(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    campaign_id = (await create_campaign(client, headers))["campaign"]["id"]
    r = await client.post(
        f"{API}/donations",
        json={"campaign_id": campaign_id, "amount": "10.00"},
        headers=donor_headers(),
    )
    assert r.status_code == 409


async def test_donation_cannot_exceed_remaining_goal(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers, goal="100.00")
    await donate(client, campaign_id, "60.00")

    r = await client.post(
        f"{API}/donations",
        json={"campaign_id": campaign_id, "amount": "40.01"},
        headers=donor_headers(),
    )
    assert r.status_code == 400
    assert money(r.json()["data"]["remaining"]) == Decimal("40.00")


async def test_initiate_returns_pending_donation(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers)
    r = await client.post(
        f"{API}/donations",
        json={"campaign_id": campaign_id, "amount": "25.50", "is_anonymous": True},
        headers=donor_headers(),
    )
    assert r.status_code == 201
    data = r.json()["data"]
    assert data["donation"]["payment_status"] == "pending"
    assert data["donation"]["is_anonymous"] is True
    assert data["payment_reference"].startswith("DON_")
    assert data["checkout_url"] is None


async def test_webhook_settles_and_credits_wallet(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers)
    await donate(client, campaign_id, "250.00")

    campaign = (await campaign_detail(client, campaign_id))["campaign"]
    assert money(campaign["amount_raised"]) == Decimal("250")
    assert campaign["donor_count"] == 1

    summary = await wallet(client, headers)
    assert money(summary["available_balance"]) == Decimal("250")
    assert money(summary["total_credited"]) == Decimal("250")
    assert summary["recent_transactions"][0]["type"] == "credit"


async def test_webhook_replay_is_idempotent(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers)
    reference = await donate(client, campaign_id, "100.00")

    r = await send_webhook(client, {"data": {"reference": reference, "status": "success"}})
    assert r.status_code == 200
    assert r.json()["message"] == "Donation already successful"

    r = await send_webhook(client, {"data": {"reference": reference, "status": "failed"}})
    assert r.json()["data"]["payment_status"] == "successful"

    summary = await wallet(client, headers)
    assert money(summary["available_balance"]) == Decimal("100")
    campaign = (await campaign_detail(client, campaign_id))["campaign"]
    assert money(campaign["amount_raised"]) == Decimal("100")
    assert campaign["donor_count"] == 1


async def test_failed_payment_credits_nothing(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers)
    reference = await initiate_donation(client, campaign_id, "50.00")

    r = await send_webhook(client, {"reference": reference, "status": "abandoned"})
    assert r.status_code == 200
    assert r.json()["message"] == "Donation marked failed"

    summary = await wallet(client, headers)
    assert money(summary["available_balance"]) == 0
    assert summary["recent_transactions"] == []


async def test_bad_signature_is_rejected(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers)
    reference = await initiate_donation(client, campaign_id, "50.00")

    r = await send_webhook(
        client, {"reference": reference, "status": "success"}, secret="wrong-secret"
    )
    assert r.status_code == 401
    assert r.json()["message"] == "Invalid webhook signature"

    r = await client.post(
        f"{API}/donations/webhook", json={"reference": reference, "status": "success"}
    )
    assert r.status_code == 401

    summary = await wallet(client, headers)
    assert money(summary["available_balance"]) == 0


async def test_amount_mismatch_is_rejected(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers)
    reference = await initiate_donation(client, campaign_id, "50.00")

    r = await send_webhook(
        client, {"reference": reference, "status": "success", "amount": "5000.00"}
    )
    assert r.status_code == 400

    r = await send_webhook(
        client, {"reference": reference, "status": "success", "amount": "50.00"}
    )
    assert r.status_code == 200
    assert r.json()["data"]["payment_status"] == "successful"


async def test_unknown_reference_and_malformed_body(client: AsyncClient):
    r = await send_webhook(client, {"reference": "DON_missing", "status": "success"})
    assert r.status_code == 404

    r = await send_webhook(client, {"data": {"status": "success"}})
    assert r.status_code == 400
