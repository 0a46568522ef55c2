"""Payout reservation, decisions and the ledger invariants."""

import uuid
from decimal import Decimal

from httpx import AsyncClient

from tests.helpers import (
    API,
    admin_headers,
    create_active_campaign,
    create_fundraiser,
    donate,
    milestones,
    money,
    release_milestone,
    review_evidence,
    submit_evidence,
    wallet,
)


async def _approved_first_milestone(client: AsyncClient, bucket, goal: str = "1000.00"):
    """Fully funded campaign whose first milestone evidence was approved."""
    headers, fundraiser_id = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers, goal=goal)
    await donate(client, campaign_id, goal)
    first = (await milestones(client, campaign_id))[0]
    r = await submit_evidence(client, headers, bucket, fundraiser_id, first["id"])
    r = await review_evidence(client, r.json()["data"]["evidence"]["id"])
    assert r.status_code == 200, r.text
    return headers, fundraiser_id, campaign_id, r.json()["data"]["payout"]


def _assert_conserved(summary: dict) -> None:
    """Every credited unit is either available, reserved or withdrawn."""
    assert money(summary["total_credited"]) == (
        money(summary["available_balance"])
        + money(summary["reserved"])
        + money(summary["total_withdrawn"])
    )


async def test_reject_payout_refunds_and_reopens_request(client: AsyncClient, bucket, notifier):
    headers, _fid, campaign_id, payout = await _approved_first_milestone(client, bucket)

    r = await client.post(
        f"{API}/admin/payouts/{payout['id']}/reject", json={}, headers=admin_headers()
    )
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "rejected"
    assert r.json()["data"]["rejection_reason"] == "Rejected by admin"
    assert "Payout rejected" in notifier.subjects()

    summary = await wallet(client, headers)
    assert money(summary["available_balance"]) == Decimal("1000")
    assert money(summary["reserved"]) == 0
    assert [t["type"] for t in summary["recent_transactions"]][:2] == ["reversal", "debit"]
    _assert_conserved(summary)

    first = (await milestones(client, campaign_id))[0]
    assert first["progress"] == "ready_for_request"

    r = await client.post(
        f"{API}/payouts",
        json={"campaign_id": campaign_id, "amount": "300.00"},
        headers=headers,
    )
    assert r.status_code == 201
    requested = r.json()["data"]
    assert requested["status"] == "requested"
    assert requested["milestone_id"] == first["id"]
    assert (await milestones(client, campaign_id))[0]["progress"] == "awaiting_disbursement"

    r = await client.post(
        f"{API}/admin/payouts/{requested['id']}/authorize", json={}, headers=admin_headers()
    )
    assert r.status_code == 200
    assert (await milestones(client, campaign_id))[0]["progress"] == "completed"
    _assert_conserved(await wallet(client, headers))


async def test_partial_request_still_completes_milestone(client: AsyncClient, bucket):
    headers, _fid, campaign_id, payout = await _approved_first_milestone(client, bucket)
    await client.post(
        f"{API}/admin/payouts/{payout['id']}/reject",
        json={"reason": "Bank details mismatch"},
        headers=admin_headers(),
    )

    r = await client.post(
        f"{API}/payouts",
        json={"campaign_id": campaign_id, "amount": "300.01"},
        headers=headers,
    )
    assert r.status_code == 400

    r = await client.post(
        f"{API}/payouts",
        json={"campaign_id": campaign_id, "amount": "120.00"},
        headers=headers,
    )
    assert r.status_code == 201
    await client.post(
        f"{API}/admin/payouts/{r.json()['data']['id']}/authorize",
        json={},
        headers=admin_headers(),
    )

    first, second, _ = await milestones(client, campaign_id)
    assert first["progress"] == "completed"
    assert money(first["released_amount"]) == Decimal("120")
    assert second["progress"] == "awaiting_evidence"


async def test_one_payout_in_flight_per_fundraiser(client: AsyncClient, bucket):
    headers, _fid, campaign_id, payout = await _approved_first_milestone(client, bucket)
    await client.post(
        f"{API}/admin/payouts/{payout['id']}/reject", json={}, headers=admin_headers()
    )

    r = await client.post(
        f"{API}/payouts", json={"campaign_id": campaign_id, "amount": "100.00"}, headers=headers
    )
    assert r.status_code == 201

    r = await client.post(
        f"{API}/payouts", json={"campaign_id": campaign_id, "amount": "100.00"}, headers=headers
    )
    assert r.status_code == 409
    assert r.json()["message"] == "A payout is already in progress for this fundraiser"

    r = await client.get(f"{API}/admin/payouts/pending", headers=admin_headers())
    assert len(r.json()["data"]) == 1


async def test_request_needs_a_ready_milestone(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers)
    await donate(client, campaign_id, "200.00")

    r = await client.post(
        f"{API}/payouts", json={"campaign_id": campaign_id, "amount": "50.00"}, headers=headers
    )
    assert r.status_code == 409
    assert r.json()["message"] == "Payouts open once the campaign has completed"

    await donate(client, campaign_id, "800.00")
    r = await client.post(
        f"{API}/payouts", json={"campaign_id": campaign_id, "amount": "50.00"}, headers=headers
    )
    assert r.status_code == 409
    assert r.json()["message"] == "No milestone is ready for a payout request"


async def test_only_owner_requests_payout(client: AsyncClient, bucket):
    _headers, _fid, campaign_id, _payout = await _approved_first_milestone(client, bucket)
    other, _ = await create_fundraiser(client)
    r = await client.post(
        f"{API}/payouts", json={"campaign_id": campaign_id, "amount": "10.00"}, headers=other
    )
    assert r.status_code == 403


async def test_decided_payout_cannot_be_decided_again(client: AsyncClient, bucket):
    _headers, _fid, _campaign_id, payout = await _approved_first_milestone(client, bucket)
    admin = admin_headers()

    r = await client.post(f"{API}/admin/payouts/{payout['id']}/authorize", json={}, headers=admin)
    assert r.status_code == 200

    r = await client.post(f"{API}/admin/payouts/{payout['id']}/authorize", json={}, headers=admin)
    assert r.status_code == 409
    assert r.json()["message"] == "Payout already processed (paid)"

    r = await client.post(f"{API}/admin/payouts/{payout['id']}/reject", json={}, headers=admin)
    assert r.status_code == 409

    r = await client.post(f"{API}/admin/payouts/{uuid.uuid4()}/authorize", json={}, headers=admin)
    assert r.status_code == 404


async def test_admin_payout_is_checked_against_campaign_balance(client: AsyncClient):
    headers, fundraiser_id = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers)
    await donate(client, campaign_id, "150.00")

    r = await client.post(
        f"{API}/admin/payouts",
        json={"fundraiser_id": str(fundraiser_id), "campaign_id": campaign_id, "amount": "150.01"},
        headers=admin_headers(),
    )
    assert r.status_code == 400
    assert money(r.json()["data"]["campaign_balance"]) == Decimal("150")

    r = await client.post(
        f"{API}/admin/payouts",
        json={
            "fundraiser_id": str(uuid.uuid4()),
            "campaign_id": campaign_id,
            "amount": "10.00",
        },
        headers=admin_headers(),
    )
    assert r.status_code == 400

    r = await client.post(
        f"{API}/admin/payouts",
        json={
            "fundraiser_id": str(fundraiser_id),
            "campaign_id": campaign_id,
            "amount": "100.00",
            "note": "Emergency release",
        },
        headers=admin_headers(),
    )
    assert r.status_code == 201
    assert r.json()["data"]["status"] == "processing"
    assert r.json()["data"]["milestone_id"] is None

    summary = await wallet(client, headers)
    assert money(summary["available_balance"]) == Decimal("50")
    assert money(summary["reserved"]) == Decimal("100")
    _assert_conserved(summary)


async def test_approving_evidence_conflicts_with_outstanding_payout(client: AsyncClient, bucket):
    headers, fundraiser_id = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers)
    await donate(client, campaign_id, "1000.00")

    r = await client.post(
        f"{API}/admin/payouts",
        json={"fundraiser_id": str(fundraiser_id), "campaign_id": campaign_id, "amount": "50.00"},
        headers=admin_headers(),
    )
    assert r.status_code == 201

    first = (await milestones(client, campaign_id))[0]
    r = await submit_evidence(client, headers, bucket, fundraiser_id, first["id"])
    evidence_id = r.json()["data"]["evidence"]["id"]

    r = await review_evidence(client, evidence_id)
    assert r.status_code == 409

    r = await client.get(f"{API}/admin/evidence/pending", headers=admin_headers())
    assert [e["id"] for e in r.json()["data"]] == [evidence_id]
    assert (await milestones(client, campaign_id))[0]["progress"] == "evidence_under_review"


async def test_balances_are_tracked_per_campaign(client: AsyncClient, bucket):
    headers, fundraiser_id = await create_fundraiser(client)
    small = await create_active_campaign(client, headers, goal="100.00")
    large = await create_active_campaign(client, headers, goal="1000.00")
    await donate(client, small, "100.00")
    await donate(client, large, "900.00")

    first = (await milestones(client, small))[0]
    payout = await release_milestone(client, headers, bucket, fundraiser_id, first["id"])
    assert money(payout["amount"]) == Decimal("30")

    r = await client.post(
        f"{API}/admin/payouts",
        json={"fundraiser_id": str(fundraiser_id), "campaign_id": small, "amount": "71.00"},
        headers=admin_headers(),
    )
    assert r.status_code == 400

    summary = await wallet(client, headers)
    by_campaign = {c["campaign_id"]: c for c in summary["campaigns"]}
    assert money(by_campaign[small]["balance"]) == Decimal("70")
    assert money(by_campaign[small]["debited"]) == Decimal("30")
    assert money(by_campaign[large]["balance"]) == Decimal("900")
    assert money(summary["available_balance"]) == Decimal("970")
    _assert_conserved(summary)


async def test_payout_history(client: AsyncClient, bucket):
    headers, fundraiser_id, campaign_id, payout = await _approved_first_milestone(client, bucket)
    await client.post(
        f"{API}/admin/payouts/{payout['id']}/reject", json={}, headers=admin_headers()
    )
    r = await client.post(
        f"{API}/payouts", json={"campaign_id": campaign_id, "amount": "300.00"}, headers=headers
    )
    assert r.status_code == 201

    r = await client.get(f"{API}/payouts", headers=headers)
    assert [p["status"] for p in r.json()["data"]] == ["requested", "rejected"]

    r = await client.get(f"{API}/payouts", params={"status": "rejected"}, headers=headers)
    assert [p["id"] for p in r.json()["data"]] == [payout["id"]]

    other, _ = await create_fundraiser(client)
    r = await client.get(f"{API}/payouts", headers=other)
    assert r.json()["data"] == []

    r = await client.get(f"{API}/admin/wallets/{fundraiser_id}", headers=admin_headers())
    assert r.status_code == 200
    assert money(r.json()["data"]["reserved"]) == Decimal("300")


async def test_full_release_conserves_funds(client: AsyncClient, bucket):
    headers, fundraiser_id = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers)
    await donate(client, campaign_id, "1000.00")
    for milestone in await milestones(client, campaign_id):
        await release_milestone(client, headers, bucket, fundraiser_id, milestone["id"])
        _assert_conserved(await wallet(client, headers))


async def test_next_milestone_waits_for_paid_payout(client: AsyncClient, bucket):
    headers, fundraiser_id, campaign_id, payout = await _approved_first_milestone(client, bucket)
    second = (await milestones(client, campaign_id))[1]
    assert second["progress"] == "locked"

    r = await submit_evidence(client, headers, bucket, fundraiser_id, second["id"])
    assert r.status_code == 409

    r = await client.post(
        f"{API}/admin/payouts/{payout['id']}/authorize", json={}, headers=admin_headers()
    )
    assert r.status_code == 200

    r = await submit_evidence(client, headers, bucket, fundraiser_id, second["id"])
    assert r.status_code == 201


async def test_request_over_campaign_balance_is_refused(client: AsyncClient, bucket):
    headers, fundraiser_id, campaign_id, payout = await _approved_first_milestone(client, bucket)
    await client.post(
        f"{API}/admin/payouts/{payout['id']}/reject", json={}, headers=admin_headers()
    )

    r = await client.post(
        f"{API}/admin/payouts",
        json={"fundraiser_id": str(fundraiser_id), "campaign_id": campaign_id, "amount": "800.00"},
        headers=admin_headers(),
    )
    assert r.status_code == 201
    r = await client.post(
        f"{API}/admin/payouts/{r.json()['data']['id']}/authorize",
        json={},
        headers=admin_headers(),
    )
    assert r.status_code == 200

    first = (await milestones(client, campaign_id))[0]
    assert first["progress"] == "ready_for_request"
    before = await wallet(client, headers)
    assert money(before["available_balance"]) == Decimal("200")

    r = await client.post(
        f"{API}/payouts",
        json={"campaign_id": campaign_id, "amount": "300.00", "milestone_id": first["id"]},
        headers=headers,
    )
    assert r.status_code == 400
    assert money(r.json()["data"]["campaign_balance"]) == Decimal("200")

    after = await wallet(client, headers)
    assert money(after["available_balance"]) == Decimal("200")
    assert money(after["reserved"]) == 0
    assert money(after["total_withdrawn"]) == Decimal("800")
    _assert_conserved(after)
