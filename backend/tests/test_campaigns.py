"""Campaign creation, review, activation, extensions and deletion."""

from datetime import datetime
from decimal import Decimal

from httpx import AsyncClient

from tests.helpers import (
    API,
    admin_headers,
    campaign_detail,
    create_active_campaign,
    create_campaign,
    create_fundraiser,
    donate,
    expire_campaign,
)


def _dt(value: str) -> datetime:
    """Parse an API timestamp; SQLite returns naive values, Postgres aware ones."""
    return datetime.fromisoformat(value).replace(tzinfo=None)


async def test_unverified_fundraiser_cannot_create(client: AsyncClient):
    headers, _ = await create_fundraiser(client, verified=False)
    r = await client.post(
        f"{API}/campaigns",
        json={
            "title": "Clinic",
            "description": "Rural clinic",
            "category": "Health",
            "goal_amount": "500.00",
            "duration_days": 10,
            "milestones": [{"title": "a"}, {"title": "b"}, {"title": "c"}],
        },
        headers=headers,
    )
    assert r.status_code == 403
    assert r.json()["message"] == "Complete verification before creating campaigns"


async def test_campaign_needs_exactly_three_milestones(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    r = await client.post(
        f"{API}/campaigns",
        json={
            "title": "Clinic",
            "description": "Rural clinic",
            "category": "Health",
            "goal_amount": "500.00",
            "duration_days": 10,
            "milestones": [{"title": "a"}, {"title": "b"}],
        },
        headers=headers,
    )
    assert r.status_code == 422


async def test_create_splits_goal_and_locks_milestones(client: AsyncClient):
    headers, fundraiser_id = await create_fundraiser(client)
    data = await create_campaign(client, headers, goal="1000.00")

    assert data["campaign"]["status"] == "pending"
    assert data["campaign"]["fundraiser_id"] == str(fundraiser_id)
    assert Decimal(data["campaign"]["amount_raised"]) == 0

    milestones = data["milestones"]
    assert [m["sequence"] for m in milestones] == [1, 2, 3]
    assert [Decimal(m["target_amount"]) for m in milestones] == [
        Decimal("300"),
        Decimal("500"),
        Decimal("200"),
    ]
    assert all(m["progress"] == "locked" for m in milestones)
    assert all(not m["eligible"] for m in milestones)


async def test_draft_then_submit(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    r = await client.post(
        f"{API}/campaigns",
        json={
            "title": "Library",
            "description": "Books",
            "category": "Education",
            "goal_amount": "200.00",
            "duration_days": 5,
            "milestones": [{"title": "a"}, {"title": "b"}, {"title": "c"}],
            "submit": False,
        },
        headers=headers,
    )
    assert r.status_code == 201
    campaign_id = r.json()["data"]["campaign"]["id"]
    assert r.json()["data"]["campaign"]["status"] == "draft"

    r = await client.post(f"{API}/campaigns/{campaign_id}/submit", headers=headers)
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "pending"

    r = await client.post(f"{API}/campaigns/{campaign_id}/submit", headers=headers)
    assert r.status_code == 409


async def test_other_fundraiser_cannot_submit(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    other, _ = await create_fundraiser(client)
    r = await client.post(
        f"{API}/campaigns",
        json={
            "title": "Library",
            "description": "Books",
            "category": "Education",
            "goal_amount": "200.00",
            "duration_days": 5,
            "milestones": [{"title": "a"}, {"title": "b"}, {"title": "c"}],
            "submit": False,
        },
        headers=headers,
    )
    campaign_id = r.json()["data"]["campaign"]["id"]

    r = await client.post(f"{API}/campaigns/{campaign_id}/submit", headers=other)
    assert r.status_code == 403


async def test_reject_requires_remarks(client: AsyncClient, notifier):
    headers, _ = await create_fundraiser(client)
    campaign_id = (await create_campaign(client, headers))["campaign"]["id"]

    r = await client.post(
        f"{API}/admin/campaigns/{campaign_id}/review",
        json={"action": "reject", "remarks": "   "},
        headers=admin_headers(),
    )
    assert r.status_code == 400

    r = await client.post(
        f"{API}/admin/campaigns/{campaign_id}/review",
        json={"action": "reject", "remarks": "Goal not justified"},
        headers=admin_headers(),
    )
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "rejected"
    assert r.json()["data"]["rejection_reason"] == "Goal not justified"
    assert "Your campaign was not approved" in notifier.subjects()

    r = await client.post(
        f"{API}/admin/campaigns/{campaign_id}/review",
        json={"action": "approve"},
        headers=admin_headers(),
    )
    assert r.status_code == 409


async def test_owner_cannot_activate_pending_campaign(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    campaign_id = (await create_campaign(client, headers))["campaign"]["id"]

    r = await client.post(f"{API}/campaigns/{campaign_id}/activate", headers=headers)
    assert r.status_code == 409
    assert r.json()["message"] == "Only approved campaigns can be activated"


async def test_admin_can_activate_pending_campaign(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    campaign_id = (await create_campaign(client, headers))["campaign"]["id"]

    r = await client.post(f"{API}/campaigns/{campaign_id}/activate", headers=admin_headers())
    assert r.status_code == 200
    assert r.json()["data"]["status"] == "active"


async def test_activation_sets_window_and_is_not_repeatable(client: AsyncClient, notifier):
    headers, _ = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers)

    campaign = (await campaign_detail(client, campaign_id))["campaign"]
    assert campaign["status"] == "active"
    assert campaign["is_active"] is True
    start = _dt(campaign["start_date"])
    end = _dt(campaign["end_date"])
    assert (end - start).days == 30
    assert "Your campaign is live" in notifier.subjects()

    r = await client.post(f"{API}/campaigns/{campaign_id}/activate", headers=headers)
    assert r.status_code == 409
    assert r.json()["message"] == "Campaign is already active"


async def test_goal_reached_completes_campaign(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers, goal="500.00")
    await donate(client, campaign_id, "500.00")

    data = await campaign_detail(client, campaign_id)
    assert data["campaign"]["status"] == "completed"
    assert data["campaign"]["is_active"] is False
    assert data["campaign"]["completed_at"] is not None
    assert [m["progress"] for m in data["milestones"]] == [
        "awaiting_evidence",
        "locked",
        "locked",
    ]


async def test_expired_campaign_completes_on_read(client: AsyncClient, session_factory):
    headers, _ = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers)
    await expire_campaign(session_factory, campaign_id)

    data = await campaign_detail(client, campaign_id)
    assert data["campaign"]["status"] == "completed"


async def test_list_filters_by_status_and_hides_expired_from_active(
    client: AsyncClient, session_factory
):
    headers, fundraiser_id = await create_fundraiser(client)
    live_id = await create_active_campaign(client, headers)
    expired_id = await create_active_campaign(client, headers)
    await expire_campaign(session_factory, expired_id)

    r = await client.get(
        f"{API}/campaigns", params={"status": "active", "fundraiser_id": str(fundraiser_id)}
    )
    assert [c["id"] for c in r.json()["data"]] == [live_id]

    r = await client.get(
        f"{API}/campaigns", params={"status": "ended", "fundraiser_id": str(fundraiser_id)}
    )
    assert [c["id"] for c in r.json()["data"]] == [expired_id]

    r = await client.get(f"{API}/campaigns/mine", headers=headers)
    assert {c["id"] for c in r.json()["data"]} == {live_id, expired_id}


async def test_extension_flow(client: AsyncClient, notifier):
    headers, _ = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers)
    before = (await campaign_detail(client, campaign_id))["campaign"]

    r = await client.post(
        f"{API}/campaigns/{campaign_id}/extensions",
        json={"days": 10, "reason": "Rainy season"},
        headers=headers,
    )
    assert r.status_code == 201
    extension_id = r.json()["data"]["id"]

    r = await client.post(
        f"{API}/campaigns/{campaign_id}/extensions", json={"days": 5}, headers=headers
    )
    assert r.status_code == 409

    r = await client.post(
        f"{API}/admin/campaigns/{campaign_id}/extensions/{extension_id}/decision",
        json={"action": "approve"},
        headers=admin_headers(),
    )
    assert r.status_code == 200
    data = r.json()["data"]
    assert data["extension"]["status"] == "approved"
    assert data["campaign"]["duration_days"] == 40
    old_end = _dt(before["end_date"])
    new_end = _dt(data["campaign"]["end_date"])
    assert (new_end - old_end).days == 10
    assert "Campaign extension approved" in notifier.subjects()

    r = await client.post(
        f"{API}/admin/campaigns/{campaign_id}/extensions/{extension_id}/decision",
        json={"action": "reject", "reason": "late"},
        headers=admin_headers(),
    )
    assert r.status_code == 409

    r = await client.get(f"{API}/campaigns/{campaign_id}/extensions")
    assert len(r.json()["data"]) == 1


async def test_extension_only_for_active_campaigns(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    campaign_id = (await create_campaign(client, headers))["campaign"]["id"]
    r = await client.post(
        f"{API}/campaigns/{campaign_id}/extensions", json={"days": 5}, headers=headers
    )
    assert r.status_code == 409


async def test_soft_delete(client: AsyncClient):
    headers, _ = await create_fundraiser(client)
    campaign_id = (await create_campaign(client, headers))["campaign"]["id"]
    active_id = await create_active_campaign(client, headers)

    r = await client.delete(f"{API}/campaigns/{active_id}", headers=headers)
    assert r.status_code == 409

    r = await client.delete(f"{API}/campaigns/{campaign_id}", headers=headers)
    assert r.status_code == 200

    r = await client.get(f"{API}/campaigns/{campaign_id}")
    assert r.status_code == 404
    assert r.json()["statusText"] == "Not Found"

    r = await client.get(f"{API}/campaigns/mine", headers=headers)
    assert [c["id"] for c in r.json()["data"]] == [active_id]


async def test_extension_cannot_reopen_expired_campaign(client: AsyncClient, session_factory):
    headers, _ = await create_fundraiser(client)
    campaign_id = await create_active_campaign(client, headers)
    r = await client.post(
        f"{API}/campaigns/{campaign_id}/extensions", json={"days": 10}, headers=headers
    )
    extension_id = r.json()["data"]["id"]
    await expire_campaign(session_factory, campaign_id)

    r = await client.post(
        f"{API}/admin/campaigns/{campaign_id}/extensions/{extension_id}/decision",
        json={"action": "approve"},
        headers=admin_headers(),
    )
    assert r.status_code == 409

    campaign = (await campaign_detail(client, campaign_id))["campaign"]
    assert campaign["status"] == "completed"
    assert campaign["duration_days"] == 30


async def test_list_pages_over_matching_campaigns_only(client: AsyncClient, session_factory):
    headers, fundraiser_id = await create_fundraiser(client)
    live_id = await create_active_campaign(client, headers)
    expired_id = await create_active_campaign(client, headers)
    await expire_campaign(session_factory, expired_id)
    params = {"fundraiser_id": str(fundraiser_id), "limit": 1}

    r = await client.get(f"{API}/campaigns", params={**params, "status": "active"})
    assert [c["id"] for c in r.json()["data"]] == [live_id]

    r = await client.get(f"{API}/campaigns", params={**params, "status": "completed"})
    assert [c["id"] for c in r.json()["data"]] == [expired_id]
