"""Shared helpers for the API tests: tokens, seeding and the money flow."""

import json
import uuid
from datetime import timedelta
from decimal import Decimal

from httpx import AsyncClient, Response
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from traceaid.core.config import settings
from traceaid.core.security import create_mock_access_token
from traceaid.db.base import utcnow
from traceaid.models.campaign import Campaign
from traceaid.services import storage
from traceaid.services.payment_gateway import SIGNATURE_HEADER, compute_signature

API = "/api/v1"


def auth_headers(sub: uuid.UUID | str, role: str, email: str | None = None) -> dict:
    """Return Authorization headers with a mock JWT."""
    email = email or f"{role}-{str(sub)[:8]}@example.com"
    token = create_mock_access_token(sub=str(sub), role=role, email=email)
    return {"Authorization": f"Bearer {token}"}


def admin_headers() -> dict:
    return auth_headers(uuid.uuid4(), "admin")


def donor_headers() -> dict:
    return auth_headers(uuid.uuid4(), "donor")


def money(value: object) -> Decimal:
    return Decimal(str(value))


async def create_fundraiser(
    client: AsyncClient, *, verified: bool = True
) -> tuple[dict, uuid.UUID]:
    """Provision a fundraiser through /fundraisers/me and optionally verify it."""
    fundraiser_id = uuid.uuid4()
    headers = auth_headers(fundraiser_id, "fundraiser")
    r = await client.get(f"{API}/fundraisers/me", headers=headers)
    assert r.status_code == 200, r.text

    if verified:
        r = await client.post(
            f"{API}/admin/fundraisers/{fundraiser_id}/kyc",
            json={"action": "verify"},
            headers=admin_headers(),
        )
        assert r.status_code == 200, r.text
    return headers, fundraiser_id


async def create_campaign(
    client: AsyncClient,
    headers: dict,
    *,
    goal: str = "1000.00",
    duration_days: int = 30,
) -> dict:
    r = await client.post(
        f"{API}/campaigns",
        json={
            "title": f"Clean water {uuid.uuid4().hex[:6]}",
            "description": "Boreholes for three villages",
            "category": "Community",
            "goal_amount": goal,
            "duration_days": duration_days,
            "milestones": [
                {"title": "Survey and permits"},
                {"title": "Drilling"},
                {"title": "Handover"},
            ],
        },
        headers=headers,
    )
    assert r.status_code == 201, r.text
    return r.json()["data"]


async def create_active_campaign(
    client: AsyncClient, headers: dict, *, goal: str = "1000.00"
) -> str:
    """Create, approve and activate a campaign. Returns its id."""
    campaign_id = (await create_campaign(client, headers, goal=goal))["campaign"]["id"]

    r = await client.post(
        f"{API}/admin/campaigns/{campaign_id}/review",
        json={"action": "approve"},
        headers=admin_headers(),
    )
    assert r.status_code == 200, r.text
    r = await client.post(f"{API}/campaigns/{campaign_id}/activate", headers=headers)
    assert r.status_code == 200, r.text
    return campaign_id


async def initiate_donation(client: AsyncClient, campaign_id: str, amount: str) -> str:
    r = await client.post(
        f"{API}/donations",
        json={"campaign_id": campaign_id, "amount": amount},
        headers=donor_headers(),
    )
    assert r.status_code == 201, r.text
    return r.json()["data"]["payment_reference"]


async def send_webhook(
    client: AsyncClient,
    payload: dict,
    *,
    secret: str | None = None,
) -> Response:
    body = json.dumps(payload).encode()
    signature = compute_signature(body, secret or settings.WEBHOOK_SECRET)
    return await client.post(
        f"{API}/donations/webhook",
        content=body,
        headers={SIGNATURE_HEADER: signature, "Content-Type": "application/json"},
    )


async def donate(client: AsyncClient, campaign_id: str, amount: str) -> str:
    """Initiate a donation and settle it as successful. Returns the reference."""
    reference = await initiate_donation(client, campaign_id, amount)
    r = await send_webhook(
        client,
        {
            "event": "charge.success",
            "data": {"reference": reference, "status": "success", "amount": amount},
        },
    )
    assert r.status_code == 200, r.text
    return reference


async def expire_campaign(
    session_factory: async_sessionmaker[AsyncSession], campaign_id: str
) -> None:
    """Move the end date into the past; the next read completes the campaign."""
    async with session_factory() as session:
        campaign = await session.get(Campaign, uuid.UUID(campaign_id))
        campaign.end_date = utcnow() - timedelta(minutes=1)
        await session.commit()


async def campaign_detail(client: AsyncClient, campaign_id: str) -> dict:
    r = await client.get(f"{API}/campaigns/{campaign_id}")
    assert r.status_code == 200, r.text
    return r.json()["data"]


async def milestones(client: AsyncClient, campaign_id: str) -> list[dict]:
    detail = await campaign_detail(client, campaign_id)
    return sorted(detail["milestones"], key=lambda m: m["sequence"])


def evidence_uploads(bucket, fundraiser_id: uuid.UUID, milestone_id: str, count: int = 5) -> list:
    """Storage keys under the milestone's prefix, already present in ``bucket``."""
    uploads = []
    for i in range(count):
        key = storage.build_evidence_key(fundraiser_id, uuid.UUID(milestone_id), f"site-{i}.jpg")
        bucket.keys.add(key)
        uploads.append({"storage_key": key, "latitude": 6.5244, "longitude": 3.3792})
    return uploads


async def submit_evidence(
    client: AsyncClient,
    headers: dict,
    bucket,
    fundraiser_id: uuid.UUID,
    milestone_id: str,
    count: int = 5,
) -> Response:
    return await client.post(
        f"{API}/milestones/{milestone_id}/evidence",
        json={
            "description": "Photos from the site visit",
            "uploads": evidence_uploads(bucket, fundraiser_id, milestone_id, count),
        },
        headers=headers,
    )


async def review_evidence(
    client: AsyncClient, evidence_id: str, action: str = "approve", reason: str | None = None
) -> Response:
    return await client.post(
        f"{API}/admin/evidence/{evidence_id}/review",
        json={"action": action, "reason": reason},
        headers=admin_headers(),
    )


async def release_milestone(
    client: AsyncClient,
    headers: dict,
    bucket,
    fundraiser_id: uuid.UUID,
    milestone_id: str,
) -> dict | None:
    """Submit evidence, approve it and mark the resulting payout paid."""
    r = await submit_evidence(client, headers, bucket, fundraiser_id, milestone_id)
    assert r.status_code == 201, r.text
    r = await review_evidence(client, r.json()["data"]["evidence"]["id"])
    assert r.status_code == 200, r.text
    payout = r.json()["data"]["payout"]
    if payout is None:
        return None
    r = await client.post(
        f"{API}/admin/payouts/{payout['id']}/authorize",
        json={"transaction_reference": f"TRF-{uuid.uuid4().hex[:8]}"},
        headers=admin_headers(),
    )
    assert r.status_code == 200, r.text
    return r.json()["data"]


async def wallet(client: AsyncClient, headers: dict) -> dict:
    r = await client.get(f"{API}/wallet", headers=headers)
    assert r.status_code == 200, r.text
    return r.json()["data"]
