"""Campaign lifecycle: creation, review, activation, completion, extensions.

Allowed status moves::

    draft -> pending -> approved -> active -> completed
                     -> rejected
                     -> active            (admin fast path)

``completed`` and ``rejected`` are terminal. Completion is never scheduled;
``refresh_completion`` applies it whenever a campaign is read or written.
"""

import logging
import uuid
from datetime import timedelta

from sqlalchemy import and_, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from traceaid.core.config import settings
from traceaid.core.exceptions import (
    NotFound,
    PermissionDenied,
    StateConflict,
    ValidationFailed,
)
from traceaid.core.permissions import Principal, ensure_authorized
from traceaid.db.base import as_utc, utcnow
from traceaid.models.campaign import Campaign, CampaignExtensionRequest
from traceaid.models.fundraiser import Fundraiser
from traceaid.models.milestone import Milestone
from traceaid.services.milestone_progress import split_goal, to_money

logger = logging.getLogger(__name__)

CAMPAIGN_TRANSITIONS: dict[str, list[str]] = {
    "draft": ["pending"],
    "pending": ["approved", "rejected", "active"],
    "approved": ["active"],
    "active": ["completed"],
    "completed": [],
    "rejected": [],
}

CAMPAIGN_STATUS_ALIASES = {"ended": "completed"}

DELETABLE_STATUSES = frozenset({"draft", "pending", "rejected"})


def normalize_status(value: str) -> str:
    value = value.strip().lower()
    return CAMPAIGN_STATUS_ALIASES.get(value, value)


def _validate_transition(current: str, requested: str) -> None:
    """Raise 409 if the transition is not allowed."""
    allowed = CAMPAIGN_TRANSITIONS.get(current, [])
    if requested not in allowed:
        raise StateConflict(
            f"Cannot transition campaign from '{current}' to '{requested}'",
            {"allowed": allowed},
        )


async def get_campaign(
    db: AsyncSession,
    campaign_id: uuid.UUID,
    for_update: bool = False,
    include_deleted: bool = False,
) -> Campaign:
    stmt = (
        select(Campaign)
        .where(Campaign.id == campaign_id)
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    campaign = result.scalar_one_or_none()
    if campaign is None or (campaign.is_deleted and not include_deleted):
        raise NotFound("Campaign not found")
    return campaign


async def refresh_completion(db: AsyncSession, campaign: Campaign) -> bool:
    """Complete an active campaign whose goal is met or whose end date passed."""
    if campaign.status != "active":
        return False

    now = utcnow()
    goal_met = to_money(campaign.amount_raised) >= to_money(campaign.goal_amount)
    end_date = as_utc(campaign.end_date)
    expired = end_date is not None and now >= end_date
    if not (goal_met or expired):
        return False

    _validate_transition(campaign.status, "completed")
    campaign.status = "completed"
    campaign.is_active = False
    campaign.completed_at = now
    await db.flush()
    logger.info(
        "Campaign %s completed (%s): raised=%s goal=%s",
        campaign.id,
        "goal met" if goal_met else "expired",
        campaign.amount_raised,
        campaign.goal_amount,
    )
    return True


async def create_campaign(
    db: AsyncSession,
    principal: Principal,
    fundraiser: Fundraiser,
    *,
    title: str,
    description: str,
    category: str,
    goal_amount,
    duration_days: int,
    milestones: list[dict],
    cover_url: str | None = None,
    submit: bool = True,
) -> tuple[Campaign, list[Milestone]]:
    """Create a campaign and its three milestones in one transaction."""
    ensure_authorized(principal, "campaign.create")
    if fundraiser.kyc_status != "verified":
        raise PermissionDenied("Complete verification before creating campaigns")
    if len(milestones) != 3:
        raise ValidationFailed("A campaign has exactly three milestones")

    campaign = Campaign(
        fundraiser_id=fundraiser.id,
        title=title,
        description=description,
        category=category,
        goal_amount=to_money(goal_amount),
        currency=settings.DEFAULT_CURRENCY,
        duration_days=duration_days,
        cover_url=cover_url,
        status="pending" if submit else "draft",
    )
    db.add(campaign)
    await db.flush()

    rows = []
    for sequence, (entry, target) in enumerate(
        zip(milestones, split_goal(campaign.goal_amount), strict=True), start=1
    ):
        rows.append(
            Milestone(
                fundraiser_id=fundraiser.id,
                campaign_id=campaign.id,
                sequence=sequence,
                title=entry["title"],
                description=entry.get("description"),
                target_amount=target,
            )
        )
    db.add_all(rows)
    await db.flush()

    logger.info(
        "Campaign %s created by %s: goal=%s status=%s",
        campaign.id,
        fundraiser.id,
        campaign.goal_amount,
        campaign.status,
    )
    return campaign, rows


async def submit_campaign(
    db: AsyncSession, principal: Principal, campaign_id: uuid.UUID
) -> Campaign:
    campaign = await get_campaign(db, campaign_id, for_update=True)
    ensure_authorized(principal, "campaign.submit", campaign)
    _validate_transition(campaign.status, "pending")
    campaign.status = "pending"
    await db.flush()
    logger.info("Campaign %s submitted for review", campaign.id)
    return campaign


async def review_campaign(
    db: AsyncSession,
    principal: Principal,
    campaign_id: uuid.UUID,
    action: str,
    remarks: str | None = None,
) -> Campaign:
    """Admin approves or rejects a pending campaign."""
    ensure_authorized(principal, "campaign.review")
    campaign = await get_campaign(db, campaign_id, for_update=True)

    if campaign.status != "pending":
        raise StateConflict(
            f"Campaign is '{campaign.status}'; only pending campaigns can be reviewed"
        )

    if action == "reject":
        remarks = (remarks or "").strip()
        if not remarks:
            raise ValidationFailed("Remarks are required when rejecting a campaign")
        _validate_transition(campaign.status, "rejected")
        campaign.status = "rejected"
        campaign.rejection_reason = remarks
    elif action == "approve":
        _validate_transition(campaign.status, "approved")
        campaign.status = "approved"
        campaign.rejection_reason = None
    else:
        raise ValidationFailed("Action must be 'approve' or 'reject'")

    campaign.reviewed_by = principal.id
    await db.flush()
    logger.info("Campaign %s reviewed: %s by %s", campaign.id, campaign.status, principal.id)
    return campaign


async def activate_campaign(
    db: AsyncSession, principal: Principal, campaign_id: uuid.UUID
) -> Campaign:
    """Start the fundraising window.

    Admins may activate pending or approved campaigns; the owning fundraiser
    only approved ones.
    """
    campaign = await get_campaign(db, campaign_id, for_update=True)
    ensure_authorized(principal, "campaign.activate", campaign)

    if campaign.status == "active":
        raise StateConflict("Campaign is already active")
    if not principal.is_admin and campaign.status != "approved":
        raise StateConflict("Only approved campaigns can be activated")
    _validate_transition(campaign.status, "active")

    now = utcnow()
    campaign.status = "active"
    campaign.is_active = True
    campaign.start_date = now
    campaign.end_date = now + timedelta(days=campaign.duration_days)
    await db.flush()
    logger.info(
        "Campaign %s activated by %s until %s",
        campaign.id,
        principal.id,
        campaign.end_date.isoformat(),
    )
    return campaign


async def request_extension(
    db: AsyncSession,
    principal: Principal,
    campaign_id: uuid.UUID,
    days: int,
    reason: str | None = None,
) -> CampaignExtensionRequest:
    campaign = await get_campaign(db, campaign_id, for_update=True)
    ensure_authorized(principal, "campaign.extend", campaign)
    if days <= 0:
        raise ValidationFailed("Extension days must be greater than zero")

    await refresh_completion(db, campaign)
    if campaign.status != "active":
        raise StateConflict("Only active campaigns can be extended")

    result = await db.execute(
        select(CampaignExtensionRequest.id).where(
            CampaignExtensionRequest.campaign_id == campaign.id,
            CampaignExtensionRequest.status == "pending",
        )
    )
    if result.first() is not None:
        raise StateConflict("An extension request is already pending for this campaign")

    extension = CampaignExtensionRequest(campaign_id=campaign.id, days=days, reason=reason)
    db.add(extension)
    await db.flush()
    logger.info("Extension of %d days requested for campaign %s", days, campaign.id)
    return extension


async def decide_extension(
    db: AsyncSession,
    principal: Principal,
    campaign_id: uuid.UUID,
    extension_id: uuid.UUID,
    action: str,
    reason: str | None = None,
) -> tuple[Campaign, CampaignExtensionRequest]:
    ensure_authorized(principal, "campaign.review_extension")
    campaign = await get_campaign(db, campaign_id, for_update=True)
    await refresh_completion(db, campaign)

    extension = await db.get(
        CampaignExtensionRequest, extension_id, with_for_update=True, populate_existing=True
    )
    if extension is None or extension.campaign_id != campaign.id:
        raise NotFound("Extension request not found")
    if extension.status != "pending":
        raise StateConflict(f"Extension request already {extension.status}")

    if action == "reject":
        reason = (reason or "").strip()
        if not reason:
            raise ValidationFailed("A reason is required when rejecting an extension")
        extension.status = "rejected"
        extension.rejection_reason = reason
    elif action == "approve":
        if campaign.status != "active":
            raise StateConflict("Only active campaigns can be extended")
        extension.status = "approved"
        campaign.duration_days += extension.days
        end_date = as_utc(campaign.end_date) or utcnow()
        campaign.end_date = end_date + timedelta(days=extension.days)
    else:
        raise ValidationFailed("Action must be 'approve' or 'reject'")

    extension.reviewed_by = principal.id
    extension.reviewed_at = utcnow()
    await db.flush()
    logger.info(
        "Extension %s for campaign %s %s by %s",
        extension.id,
        campaign.id,
        extension.status,
        principal.id,
    )
    return campaign, extension


async def soft_delete_campaign(
    db: AsyncSession, principal: Principal, campaign_id: uuid.UUID
) -> Campaign:
    campaign = await get_campaign(db, campaign_id, for_update=True)
    ensure_authorized(principal, "campaign.delete", campaign)
    if campaign.status not in DELETABLE_STATUSES:
        raise StateConflict(f"A '{campaign.status}' campaign cannot be deleted")
    campaign.is_deleted = True
    campaign.is_active = False
    await db.flush()
    logger.info("Campaign %s deleted by %s", campaign.id, principal.id)
    return campaign


async def list_campaigns(
    db: AsyncSession,
    status: str | None = None,
    fundraiser_id: uuid.UUID | None = None,
    limit: int = 20,
    offset: int = 0,
) -> list[Campaign]:
    stmt = (
        select(Campaign)
        .where(Campaign.is_deleted.is_(False))
        .order_by(Campaign.created_at.desc(), Campaign.id.desc())
        .offset(offset)
        .limit(limit)
    )
    if fundraiser_id is not None:
        stmt = stmt.where(Campaign.fundraiser_id == fundraiser_id)

    # active rows past their end date or goal are completed but not yet refreshed
    due = and_(
        Campaign.status == "active",
        or_(
            Campaign.amount_raised >= Campaign.goal_amount,
            and_(Campaign.end_date.is_not(None), Campaign.end_date <= utcnow()),
        ),
    )
    wanted = normalize_status(status) if status else None
    if wanted == "completed":
        stmt = stmt.where(or_(Campaign.status == "completed", due))
    elif wanted == "active":
        stmt = stmt.where(Campaign.status == "active", ~due)
    elif wanted is not None:
        stmt = stmt.where(Campaign.status == wanted)

    result = await db.execute(stmt)
    campaigns = list(result.scalars().all())
    for campaign in campaigns:
        await refresh_completion(db, campaign)
    return campaigns


async def list_extensions(
    db: AsyncSession, campaign_id: uuid.UUID
) -> list[CampaignExtensionRequest]:
    result = await db.execute(
        select(CampaignExtensionRequest)
        .where(CampaignExtensionRequest.campaign_id == campaign_id)
        .order_by(CampaignExtensionRequest.created_at.desc())
    )
    return list(result.scalars().all())
