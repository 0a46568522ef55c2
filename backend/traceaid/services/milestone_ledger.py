"""Milestone evidence submission and review.

Evidence for milestone ``n`` is accepted once the campaign completed and
milestone ``n-1`` completed. Approving it authorizes the tranche: a
``processing`` payout for ``min(remaining target, campaign balance)`` is
reserved in the same transaction.
"""

import logging
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from traceaid.core.config import settings
from traceaid.core.exceptions import NotFound, StateConflict, UploadMissing, ValidationFailed
from traceaid.core.permissions import Principal, ensure_authorized
from traceaid.db.base import utcnow
from traceaid.models.campaign import Campaign
from traceaid.models.milestone import Milestone, MilestoneEvidence
from traceaid.models.payout import Payout
from traceaid.services import campaign_lifecycle, payout_workflow, storage, wallet_ledger
from traceaid.services.milestone_progress import (
    is_eligible,
    load_milestones,
    previous_milestone,
    remaining_target,
)

logger = logging.getLogger(__name__)

ACTIVE_EVIDENCE_STATUSES = ("pending", "approved")


async def get_milestone(db: AsyncSession, milestone_id: uuid.UUID) -> Milestone:
    milestone = await db.get(Milestone, milestone_id)
    if milestone is None:
        raise NotFound("Milestone not found")
    return milestone


def create_upload_urls(
    principal: Principal, milestone: Milestone, files: list[dict]
) -> list[dict]:
    """Presigned PUT URLs under the milestone's evidence prefix."""
    ensure_authorized(principal, "evidence.upload", milestone)
    if len(files) > settings.EVIDENCE_MAX_FILES:
        raise ValidationFailed(f"At most {settings.EVIDENCE_MAX_FILES} files per submission")

    urls = []
    for f in files:
        if f["content_type"] not in storage.ALLOWED_CONTENT_TYPES:
            raise ValidationFailed(
                f"Content type '{f['content_type']}' is not allowed",
                {"allowed": sorted(storage.ALLOWED_CONTENT_TYPES)},
            )
        key = storage.build_evidence_key(milestone.fundraiser_id, milestone.id, f["file_name"])
        urls.append(
            {
                "storage_key": key,
                "upload_url": storage.presign_put(key, f["content_type"]),
                "expires_in": storage.PRESIGN_UPLOAD_EXPIRES,
            }
        )
    return urls


def _check_uploads(milestone: Milestone, uploads: list[dict]) -> None:
    count = len(uploads)
    if count < settings.EVIDENCE_MIN_FILES or count > settings.EVIDENCE_MAX_FILES:
        raise ValidationFailed(
            f"Evidence needs between {settings.EVIDENCE_MIN_FILES} and "
            f"{settings.EVIDENCE_MAX_FILES} uploads",
            {"received": count},
        )

    prefix = storage.evidence_prefix(milestone.fundraiser_id, milestone.id)
    keys = [u["storage_key"] for u in uploads]
    if len(set(keys)) != len(keys):
        raise ValidationFailed("Each upload must be a different file")
    foreign = [k for k in keys if not k.startswith(prefix)]
    if foreign:
        raise ValidationFailed("Uploads must come from this milestone's upload URLs")

    missing = [k for k in keys if not storage.object_exists(k)]
    if missing:
        raise UploadMissing("Some uploads were not found in storage", {"missing": missing})


async def submit_evidence(
    db: AsyncSession,
    principal: Principal,
    milestone_id: uuid.UUID,
    description: str,
    uploads: list[dict],
) -> tuple[MilestoneEvidence, Milestone]:
    milestone = await get_milestone(db, milestone_id)
    ensure_authorized(principal, "evidence.submit", milestone)
    if not description.strip():
        raise ValidationFailed("An evidence description is required")

    _check_uploads(milestone, uploads)

    campaign = await campaign_lifecycle.get_campaign(db, milestone.campaign_id, for_update=True)
    await campaign_lifecycle.refresh_completion(db, campaign)
    milestones = await load_milestones(db, campaign.id)
    milestone = next((m for m in milestones if m.id == milestone_id), None)
    if milestone is None:
        raise NotFound("Milestone not found")

    if milestone.status in ("ready_for_release", "completed"):
        raise StateConflict("Evidence for this milestone has already been approved")
    if not is_eligible(campaign, milestones, milestone):
        if campaign.status != "completed":
            raise StateConflict("Evidence opens once the campaign has completed")
        raise StateConflict("The previous milestone has not been completed")

    result = await db.execute(
        select(MilestoneEvidence.id).where(
            MilestoneEvidence.milestone_id == milestone.id,
            MilestoneEvidence.status.in_(ACTIVE_EVIDENCE_STATUSES),
        )
    )
    if result.first() is not None:
        raise StateConflict("Evidence for this milestone is already under review")

    now = utcnow()
    evidence = MilestoneEvidence(
        fundraiser_id=milestone.fundraiser_id,
        campaign_id=campaign.id,
        milestone_id=milestone.id,
        description=description.strip(),
        uploads=[
            {
                "url": storage.object_url(u["storage_key"]),
                "storage_key": u["storage_key"],
                "latitude": u["latitude"],
                "longitude": u["longitude"],
                "uploaded_at": now.isoformat(),
            }
            for u in uploads
        ],
    )
    db.add(evidence)
    await db.flush()

    milestone.status = "on_going"
    milestone.evidence_approval_status = "submitted"
    milestone.evidence_id = evidence.id
    await db.flush()

    logger.info(
        "Evidence %s submitted for milestone %s (%d uploads)",
        evidence.id,
        milestone.id,
        len(uploads),
    )
    return evidence, milestone


async def review_evidence(
    db: AsyncSession,
    principal: Principal,
    evidence_id: uuid.UUID,
    action: str,
    reason: str | None = None,
) -> tuple[MilestoneEvidence, Milestone, Payout | None]:
    """Admin approves (and authorizes the tranche) or rejects evidence."""
    ensure_authorized(principal, "evidence.review")

    evidence = await db.get(MilestoneEvidence, evidence_id)
    if evidence is None:
        raise NotFound("Evidence not found")

    campaign = await campaign_lifecycle.get_campaign(
        db, evidence.campaign_id, for_update=True, include_deleted=True
    )
    evidence = await db.get(
        MilestoneEvidence, evidence_id, with_for_update=True, populate_existing=True
    )
    if evidence.status != "pending":
        raise StateConflict(f"Evidence has already been {evidence.status}")

    milestones = await load_milestones(db, campaign.id, for_update=True)
    milestone = next((m for m in milestones if m.id == evidence.milestone_id), None)
    if milestone is None:
        raise NotFound("Milestone not found")

    now = utcnow()
    payout = None
    if action == "reject":
        reason = (reason or "").strip()
        if not reason:
            raise ValidationFailed("A reason is required when rejecting evidence")
        evidence.status = "rejected"
        evidence.rejection_reason = reason
        milestone.evidence_approval_status = "required"
        milestone.evidence_id = None
    elif action == "approve":
        prior = previous_milestone(milestones, milestone)
        if milestone.sequence > 1 and (prior is None or prior.status != "completed"):
            raise StateConflict("The previous milestone has not been completed")
        evidence.status = "approved"
        milestone.evidence_approval_status = "approved"
        milestone.status = "ready_for_release"
        milestone.verified_at = now
        await db.flush()
        payout = await _authorize_tranche(db, principal, campaign, milestone)
    else:
        raise ValidationFailed("Action must be 'approve' or 'reject'")

    evidence.reviewed_by = principal.id
    evidence.reviewed_at = now
    await db.flush()

    logger.info(
        "Evidence %s %s by %s; milestone %s is %s",
        evidence.id,
        evidence.status,
        principal.id,
        milestone.id,
        milestone.status,
    )
    return evidence, milestone, payout


async def _authorize_tranche(
    db: AsyncSession, principal: Principal, campaign: Campaign, milestone: Milestone
) -> Payout | None:
    balance = await wallet_ledger.campaign_balance(db, campaign.id)
    amount = min(remaining_target(milestone), balance)
    if amount <= 0:
        milestone.status = "completed"
        milestone.completed_at = utcnow()
        await db.flush()
        logger.info("Milestone %s completed with nothing left to release", milestone.id)
        return None
    return await payout_workflow.reserve_milestone_tranche(
        db, campaign, milestone, amount, principal.id
    )


async def list_pending_evidence(db: AsyncSession, principal: Principal) -> list[MilestoneEvidence]:
    ensure_authorized(principal, "evidence.list_pending")
    result = await db.execute(
        select(MilestoneEvidence)
        .where(MilestoneEvidence.status == "pending")
        .order_by(MilestoneEvidence.created_at.asc())
    )
    return list(result.scalars().all())


async def campaign_evidence(db: AsyncSession, campaign_id: uuid.UUID) -> list[MilestoneEvidence]:
    result = await db.execute(
        select(MilestoneEvidence)
        .where(MilestoneEvidence.campaign_id == campaign_id)
        .order_by(MilestoneEvidence.created_at.desc())
    )
    return list(result.scalars().all())
