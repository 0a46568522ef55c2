"""Milestone tranche split and derived progress labels.

Milestone state is stored as ``status`` plus ``evidence_approval_status``;
what the fundraiser sees (``locked``, ``awaiting_evidence``...) is derived on
read from those columns, the campaign status, the previous milestone and any
outstanding payout.
"""

import uuid
from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from traceaid.models.campaign import Campaign
from traceaid.models.milestone import Milestone
from traceaid.models.payout import OUTSTANDING_PAYOUT_STATUSES, Payout

CENT = Decimal("0.01")
MILESTONE_SPLIT = (Decimal("0.30"), Decimal("0.50"), Decimal("0.20"))

LOCKED = "locked"
AWAITING_EVIDENCE = "awaiting_evidence"
EVIDENCE_UNDER_REVIEW = "evidence_under_review"
READY_FOR_REQUEST = "ready_for_request"
AWAITING_DISBURSEMENT = "awaiting_disbursement"
COMPLETED = "completed"

PROGRESS_LABELS = (
    LOCKED,
    AWAITING_EVIDENCE,
    EVIDENCE_UNDER_REVIEW,
    READY_FOR_REQUEST,
    AWAITING_DISBURSEMENT,
    COMPLETED,
)

MILESTONE_STATUS_ALIASES = {"released": "completed"}


def to_money(value: object) -> Decimal:
    if value is None:
        return Decimal("0.00")
    return Decimal(str(value)).quantize(CENT, rounding=ROUND_HALF_UP)


def split_goal(goal: Decimal) -> list[Decimal]:
    """30/50/20 split. The last tranche takes the rounding remainder."""
    goal = to_money(goal)
    first = (goal * MILESTONE_SPLIT[0]).quantize(CENT, rounding=ROUND_HALF_UP)
    second = (goal * MILESTONE_SPLIT[1]).quantize(CENT, rounding=ROUND_HALF_UP)
    return [first, second, goal - first - second]


def normalize_milestone_status(value: str) -> str:
    value = value.strip().lower()
    return MILESTONE_STATUS_ALIASES.get(value, value)


def remaining_target(milestone: Milestone) -> Decimal:
    return to_money(milestone.target_amount) - to_money(milestone.released_amount)


def previous_milestone(milestones: list[Milestone], milestone: Milestone) -> Milestone | None:
    for m in milestones:
        if m.sequence == milestone.sequence - 1:
            return m
    return None


def is_eligible(campaign: Campaign, milestones: list[Milestone], milestone: Milestone) -> bool:
    """Milestone n opens once the campaign completed and milestone n-1 completed."""
    if campaign.status != "completed":
        return False
    if milestone.sequence == 1:
        return True
    prior = previous_milestone(milestones, milestone)
    return prior is not None and prior.status == "completed"


def derive_label(milestone: Milestone, eligible: bool, has_outstanding_payout: bool) -> str:
    if milestone.status == "completed":
        return COMPLETED
    if has_outstanding_payout:
        return AWAITING_DISBURSEMENT
    if milestone.status == "ready_for_release":
        return READY_FOR_REQUEST
    if not eligible:
        return LOCKED
    if milestone.evidence_approval_status == "submitted":
        return EVIDENCE_UNDER_REVIEW
    return AWAITING_EVIDENCE


@dataclass
class MilestoneProgress:
    milestone: Milestone
    label: str
    eligible: bool

    @property
    def remaining_amount(self) -> Decimal:
        return remaining_target(self.milestone)


async def load_milestones(
    db: AsyncSession, campaign_id: uuid.UUID, for_update: bool = False
) -> list[Milestone]:
    stmt = (
        select(Milestone)
        .where(Milestone.campaign_id == campaign_id)
        .order_by(Milestone.sequence.asc())
        .execution_options(populate_existing=True)
    )
    if for_update:
        stmt = stmt.with_for_update()
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def milestones_with_outstanding_payouts(
    db: AsyncSession, milestone_ids: list[uuid.UUID]
) -> set[uuid.UUID]:
    if not milestone_ids:
        return set()
    result = await db.execute(
        select(Payout.milestone_id).where(
            Payout.milestone_id.in_(milestone_ids),
            Payout.status.in_(OUTSTANDING_PAYOUT_STATUSES),
        )
    )
    return {row for row in result.scalars().all() if row is not None}


async def campaign_progress(
    db: AsyncSession, campaign: Campaign, milestones: list[Milestone] | None = None
) -> list[MilestoneProgress]:
    if milestones is None:
        milestones = await load_milestones(db, campaign.id)
    outstanding = await milestones_with_outstanding_payouts(db, [m.id for m in milestones])

    progress = []
    for m in milestones:
        eligible = is_eligible(campaign, milestones, m)
        label = derive_label(m, eligible, m.id in outstanding)
        progress.append(MilestoneProgress(m, label, eligible))
    return progress
