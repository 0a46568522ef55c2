"""Payout reservation, authorization and rejection.

A payout reserves (debits) its amount the moment it is created, whether a
fundraiser requested it, an admin created it, or an approved milestone
authorized it. Marking it paid only moves the amount into
``total_withdrawn``; rejecting it reverses the reservation. A fundraiser has
at most one ``requested``/``processing`` payout at a time.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from traceaid.core.exceptions import (
    InsufficientFunds,
    NotFound,
    StateConflict,
    ValidationFailed,
)
from traceaid.core.permissions import OwnedBy, Principal, ensure_authorized
from traceaid.db.base import utcnow
from traceaid.models.campaign import Campaign
from traceaid.models.milestone import Milestone
from traceaid.models.payout import OUTSTANDING_PAYOUT_STATUSES, Payout
from traceaid.services import campaign_lifecycle, milestone_progress, wallet_ledger
from traceaid.services.milestone_progress import READY_FOR_REQUEST, to_money

logger = logging.getLogger(__name__)

PAYOUT_TRANSITIONS: dict[str, list[str]] = {
    "requested": ["paid", "rejected"],
    "processing": ["paid", "rejected"],
    "paid": [],
    "rejected": [],
}

DEFAULT_REJECTION_REASON = "Rejected by admin"


def _new_reference() -> str:
    return f"PAY_{uuid.uuid4().hex}"


def _validate_transition(current: str, requested: str) -> None:
    allowed = PAYOUT_TRANSITIONS.get(current, [])
    if requested not in allowed:
        if not allowed:
            raise StateConflict(f"Payout already processed ({current})")
        raise StateConflict(
            f"Cannot transition payout from '{current}' to '{requested}'",
            {"allowed": allowed},
        )


async def _get_payout(db: AsyncSession, payout_id: uuid.UUID) -> Payout:
    result = await db.execute(
        select(Payout)
        .where(Payout.id == payout_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    payout = result.scalar_one_or_none()
    if payout is None:
        raise NotFound("Payout not found")
    return payout


async def has_outstanding_payout(db: AsyncSession, fundraiser_id: uuid.UUID) -> bool:
    result = await db.execute(
        select(Payout.id)
        .where(
            Payout.fundraiser_id == fundraiser_id,
            Payout.status.in_(OUTSTANDING_PAYOUT_STATUSES),
        )
        .limit(1)
    )
    return result.scalar_one_or_none() is not None


async def _reserve(
    db: AsyncSession,
    *,
    campaign: Campaign,
    milestone: Milestone | None,
    amount: Decimal,
    status: str,
    requested_by: uuid.UUID,
    note: str | None = None,
) -> Payout:
    """Create a payout and debit the wallet for it."""
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationFailed("Payout amount must be greater than zero")

    wallet = await wallet_ledger.ensure_wallet(db, campaign.fundraiser_id)

    if await has_outstanding_payout(db, campaign.fundraiser_id):
        raise StateConflict("A payout is already in progress for this fundraiser")

    balance = await wallet_ledger.campaign_balance(db, campaign.id)
    if amount > balance:
        raise InsufficientFunds(
            "Amount exceeds the campaign's available balance",
            {"campaign_balance": balance, "requested": amount},
        )

    payout = Payout(
        fundraiser_id=campaign.fundraiser_id,
        campaign_id=campaign.id,
        milestone_id=milestone.id if milestone is not None else None,
        reference=_new_reference(),
        amount=amount,
        status=status,
        requested_by=requested_by,
        note=note,
    )
    db.add(payout)
    try:
        await db.flush()
    except IntegrityError as exc:
        raise StateConflict("A payout is already in progress for this fundraiser") from exc

    await wallet_ledger.debit(db, wallet, campaign.id, amount, payout.reference, note)

    logger.info(
        "Payout %s reserved: fundraiser=%s campaign=%s milestone=%s amount=%s status=%s",
        payout.reference,
        campaign.fundraiser_id,
        campaign.id,
        payout.milestone_id,
        amount,
        status,
    )
    return payout


async def _resolve_requestable_milestone(
    db: AsyncSession,
    campaign: Campaign,
    milestone_id: uuid.UUID | None,
    amount: Decimal,
) -> Milestone:
    progress = await milestone_progress.campaign_progress(db, campaign)

    if milestone_id is None:
        match = next((p for p in progress if p.label == READY_FOR_REQUEST), None)
        if match is None:
            raise StateConflict("No milestone is ready for a payout request")
    else:
        match = next((p for p in progress if p.milestone.id == milestone_id), None)
        if match is None:
            raise NotFound("Milestone not found for this campaign")
        if match.label != READY_FOR_REQUEST:
            raise StateConflict(
                f"Milestone {match.milestone.sequence} is {match.label}",
                {"progress": match.label},
            )

    if amount > match.remaining_amount:
        raise ValidationFailed(
            "Amount exceeds the milestone's remaining target",
            {"remaining": match.remaining_amount, "requested": amount},
        )
    return match.milestone


async def request_payout(
    db: AsyncSession,
    principal: Principal,
    campaign_id: uuid.UUID,
    amount: Decimal,
    milestone_id: uuid.UUID | None = None,
) -> Payout:
    """Fundraiser asks for (part of) an approved milestone tranche."""
    amount = to_money(amount)
    campaign = await campaign_lifecycle.get_campaign(db, campaign_id, for_update=True)
    ensure_authorized(principal, "payout.request", campaign)

    await campaign_lifecycle.refresh_completion(db, campaign)
    if campaign.status != "completed":
        raise StateConflict("Payouts open once the campaign has completed")

    milestone = await _resolve_requestable_milestone(db, campaign, milestone_id, amount)
    return await _reserve(
        db,
        campaign=campaign,
        milestone=milestone,
        amount=amount,
        status="requested",
        requested_by=principal.id,
    )


async def create_payout_by_admin(
    db: AsyncSession,
    principal: Principal,
    fundraiser_id: uuid.UUID,
    campaign_id: uuid.UUID,
    amount: Decimal,
    milestone_id: uuid.UUID | None = None,
    note: str | None = None,
) -> Payout:
    ensure_authorized(principal, "payout.create")
    amount = to_money(amount)

    campaign = await campaign_lifecycle.get_campaign(db, campaign_id, for_update=True)
    if campaign.fundraiser_id != fundraiser_id:
        raise ValidationFailed("Campaign does not belong to this fundraiser")

    milestone = None
    if milestone_id is not None:
        await campaign_lifecycle.refresh_completion(db, campaign)
        milestone = await _resolve_requestable_milestone(db, campaign, milestone_id, amount)

    return await _reserve(
        db,
        campaign=campaign,
        milestone=milestone,
        amount=amount,
        status="processing",
        requested_by=principal.id,
        note=note,
    )


async def reserve_milestone_tranche(
    db: AsyncSession,
    campaign: Campaign,
    milestone: Milestone,
    amount: Decimal,
    admin_id: uuid.UUID,
) -> Payout:
    """Payout created when an admin approves a milestone's evidence."""
    return await _reserve(
        db,
        campaign=campaign,
        milestone=milestone,
        amount=amount,
        status="processing",
        requested_by=admin_id,
        note=f"Milestone {milestone.sequence} tranche",
    )


async def _flip_status(db: AsyncSession, payout: Payout, values: dict) -> None:
    """Move an outstanding payout to a final status exactly once."""
    result = await db.execute(
        update(Payout)
        .where(Payout.id == payout.id, Payout.status.in_(OUTSTANDING_PAYOUT_STATUSES))
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise StateConflict("Payout already processed")
    await db.refresh(payout)


async def authorize_payout(
    db: AsyncSession,
    principal: Principal,
    payout_id: uuid.UUID,
    transaction_reference: str | None = None,
) -> Payout:
    """Admin confirms the transfer went out: ``requested|processing -> paid``."""
    ensure_authorized(principal, "payout.authorize")
    payout = await _get_payout(db, payout_id)
    _validate_transition(payout.status, "paid")

    if payout.milestone_id is not None:
        campaign = await campaign_lifecycle.get_campaign(
            db, payout.campaign_id, for_update=True, include_deleted=True
        )
        milestones = await milestone_progress.load_milestones(db, campaign.id, for_update=True)
        milestone = next((m for m in milestones if m.id == payout.milestone_id), None)
        if milestone is None:
            raise NotFound("Milestone not found")
        prior = milestone_progress.previous_milestone(milestones, milestone)
        if milestone.sequence > 1 and (prior is None or prior.status != "completed"):
            raise StateConflict("Previous milestone has not been completed")

        now = utcnow()
        milestone.released_amount = to_money(milestone.released_amount) + to_money(payout.amount)
        milestone.status = "completed"
        milestone.completed_at = now

    await _flip_status(
        db,
        payout,
        {
            "status": "paid",
            "processed_by": principal.id,
            "processed_at": utcnow(),
            "transaction_reference": transaction_reference,
        },
    )

    wallet = await wallet_ledger.ensure_wallet(db, payout.fundraiser_id)
    await wallet_ledger.finalize_withdrawal(db, wallet, payout.amount)

    logger.info(
        "Payout %s paid: amount=%s milestone=%s by=%s",
        payout.reference,
        payout.amount,
        payout.milestone_id,
        principal.id,
    )
    return payout


async def reject_payout(
    db: AsyncSession,
    principal: Principal,
    payout_id: uuid.UUID,
    reason: str | None = None,
) -> Payout:
    """Admin declines the payout; the reservation goes back to the wallet."""
    ensure_authorized(principal, "payout.reject")
    payout = await _get_payout(db, payout_id)
    _validate_transition(payout.status, "rejected")

    reason = (reason or "").strip() or DEFAULT_REJECTION_REASON
    await _flip_status(
        db,
        payout,
        {
            "status": "rejected",
            "processed_by": principal.id,
            "processed_at": utcnow(),
            "rejection_reason": reason,
        },
    )

    wallet = await wallet_ledger.ensure_wallet(db, payout.fundraiser_id)
    await wallet_ledger.reverse_debit(db, wallet, payout, note=reason)

    logger.info(
        "Payout %s rejected: amount=%s refunded, reason=%r", payout.reference, payout.amount, reason
    )
    return payout


async def list_pending_payouts(db: AsyncSession, principal: Principal) -> list[Payout]:
    ensure_authorized(principal, "payout.list_pending")
    result = await db.execute(
        select(Payout)
        .where(Payout.status.in_(OUTSTANDING_PAYOUT_STATUSES))
        .order_by(Payout.created_at.asc())
    )
    return list(result.scalars().all())


async def payout_history(
    db: AsyncSession,
    principal: Principal,
    fundraiser_id: uuid.UUID,
    campaign_id: uuid.UUID | None = None,
    status: str | None = None,
) -> list[Payout]:
    ensure_authorized(principal, "payout.history", OwnedBy(fundraiser_id))
    stmt = (
        select(Payout)
        .where(Payout.fundraiser_id == fundraiser_id)
        .order_by(Payout.created_at.desc())
    )
    if campaign_id is not None:
        stmt = stmt.where(Payout.campaign_id == campaign_id)
    if status is not None:
        stmt = stmt.where(Payout.status == status)
    result = await db.execute(stmt)
    return list(result.scalars().all())
