"""Donation initiation and gateway settlement.

Settlement flips a donation out of ``pending`` with one conditional
``UPDATE``; only the caller that wins the flip applies the campaign totals
and the wallet credit, so replayed webhooks are harmless.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal, InvalidOperation

from sqlalchemy import select, update
from sqlalchemy.ext.asyncio import AsyncSession

from traceaid.core.config import settings
from traceaid.core.exceptions import NotFound, StateConflict, ValidationFailed
from traceaid.core.permissions import Principal, ensure_authorized
from traceaid.db.base import utcnow
from traceaid.models.campaign import Campaign
from traceaid.models.donation import Donation
from traceaid.services import campaign_lifecycle, payment_gateway, wallet_ledger
from traceaid.services.milestone_progress import to_money

logger = logging.getLogger(__name__)

SUCCESS_STATUSES = frozenset({"successful", "success", "paid"})


def normalize_gateway_status(value: str | None) -> str:
    if value is not None and str(value).strip().lower() in SUCCESS_STATUSES:
        return "successful"
    return "failed"


def _new_reference() -> str:
    return f"DON_{uuid.uuid4()}"


@dataclass
class SettlementResult:
    donation: Donation
    applied: bool


async def initiate_donation(
    db: AsyncSession,
    principal: Principal,
    campaign_id: uuid.UUID,
    amount: Decimal,
    is_anonymous: bool = False,
    message: str | None = None,
    email: str | None = None,
) -> tuple[Donation, str | None]:
    """Record a pending donation and ask the gateway for a checkout URL."""
    ensure_authorized(principal, "donation.initiate")
    amount = to_money(amount)
    if amount <= 0:
        raise ValidationFailed("Donation amount must be greater than zero")

    campaign = await campaign_lifecycle.get_campaign(db, campaign_id)
    await campaign_lifecycle.refresh_completion(db, campaign)
    if campaign.status != "active":
        raise StateConflict("Campaign is not accepting donations")

    remaining = to_money(campaign.goal_amount) - to_money(campaign.amount_raised)
    if amount > remaining:
        raise ValidationFailed(
            f"Amount exceeds the remaining goal of {remaining}", {"remaining": remaining}
        )

    donation = Donation(
        donor_id=principal.id,
        campaign_id=campaign.id,
        fundraiser_id=campaign.fundraiser_id,
        amount=amount,
        currency=settings.DEFAULT_CURRENCY,
        payment_reference=_new_reference(),
        is_anonymous=is_anonymous,
        message=message,
    )
    db.add(donation)
    await db.flush()

    checkout_url = await payment_gateway.initialize_charge(
        donation.payment_reference, amount, donation.currency, email or principal.email
    )
    logger.info(
        "Donation %s initiated: campaign=%s amount=%s",
        donation.payment_reference,
        campaign.id,
        amount,
    )
    return donation, checkout_url


def _parse_amount(value: object) -> Decimal:
    try:
        return to_money(value)
    except (InvalidOperation, ValueError) as exc:
        raise ValidationFailed("Gateway amount is not a number") from exc


async def settle_donation(
    db: AsyncSession,
    reference: str,
    transaction_id: str | None,
    status: str | None,
    amount: object | None = None,
) -> SettlementResult:
    """Apply a gateway outcome to a pending donation exactly once."""
    result = await db.execute(select(Donation).where(Donation.payment_reference == reference))
    donation = result.scalar_one_or_none()
    if donation is None:
        raise NotFound("Donation not found")

    if donation.payment_status != "pending":
        logger.info("Donation %s already %s; ignoring replay", reference, donation.payment_status)
        return SettlementResult(donation, applied=False)

    if amount is not None and _parse_amount(amount) != to_money(donation.amount):
        raise ValidationFailed(
            "Gateway amount does not match the donation",
            {"expected": to_money(donation.amount), "received": _parse_amount(amount)},
        )

    outcome = normalize_gateway_status(status)
    flipped = await db.execute(
        update(Donation)
        .where(Donation.id == donation.id, Donation.payment_status == "pending")
        .values(
            payment_status=outcome,
            transaction_id=transaction_id or donation.transaction_id,
            verified_at=utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    await db.refresh(donation)
    if flipped.rowcount == 0:
        logger.info("Donation %s settled concurrently; ignoring", reference)
        return SettlementResult(donation, applied=False)

    if outcome == "successful":
        await _apply_success(db, donation)

    logger.info(
        "Donation %s settled: %s amount=%s campaign=%s",
        reference,
        outcome,
        donation.amount,
        donation.campaign_id,
    )
    return SettlementResult(donation, applied=True)


async def _apply_success(db: AsyncSession, donation: Donation) -> None:
    await db.execute(
        update(Campaign)
        .where(Campaign.id == donation.campaign_id)
        .values(
            amount_raised=Campaign.amount_raised + donation.amount,
            donor_count=Campaign.donor_count + 1,
        )
        .execution_options(synchronize_session=False)
    )
    campaign = await campaign_lifecycle.get_campaign(
        db, donation.campaign_id, for_update=True, include_deleted=True
    )
    await campaign_lifecycle.refresh_completion(db, campaign)

    wallet = await wallet_ledger.ensure_wallet(db, donation.fundraiser_id)
    await wallet_ledger.credit(
        db,
        wallet,
        donation.campaign_id,
        to_money(donation.amount),
        donation.payment_reference,
        note=f"Donation {donation.payment_reference}",
    )
