"""Admin endpoints: campaign review, KYC, evidence review, payouts, wallets."""

import uuid

from fastapi import APIRouter, BackgroundTasks, Depends
from sqlalchemy.ext.asyncio import AsyncSession

from traceaid.core.dependencies import get_current_principal, get_db, get_notifier
from traceaid.core.exceptions import NotFound, ValidationFailed
from traceaid.core.permissions import Principal, ensure_authorized
from traceaid.models.fundraiser import Fundraiser
from traceaid.schemas.campaign import (
    CampaignResponse,
    CampaignReview,
    ExtensionDecisionResponse,
    ExtensionResponse,
    MilestoneResponse,
)
from traceaid.schemas.common import Envelope, ReviewDecision
from traceaid.schemas.fundraiser import FundraiserResponse, KycDecision
from traceaid.schemas.milestone import EvidenceResponse, EvidenceReviewed
from traceaid.schemas.payout import (
    AdminPayoutCreate,
    PayoutAuthorize,
    PayoutReject,
    PayoutResponse,
)
from traceaid.schemas.wallet import WalletSummary
from traceaid.services import (
    campaign_lifecycle,
    milestone_ledger,
    notifications,
    payout_workflow,
    wallet_ledger,
)
from traceaid.services.notifications import EmailNotifier

router = APIRouter()


# ---------------------------------------------------------------------------
# Campaigns
# ---------------------------------------------------------------------------


@router.post("/campaigns/{campaign_id}/review", response_model=Envelope[CampaignResponse])
async def review_campaign(
    campaign_id: uuid.UUID,
    body: CampaignReview,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_current_principal),
    notifier: EmailNotifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
) -> Envelope[CampaignResponse]:
    campaign = await campaign_lifecycle.review_campaign(
        db, principal, campaign_id, body.action, body.remarks
    )

    email = await notifications.fundraiser_email(db, campaign.fundraiser_id)
    if email:
        notice = notifications.campaign_reviewed(
            email, campaign.title, campaign.status == "approved", campaign.rejection_reason
        )
        notifications.schedule(background_tasks, notifier, notice)
    return Envelope(
        message=f"Campaign {campaign.status}",
        data=CampaignResponse.model_validate(campaign),
    )


@router.post(
    "/campaigns/{campaign_id}/extensions/{extension_id}/decision",
    response_model=Envelope[ExtensionDecisionResponse],
)
async def decide_extension(
    campaign_id: uuid.UUID,
    extension_id: uuid.UUID,
    body: ReviewDecision,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_current_principal),
    notifier: EmailNotifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
) -> Envelope[ExtensionDecisionResponse]:
    campaign, extension = await campaign_lifecycle.decide_extension(
        db, principal, campaign_id, extension_id, body.action, body.reason
    )

    email = await notifications.fundraiser_email(db, campaign.fundraiser_id)
    if email:
        notice = notifications.extension_decided(
            email, campaign.title, extension.status == "approved", extension.rejection_reason
        )
        notifications.schedule(background_tasks, notifier, notice)
    return Envelope(
        message=f"Extension {extension.status}",
        data=ExtensionDecisionResponse(
            campaign=CampaignResponse.model_validate(campaign),
            extension=ExtensionResponse.model_validate(extension),
        ),
    )


# ---------------------------------------------------------------------------
# Fundraiser verification
# ---------------------------------------------------------------------------


@router.post("/fundraisers/{fundraiser_id}/kyc", response_model=Envelope[FundraiserResponse])
async def decide_kyc(
    fundraiser_id: uuid.UUID,
    body: KycDecision,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_current_principal),
    notifier: EmailNotifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
) -> Envelope[FundraiserResponse]:
    ensure_authorized(principal, "fundraiser.review_kyc")
    fundraiser = await db.get(
        Fundraiser, fundraiser_id, with_for_update=True, populate_existing=True
    )
    if fundraiser is None:
        raise NotFound("Fundraiser not found")

    if body.action == "reject":
        reason = (body.reason or "").strip()
        if not reason:
            raise ValidationFailed("A reason is required when rejecting verification")
        fundraiser.kyc_status = "rejected"
        fundraiser.kyc_rejection_reason = reason
    else:
        fundraiser.kyc_status = "verified"
        fundraiser.kyc_rejection_reason = None
    fundraiser.kyc_reviewed_by = principal.id
    await db.flush()

    notice = notifications.kyc_decided(
        fundraiser.email, fundraiser.kyc_status == "verified", fundraiser.kyc_rejection_reason
    )
    notifications.schedule(background_tasks, notifier, notice)
    return Envelope(
        message=f"Fundraiser {fundraiser.kyc_status}",
        data=FundraiserResponse.model_validate(fundraiser),
    )


# ---------------------------------------------------------------------------
# Milestone evidence
# ---------------------------------------------------------------------------


@router.get("/evidence/pending", response_model=Envelope[list[EvidenceResponse]])
async def list_pending_evidence(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[list[EvidenceResponse]]:
    evidence = await milestone_ledger.list_pending_evidence(db, principal)
    return Envelope(
        message="Pending evidence retrieved",
        data=[EvidenceResponse.model_validate(e) for e in evidence],
    )


@router.post("/evidence/{evidence_id}/review", response_model=Envelope[EvidenceReviewed])
async def review_evidence(
    evidence_id: uuid.UUID,
    body: ReviewDecision,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_current_principal),
    notifier: EmailNotifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
) -> Envelope[EvidenceReviewed]:
    """Approving evidence also reserves the milestone's tranche as a payout."""
    evidence, milestone, payout = await milestone_ledger.review_evidence(
        db, principal, evidence_id, body.action, body.reason
    )

    email = await notifications.fundraiser_email(db, evidence.fundraiser_id)
    if email:
        notice = notifications.evidence_reviewed(
            email, milestone.title, evidence.status == "approved", evidence.rejection_reason
        )
        notifications.schedule(background_tasks, notifier, notice)
    return Envelope(
        message=f"Evidence {evidence.status}",
        data=EvidenceReviewed(
            evidence=EvidenceResponse.model_validate(evidence),
            milestone=MilestoneResponse.model_validate(milestone),
            payout=PayoutResponse.model_validate(payout) if payout is not None else None,
        ),
    )


# ---------------------------------------------------------------------------
# Payouts
# ---------------------------------------------------------------------------


@router.get("/payouts/pending", response_model=Envelope[list[PayoutResponse]])
async def list_pending_payouts(
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[list[PayoutResponse]]:
    payouts = await payout_workflow.list_pending_payouts(db, principal)
    return Envelope(
        message="Pending payouts retrieved",
        data=[PayoutResponse.model_validate(p) for p in payouts],
    )


@router.post("/payouts", response_model=Envelope[PayoutResponse], status_code=201)
async def create_payout(
    body: AdminPayoutCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[PayoutResponse]:
    payout = await payout_workflow.create_payout_by_admin(
        db,
        principal,
        body.fundraiser_id,
        body.campaign_id,
        body.amount,
        milestone_id=body.milestone_id,
        note=body.note,
    )
    return Envelope(
        status_text="Created",
        message="Payout created",
        data=PayoutResponse.model_validate(payout),
    )


@router.post("/payouts/{payout_id}/authorize", response_model=Envelope[PayoutResponse])
async def authorize_payout(
    payout_id: uuid.UUID,
    body: PayoutAuthorize,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_current_principal),
    notifier: EmailNotifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
) -> Envelope[PayoutResponse]:
    payout = await payout_workflow.authorize_payout(
        db, principal, payout_id, body.transaction_reference
    )

    email = await notifications.fundraiser_email(db, payout.fundraiser_id)
    if email:
        notice = notifications.payout_decided(email, payout.amount, True, None)
        notifications.schedule(background_tasks, notifier, notice)
    return Envelope(message="Payout marked paid", data=PayoutResponse.model_validate(payout))


@router.post("/payouts/{payout_id}/reject", response_model=Envelope[PayoutResponse])
async def reject_payout(
    payout_id: uuid.UUID,
    body: PayoutReject,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_current_principal),
    notifier: EmailNotifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
) -> Envelope[PayoutResponse]:
    payout = await payout_workflow.reject_payout(db, principal, payout_id, body.reason)

    email = await notifications.fundraiser_email(db, payout.fundraiser_id)
    if email:
        notice = notifications.payout_decided(
            email, payout.amount, False, payout.rejection_reason
        )
        notifications.schedule(background_tasks, notifier, notice)
    return Envelope(message="Payout rejected", data=PayoutResponse.model_validate(payout))


# ---------------------------------------------------------------------------
# Wallets
# ---------------------------------------------------------------------------


@router.get("/wallets/{fundraiser_id}", response_model=Envelope[WalletSummary])
async def get_fundraiser_wallet(
    fundraiser_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[WalletSummary]:
    ensure_authorized(principal, "wallet.read")
    if await db.get(Fundraiser, fundraiser_id) is None:
        raise NotFound("Fundraiser not found")
    summary = await wallet_ledger.wallet_summary(db, fundraiser_id)
    return Envelope(
        message="Wallet retrieved",
        data=WalletSummary.model_validate(summary, from_attributes=True),
    )
