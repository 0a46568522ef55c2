"""Campaign endpoints for fundraisers and the public."""

import uuid

from fastapi import APIRouter, BackgroundTasks, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from traceaid.core.dependencies import (
    get_current_fundraiser,
    get_current_principal,
    get_db,
    get_notifier,
)
from traceaid.core.permissions import Principal
from traceaid.models.campaign import Campaign
from traceaid.models.fundraiser import Fundraiser
from traceaid.schemas.campaign import (
    CampaignCreate,
    CampaignDetail,
    CampaignResponse,
    ExtensionCreate,
    ExtensionResponse,
    MilestoneProgressResponse,
    MilestoneResponse,
)
from traceaid.schemas.common import Envelope
from traceaid.schemas.milestone import EvidenceResponse
from traceaid.services import campaign_lifecycle, milestone_ledger, notifications
from traceaid.services.milestone_progress import campaign_progress
from traceaid.services.notifications import EmailNotifier

router = APIRouter()

DEFAULT_PAGE_SIZE = 20


async def campaign_detail(db: AsyncSession, campaign: Campaign) -> CampaignDetail:
    """Campaign plus each milestone's derived progress."""
    progress = await campaign_progress(db, campaign)
    return CampaignDetail(
        campaign=CampaignResponse.model_validate(campaign),
        milestones=[
            MilestoneProgressResponse(
                **MilestoneResponse.model_validate(p.milestone).model_dump(),
                progress=p.label,
                eligible=p.eligible,
                remaining_amount=p.remaining_amount,
            )
            for p in progress
        ],
    )


@router.post("", response_model=Envelope[CampaignDetail], status_code=201)
async def create_campaign(
    body: CampaignCreate,
    principal: Principal = Depends(get_current_principal),
    fundraiser: Fundraiser = Depends(get_current_fundraiser),
    db: AsyncSession = Depends(get_db),
) -> Envelope[CampaignDetail]:
    campaign, _ = await campaign_lifecycle.create_campaign(
        db,
        principal,
        fundraiser,
        title=body.title,
        description=body.description,
        category=body.category,
        goal_amount=body.goal_amount,
        duration_days=body.duration_days,
        milestones=[m.model_dump() for m in body.milestones],
        cover_url=body.cover_url,
        submit=body.submit,
    )
    return Envelope(
        status_text="Created",
        message="Campaign created",
        data=await campaign_detail(db, campaign),
    )


@router.get("", response_model=Envelope[list[CampaignResponse]])
async def list_campaigns(
    status: str | None = Query(None),
    fundraiser_id: uuid.UUID | None = Query(None),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    offset: int = Query(0, ge=0),
    db: AsyncSession = Depends(get_db),
) -> Envelope[list[CampaignResponse]]:
    campaigns = await campaign_lifecycle.list_campaigns(
        db, status=status, fundraiser_id=fundraiser_id, limit=limit, offset=offset
    )
    return Envelope(
        message="Campaigns retrieved",
        data=[CampaignResponse.model_validate(c) for c in campaigns],
    )


@router.get("/mine", response_model=Envelope[list[CampaignResponse]])
async def list_my_campaigns(
    status: str | None = Query(None),
    limit: int = Query(DEFAULT_PAGE_SIZE, ge=1, le=100),
    offset: int = Query(0, ge=0),
    fundraiser: Fundraiser = Depends(get_current_fundraiser),
    db: AsyncSession = Depends(get_db),
) -> Envelope[list[CampaignResponse]]:
    campaigns = await campaign_lifecycle.list_campaigns(
        db, status=status, fundraiser_id=fundraiser.id, limit=limit, offset=offset
    )
    return Envelope(
        message="Campaigns retrieved",
        data=[CampaignResponse.model_validate(c) for c in campaigns],
    )


@router.get("/{campaign_id}", response_model=Envelope[CampaignDetail])
async def get_campaign(
    campaign_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Envelope[CampaignDetail]:
    campaign = await campaign_lifecycle.get_campaign(db, campaign_id, for_update=True)
    await campaign_lifecycle.refresh_completion(db, campaign)
    return Envelope(message="Campaign retrieved", data=await campaign_detail(db, campaign))


@router.post("/{campaign_id}/submit", response_model=Envelope[CampaignResponse])
async def submit_campaign(
    campaign_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[CampaignResponse]:
    campaign = await campaign_lifecycle.submit_campaign(db, principal, campaign_id)
    return Envelope(
        message="Campaign submitted for review",
        data=CampaignResponse.model_validate(campaign),
    )


@router.post("/{campaign_id}/activate", response_model=Envelope[CampaignResponse])
async def activate_campaign(
    campaign_id: uuid.UUID,
    background_tasks: BackgroundTasks,
    principal: Principal = Depends(get_current_principal),
    notifier: EmailNotifier = Depends(get_notifier),
    db: AsyncSession = Depends(get_db),
) -> Envelope[CampaignResponse]:
    """Admins activate pending/approved campaigns; owners only approved ones."""
    campaign = await campaign_lifecycle.activate_campaign(db, principal, campaign_id)

    email = await notifications.fundraiser_email(db, campaign.fundraiser_id)
    if email:
        notifications.schedule(
            background_tasks, notifier, notifications.campaign_activated(email, campaign.title)
        )
    return Envelope(message="Campaign activated", data=CampaignResponse.model_validate(campaign))


@router.post(
    "/{campaign_id}/extensions", response_model=Envelope[ExtensionResponse], status_code=201
)
async def request_extension(
    campaign_id: uuid.UUID,
    body: ExtensionCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[ExtensionResponse]:
    extension = await campaign_lifecycle.request_extension(
        db, principal, campaign_id, body.days, body.reason
    )
    return Envelope(
        status_text="Created",
        message="Extension requested",
        data=ExtensionResponse.model_validate(extension),
    )


@router.get("/{campaign_id}/extensions", response_model=Envelope[list[ExtensionResponse]])
async def list_extensions(
    campaign_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Envelope[list[ExtensionResponse]]:
    await campaign_lifecycle.get_campaign(db, campaign_id)
    extensions = await campaign_lifecycle.list_extensions(db, campaign_id)
    return Envelope(
        message="Extension requests retrieved",
        data=[ExtensionResponse.model_validate(e) for e in extensions],
    )


@router.get("/{campaign_id}/evidence", response_model=Envelope[list[EvidenceResponse]])
async def list_campaign_evidence(
    campaign_id: uuid.UUID,
    db: AsyncSession = Depends(get_db),
) -> Envelope[list[EvidenceResponse]]:
    await campaign_lifecycle.get_campaign(db, campaign_id)
    evidence = await milestone_ledger.campaign_evidence(db, campaign_id)
    return Envelope(
        message="Evidence retrieved",
        data=[EvidenceResponse.model_validate(e) for e in evidence],
    )


@router.delete("/{campaign_id}", response_model=Envelope[CampaignResponse])
async def delete_campaign(
    campaign_id: uuid.UUID,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[CampaignResponse]:
    campaign = await campaign_lifecycle.soft_delete_campaign(db, principal, campaign_id)
    return Envelope(message="Campaign deleted", data=CampaignResponse.model_validate(campaign))
