"""Fundraiser payout requests and history."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from traceaid.core.dependencies import get_current_fundraiser, get_current_principal, get_db
from traceaid.core.permissions import Principal
from traceaid.models.fundraiser import Fundraiser
from traceaid.schemas.common import Envelope
from traceaid.schemas.payout import PayoutRequest, PayoutResponse, PayoutStatus
from traceaid.services import payout_workflow

router = APIRouter()


@router.post("", response_model=Envelope[PayoutResponse], status_code=201)
async def request_payout(
    body: PayoutRequest,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[PayoutResponse]:
    payout = await payout_workflow.request_payout(
        db, principal, body.campaign_id, body.amount, body.milestone_id
    )
    return Envelope(
        status_text="Created",
        message="Payout requested",
        data=PayoutResponse.model_validate(payout),
    )


@router.get("", response_model=Envelope[list[PayoutResponse]])
async def payout_history(
    campaign_id: uuid.UUID | None = Query(None),
    status: PayoutStatus | None = Query(None),
    principal: Principal = Depends(get_current_principal),
    fundraiser: Fundraiser = Depends(get_current_fundraiser),
    db: AsyncSession = Depends(get_db),
) -> Envelope[list[PayoutResponse]]:
    payouts = await payout_workflow.payout_history(
        db, principal, fundraiser.id, campaign_id=campaign_id, status=status
    )
    return Envelope(
        message="Payout history retrieved",
        data=[PayoutResponse.model_validate(p) for p in payouts],
    )
