"""Fundraiser profile (auto-provisioned from the access token)."""

from fastapi import APIRouter, Depends

from traceaid.core.dependencies import get_current_fundraiser
from traceaid.models.fundraiser import Fundraiser
from traceaid.schemas.common import Envelope
from traceaid.schemas.fundraiser import FundraiserResponse

router = APIRouter()


@router.get("/me", response_model=Envelope[FundraiserResponse])
async def get_me(
    fundraiser: Fundraiser = Depends(get_current_fundraiser),
) -> Envelope[FundraiserResponse]:
    return Envelope(
        message="Fundraiser retrieved",
        data=FundraiserResponse.model_validate(fundraiser),
    )
