"""Fundraiser profile and KYC decision schemas."""

import uuid
from datetime import datetime
from typing import Literal

from pydantic import BaseModel, Field


class FundraiserResponse(BaseModel):
    id: uuid.UUID
    email: str
    organization_name: str
    kyc_status: str
    kyc_rejection_reason: str | None = None
    status: str
    created_at: datetime

    model_config = {"from_attributes": True}


class KycDecision(BaseModel):
    action: Literal["verify", "reject"]
    reason: str | None = Field(None, max_length=2000)
