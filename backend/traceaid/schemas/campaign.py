"""Campaign and milestone request/response schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

from traceaid.schemas.common import ReviewAction

CampaignCategory = Literal["Health", "Education", "Community", "Environment", "Others"]


class MilestoneInput(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str | None = None


class CampaignCreate(BaseModel):
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1)
    category: CampaignCategory
    goal_amount: Decimal = Field(..., gt=0, decimal_places=2)
    duration_days: int = Field(..., gt=0, le=365)
    cover_url: str | None = None
    milestones: list[MilestoneInput] = Field(..., min_length=3, max_length=3)
    submit: bool = True


class CampaignReview(BaseModel):
    action: ReviewAction
    remarks: str | None = Field(None, max_length=2000)


class ExtensionCreate(BaseModel):
    days: int = Field(..., gt=0, le=365)
    reason: str | None = Field(None, max_length=2000)


class CampaignResponse(BaseModel):
    id: uuid.UUID
    fundraiser_id: uuid.UUID
    title: str
    description: str
    category: str
    goal_amount: Decimal
    amount_raised: Decimal
    currency: str
    duration_days: int
    cover_url: str | None = None
    status: str
    rejection_reason: str | None = None
    is_active: bool
    start_date: datetime | None = None
    end_date: datetime | None = None
    completed_at: datetime | None = None
    donor_count: int
    like_count: int
    save_count: int
    share_count: int
    created_at: datetime
    updated_at: datetime | None = None

    model_config = {"from_attributes": True}


class MilestoneResponse(BaseModel):
    id: uuid.UUID
    campaign_id: uuid.UUID
    sequence: int
    title: str
    description: str | None = None
    target_amount: Decimal
    released_amount: Decimal
    status: str
    evidence_approval_status: str
    evidence_id: uuid.UUID | None = None
    verified_at: datetime | None = None
    completed_at: datetime | None = None

    model_config = {"from_attributes": True}


class MilestoneProgressResponse(MilestoneResponse):
    progress: str
    eligible: bool
    remaining_amount: Decimal


class CampaignDetail(BaseModel):
    campaign: CampaignResponse
    milestones: list[MilestoneProgressResponse]


class ExtensionResponse(BaseModel):
    id: uuid.UUID
    campaign_id: uuid.UUID
    days: int
    reason: str | None = None
    status: str
    reviewed_by: uuid.UUID | None = None
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class ExtensionDecisionResponse(BaseModel):
    campaign: CampaignResponse
    extension: ExtensionResponse
