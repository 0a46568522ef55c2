"""Milestone evidence schemas."""

import uuid
from datetime import datetime

from pydantic import BaseModel, Field

from traceaid.schemas.campaign import MilestoneResponse
from traceaid.schemas.payout import PayoutResponse


class UploadFile(BaseModel):
    file_name: str = Field(..., min_length=1, max_length=255)
    content_type: str = Field(..., min_length=1, max_length=100)


class UploadUrlRequest(BaseModel):
    files: list[UploadFile] = Field(..., min_length=1)


class UploadUrlResponse(BaseModel):
    storage_key: str
    upload_url: str
    expires_in: int


class EvidenceUpload(BaseModel):
    storage_key: str = Field(..., min_length=1)
    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class EvidenceSubmit(BaseModel):
    description: str = Field(..., min_length=1)
    uploads: list[EvidenceUpload]


class EvidenceResponse(BaseModel):
    id: uuid.UUID
    campaign_id: uuid.UUID
    milestone_id: uuid.UUID
    fundraiser_id: uuid.UUID
    description: str
    uploads: list[dict]
    status: str
    reviewed_by: uuid.UUID | None = None
    reviewed_at: datetime | None = None
    rejection_reason: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class EvidenceSubmitted(BaseModel):
    evidence: EvidenceResponse
    milestone: MilestoneResponse


class EvidenceReviewed(BaseModel):
    evidence: EvidenceResponse
    milestone: MilestoneResponse
    payout: PayoutResponse | None = None
