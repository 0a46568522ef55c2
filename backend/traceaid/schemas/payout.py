"""Payout schemas."""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, Field

PayoutStatus = Literal["requested", "processing", "paid", "rejected"]


class PayoutRequest(BaseModel):
    campaign_id: uuid.UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    milestone_id: uuid.UUID | None = None


class AdminPayoutCreate(BaseModel):
    fundraiser_id: uuid.UUID
    campaign_id: uuid.UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    milestone_id: uuid.UUID | None = None
    note: str | None = Field(None, max_length=2000)


class PayoutAuthorize(BaseModel):
    transaction_reference: str | None = Field(None, max_length=255)


class PayoutReject(BaseModel):
    reason: str | None = Field(None, max_length=2000)


class PayoutResponse(BaseModel):
    id: uuid.UUID
    fundraiser_id: uuid.UUID
    campaign_id: uuid.UUID
    milestone_id: uuid.UUID | None = None
    reference: str
    amount: Decimal
    status: str
    requested_by: uuid.UUID
    processed_by: uuid.UUID | None = None
    processed_at: datetime | None = None
    transaction_reference: str | None = None
    rejection_reason: str | None = None
    note: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}
