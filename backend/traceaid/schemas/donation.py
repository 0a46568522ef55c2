"""Donation schemas."""

import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field


class DonationCreate(BaseModel):
    campaign_id: uuid.UUID
    amount: Decimal = Field(..., gt=0, decimal_places=2)
    is_anonymous: bool = False
    message: str | None = Field(None, max_length=1000)
    email: str | None = Field(None, max_length=320)


class DonationResponse(BaseModel):
    id: uuid.UUID
    campaign_id: uuid.UUID
    amount: Decimal
    currency: str
    payment_reference: str
    transaction_id: str | None = None
    payment_status: str
    is_anonymous: bool
    message: str | None = None
    verified_at: datetime | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class DonationInitiated(BaseModel):
    donation: DonationResponse
    payment_reference: str
    checkout_url: str | None = None


class WebhookPayload(BaseModel):
    """Gateway callback body, normalized from the gateway's field names."""

    reference: str = Field(..., min_length=1)
    transaction_id: str | None = None
    status: str | None = None
    amount: Decimal | None = None

    @classmethod
    def from_gateway(cls, payload: dict) -> "WebhookPayload":
        body = payload.get("data") if isinstance(payload.get("data"), dict) else payload
        return cls.model_validate(
            {
                "reference": body.get("payment_reference")
                or body.get("paymentReference")
                or body.get("reference"),
                "transaction_id": body.get("transaction_id") or body.get("transactionId"),
                "status": body.get("status") or body.get("payment_status"),
                "amount": body.get("amount"),
            }
        )
