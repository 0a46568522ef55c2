"""Donation initiation and the payment gateway webhook."""

import json
import logging

from fastapi import APIRouter, Depends, Request
from pydantic import ValidationError
from sqlalchemy.ext.asyncio import AsyncSession

from traceaid.core.config import settings
from traceaid.core.dependencies import get_current_principal, get_db
from traceaid.core.exceptions import NotAuthenticated, ValidationFailed
from traceaid.core.permissions import Principal
from traceaid.schemas.common import Envelope
from traceaid.schemas.donation import (
    DonationCreate,
    DonationInitiated,
    DonationResponse,
    WebhookPayload,
)
from traceaid.services import payment_gateway, settlement

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=Envelope[DonationInitiated], status_code=201)
async def initiate_donation(
    body: DonationCreate,
    principal: Principal = Depends(get_current_principal),
    db: AsyncSession = Depends(get_db),
) -> Envelope[DonationInitiated]:
    donation, checkout_url = await settlement.initiate_donation(
        db,
        principal,
        body.campaign_id,
        body.amount,
        is_anonymous=body.is_anonymous,
        message=body.message,
        email=body.email,
    )
    return Envelope(
        status_text="Created",
        message="Donation initiated. Complete payment with the reference or checkout URL.",
        data=DonationInitiated(
            donation=DonationResponse.model_validate(donation),
            payment_reference=donation.payment_reference,
            checkout_url=checkout_url,
        ),
    )


@router.post("/webhook", response_model=Envelope[DonationResponse])
async def payment_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
) -> Envelope[DonationResponse]:
    """Gateway callback. The body must be signed with ``WEBHOOK_SECRET``."""
    raw = await request.body()
    signature = request.headers.get(payment_gateway.SIGNATURE_HEADER)
    if not payment_gateway.verify_signature(raw, signature, settings.WEBHOOK_SECRET):
        logger.warning("Webhook rejected: missing or invalid signature")
        raise NotAuthenticated("Invalid webhook signature")

    try:
        payload = WebhookPayload.from_gateway(json.loads(raw))
    except (ValueError, AttributeError, ValidationError) as exc:
        raise ValidationFailed("Webhook body must carry a payment reference") from exc

    result = await settlement.settle_donation(
        db, payload.reference, payload.transaction_id, payload.status, payload.amount
    )
    message = (
        f"Donation marked {result.donation.payment_status}"
        if result.applied
        else f"Donation already {result.donation.payment_status}"
    )
    return Envelope(message=message, data=DonationResponse.model_validate(result.donation))
