"""Fundraiser wallet: summary, ledger listing, payout bank account."""

import uuid

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from traceaid.core.dependencies import (
    get_bank_directory,
    get_current_fundraiser,
    get_current_principal,
    get_db,
)
from traceaid.core.exceptions import ValidationFailed
from traceaid.core.permissions import OwnedBy, Principal, ensure_authorized
from traceaid.models.fundraiser import Fundraiser
from traceaid.schemas.common import Envelope
from traceaid.schemas.wallet import (
    BankAccount,
    BankAccountUpdate,
    BankResponse,
    TransactionResponse,
    WalletSummary,
)
from traceaid.services import wallet_ledger
from traceaid.services.bank_directory import BankDirectory
from traceaid.services.wallet_ledger import TRANSACTION_TYPES

router = APIRouter()


@router.get("", response_model=Envelope[WalletSummary])
async def get_wallet_summary(
    principal: Principal = Depends(get_current_principal),
    fundraiser: Fundraiser = Depends(get_current_fundraiser),
    db: AsyncSession = Depends(get_db),
) -> Envelope[WalletSummary]:
    ensure_authorized(principal, "wallet.read", OwnedBy(fundraiser.id))
    summary = await wallet_ledger.wallet_summary(db, fundraiser.id)
    return Envelope(
        message="Wallet retrieved",
        data=WalletSummary.model_validate(summary, from_attributes=True),
    )


@router.get("/transactions", response_model=Envelope[list[TransactionResponse]])
async def list_transactions(
    campaign_id: uuid.UUID | None = Query(None),
    type: str | None = Query(None),
    limit: int = Query(50, ge=1, le=200),
    principal: Principal = Depends(get_current_principal),
    fundraiser: Fundraiser = Depends(get_current_fundraiser),
    db: AsyncSession = Depends(get_db),
) -> Envelope[list[TransactionResponse]]:
    ensure_authorized(principal, "wallet.read", OwnedBy(fundraiser.id))
    if type is not None and type not in TRANSACTION_TYPES:
        raise ValidationFailed(
            f"Unknown transaction type '{type}'", {"allowed": list(TRANSACTION_TYPES)}
        )
    transactions = await wallet_ledger.list_transactions(
        db, fundraiser.id, campaign_id=campaign_id, type_=type, limit=limit
    )
    return Envelope(
        message="Transactions retrieved",
        data=[TransactionResponse.model_validate(t) for t in transactions],
    )


@router.get("/banks", response_model=Envelope[list[BankResponse]])
async def list_banks(
    bank_directory: BankDirectory = Depends(get_bank_directory),
) -> Envelope[list[BankResponse]]:
    banks = await bank_directory.list_banks()
    return Envelope(message="Banks retrieved", data=[BankResponse(**b) for b in banks])


@router.put("/bank-account", response_model=Envelope[BankAccount])
async def set_bank_account(
    body: BankAccountUpdate,
    principal: Principal = Depends(get_current_principal),
    fundraiser: Fundraiser = Depends(get_current_fundraiser),
    bank_directory: BankDirectory = Depends(get_bank_directory),
    db: AsyncSession = Depends(get_db),
) -> Envelope[BankAccount]:
    ensure_authorized(principal, "wallet.update_bank", OwnedBy(fundraiser.id))
    bank_code = await bank_directory.resolve_code(body.bank_name)
    if bank_code is None:
        raise ValidationFailed(f"Unknown bank '{body.bank_name}'")

    wallet = await wallet_ledger.set_bank_account(
        db,
        fundraiser.id,
        bank_name=body.bank_name,
        bank_code=bank_code,
        account_number=body.account_number,
        account_name=body.account_name,
    )
    return Envelope(
        message="Payout bank account saved",
        data=BankAccount(
            bank_name=wallet.payout_bank_name,
            bank_code=wallet.payout_bank_code,
            account_number=wallet.payout_account_number,
            account_name=wallet.payout_account_name,
        ),
    )
