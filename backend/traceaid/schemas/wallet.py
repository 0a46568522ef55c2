"""Wallet, ledger and bank schemas."""

import re
import uuid
from datetime import datetime
from decimal import Decimal

from pydantic import BaseModel, Field, field_validator

ACCOUNT_NUMBER_PATTERN = re.compile(r"^\d{10}$")


class TransactionResponse(BaseModel):
    id: uuid.UUID
    campaign_id: uuid.UUID
    type: str
    source: str
    amount: Decimal
    reference: str
    note: str | None = None
    created_at: datetime

    model_config = {"from_attributes": True}


class CampaignBalance(BaseModel):
    campaign_id: uuid.UUID
    title: str | None = None
    credited: Decimal
    debited: Decimal
    reversed: Decimal
    balance: Decimal


class BankAccount(BaseModel):
    bank_name: str | None = None
    bank_code: str | None = None
    account_number: str | None = None
    account_name: str | None = None


class WalletSummary(BaseModel):
    fundraiser_id: uuid.UUID
    available_balance: Decimal
    total_withdrawn: Decimal
    reserved: Decimal
    total_credited: Decimal
    bank_account: BankAccount | None = None
    campaigns: list[CampaignBalance]
    recent_transactions: list[TransactionResponse]


class BankAccountUpdate(BaseModel):
    bank_name: str = Field(..., min_length=2, max_length=255)
    account_number: str
    account_name: str = Field(..., min_length=2, max_length=255)

    @field_validator("account_number")
    @classmethod
    def validate_account_number(cls, v: str) -> str:
        v = v.strip()
        if not ACCOUNT_NUMBER_PATTERN.match(v):
            raise ValueError("Account number must be 10 digits")
        return v


class BankResponse(BaseModel):
    name: str
    code: str
