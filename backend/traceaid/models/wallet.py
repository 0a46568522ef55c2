import uuid
from decimal import Decimal

from sqlalchemy import CheckConstraint, ForeignKey, Numeric, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from traceaid.db.base import FundraiserScopedBase


class FundraiserWallet(FundraiserScopedBase):
    __tablename__ = "fundraiser_wallets"
    __table_args__ = (
        UniqueConstraint("fundraiser_id", name="uq_fundraiser_wallets_fundraiser"),
        CheckConstraint("available_balance >= 0", name="ck_fundraiser_wallets_balance"),
        CheckConstraint("total_withdrawn >= 0", name="ck_fundraiser_wallets_withdrawn"),
    )

    # fundraiser_id inherited from FundraiserScopedBase
    available_balance: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    total_withdrawn: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    payout_bank_name: Mapped[str | None] = mapped_column(Text, nullable=True)
    payout_bank_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    payout_account_number: Mapped[str | None] = mapped_column(String(32), nullable=True)
    payout_account_name: Mapped[str | None] = mapped_column(Text, nullable=True)


class WalletTransaction(FundraiserScopedBase):
    """Append-only ledger entry. Never updated or deleted."""

    __tablename__ = "wallet_transactions"
    __table_args__ = (
        UniqueConstraint("type", "reference", name="uq_wallet_transactions_type_reference"),
        CheckConstraint(
            "type IN ('credit', 'debit', 'reversal')", name="ck_wallet_transactions_type"
        ),
        CheckConstraint(
            "source IN ('donation', 'payout', 'payout_reversal')",
            name="ck_wallet_transactions_source",
        ),
        CheckConstraint("amount > 0", name="ck_wallet_transactions_amount_positive"),
    )

    # fundraiser_id inherited from FundraiserScopedBase
    wallet_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("fundraiser_wallets.id"), nullable=False, index=True
    )
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("campaigns.id"), nullable=False, index=True
    )
    type: Mapped[str] = mapped_column(Text, nullable=False)
    source: Mapped[str] = mapped_column(Text, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    reference: Mapped[str] = mapped_column(Text, nullable=False)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
