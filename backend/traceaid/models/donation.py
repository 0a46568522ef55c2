import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    Boolean,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Numeric,
    String,
    Text,
)
from sqlalchemy.orm import Mapped, mapped_column

from traceaid.db.base import FundraiserScopedBase


class Donation(FundraiserScopedBase):
    __tablename__ = "donations"
    __table_args__ = (
        CheckConstraint(
            "payment_status IN ('pending', 'successful', 'failed')",
            name="ck_donations_payment_status",
        ),
        CheckConstraint("amount > 0", name="ck_donations_amount_positive"),
    )

    # fundraiser_id inherited from FundraiserScopedBase
    donor_id: Mapped[uuid.UUID] = mapped_column(nullable=False, index=True)
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("campaigns.id"), nullable=False, index=True
    )
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    currency: Mapped[str] = mapped_column(String(3), nullable=False, default="NGN")
    payment_reference: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    transaction_id: Mapped[str | None] = mapped_column(Text, nullable=True)
    payment_status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    is_anonymous: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    message: Mapped[str | None] = mapped_column(Text, nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
