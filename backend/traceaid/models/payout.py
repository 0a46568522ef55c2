import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import CheckConstraint, DateTime, ForeignKey, Index, Numeric, Text, text
from sqlalchemy.orm import Mapped, mapped_column

from traceaid.db.base import FundraiserScopedBase

OUTSTANDING_PAYOUT_STATUSES = ("requested", "processing")

_OUTSTANDING_PREDICATE = text("status IN ('requested', 'processing')")


class Payout(FundraiserScopedBase):
    __tablename__ = "payouts"
    __table_args__ = (
        CheckConstraint(
            "status IN ('requested', 'processing', 'paid', 'rejected')",
            name="ck_payouts_status",
        ),
        CheckConstraint("amount > 0", name="ck_payouts_amount_positive"),
        # At most one requested/processing payout per fundraiser.
        Index(
            "uq_payouts_one_outstanding_per_fundraiser",
            "fundraiser_id",
            unique=True,
            postgresql_where=_OUTSTANDING_PREDICATE,
            sqlite_where=_OUTSTANDING_PREDICATE,
        ),
    )

    # fundraiser_id inherited from FundraiserScopedBase
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("campaigns.id"), nullable=False, index=True
    )
    milestone_id: Mapped[uuid.UUID | None] = mapped_column(
        ForeignKey("milestones.id"), nullable=True, index=True
    )
    reference: Mapped[str] = mapped_column(Text, unique=True, nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    status: Mapped[str] = mapped_column(Text, nullable=False, index=True)
    requested_by: Mapped[uuid.UUID] = mapped_column(nullable=False)
    processed_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    transaction_reference: Mapped[str | None] = mapped_column(Text, nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    note: Mapped[str | None] = mapped_column(Text, nullable=True)
