import uuid
from datetime import datetime
from decimal import Decimal

from sqlalchemy import (
    JSON,
    CheckConstraint,
    DateTime,
    ForeignKey,
    Integer,
    Numeric,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column

from traceaid.db.base import FundraiserScopedBase


class Milestone(FundraiserScopedBase):
    __tablename__ = "milestones"
    __table_args__ = (
        UniqueConstraint("campaign_id", "sequence", name="uq_milestones_campaign_sequence"),
        CheckConstraint("sequence BETWEEN 1 AND 3", name="ck_milestones_sequence"),
        CheckConstraint(
            "status IN ('pending', 'on_going', 'ready_for_release', 'completed')",
            name="ck_milestones_status",
        ),
        CheckConstraint(
            "evidence_approval_status IN ('required', 'submitted', 'approved', 'rejected')",
            name="ck_milestones_evidence_approval_status",
        ),
        CheckConstraint("target_amount >= 0", name="ck_milestones_target_non_negative"),
        CheckConstraint(
            "released_amount >= 0 AND released_amount <= target_amount",
            name="ck_milestones_released_within_target",
        ),
    )

    # fundraiser_id inherited from FundraiserScopedBase
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("campaigns.id"), nullable=False, index=True
    )
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)
    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text, nullable=True)
    target_amount: Mapped[Decimal] = mapped_column(Numeric(14, 2), nullable=False)
    released_amount: Mapped[Decimal] = mapped_column(
        Numeric(14, 2), nullable=False, default=Decimal("0")
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending")
    evidence_approval_status: Mapped[str] = mapped_column(
        Text, nullable=False, default="required"
    )
    evidence_id: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    verified_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)


class MilestoneEvidence(FundraiserScopedBase):
    __tablename__ = "milestone_evidence"
    __table_args__ = (
        CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_milestone_evidence_status",
        ),
    )

    # fundraiser_id inherited from FundraiserScopedBase
    campaign_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("campaigns.id"), nullable=False, index=True
    )
    milestone_id: Mapped[uuid.UUID] = mapped_column(
        ForeignKey("milestones.id"), nullable=False, index=True
    )
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # [{"url", "storage_key", "latitude", "longitude", "uploaded_at"}]
    uploads: Mapped[list] = mapped_column(
        JSON().with_variant(JSONB(), "postgresql"), nullable=False, default=list
    )
    status: Mapped[str] = mapped_column(Text, nullable=False, default="pending", index=True)
    reviewed_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    reviewed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
