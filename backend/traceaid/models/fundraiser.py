import uuid

from sqlalchemy import CheckConstraint, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from traceaid.db.base import TimestampedBase


class Fundraiser(TimestampedBase):
    """Organization account. Provisioned from the authenticated principal."""

    __tablename__ = "fundraisers"
    __table_args__ = (
        CheckConstraint(
            "kyc_status IN ('unverified', 'pending', 'verified', 'rejected')",
            name="ck_fundraisers_kyc_status",
        ),
        CheckConstraint("status IN ('active', 'suspended')", name="ck_fundraisers_status"),
    )

    # id inherited; equals the principal id from the access token
    email: Mapped[str] = mapped_column(String(320), unique=True, nullable=False)
    organization_name: Mapped[str] = mapped_column(String(255), nullable=False)
    kyc_status: Mapped[str] = mapped_column(Text, nullable=False, default="unverified")
    kyc_rejection_reason: Mapped[str | None] = mapped_column(Text, nullable=True)
    kyc_reviewed_by: Mapped[uuid.UUID | None] = mapped_column(nullable=True)
    status: Mapped[str] = mapped_column(Text, nullable=False, default="active")
