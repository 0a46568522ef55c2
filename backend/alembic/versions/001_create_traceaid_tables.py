"""Create fundraiser, campaign, milestone, wallet, payout and donation tables

Revision ID: 001
Revises:
Create Date: 2026-10-19

"""

from typing import Sequence, Union

import sqlalchemy as sa
from alembic import op
from sqlalchemy.dialects import postgresql

revision: str = "001"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def _id_column() -> sa.Column:
    return sa.Column(
        "id",
        sa.UUID(),
        server_default=sa.text("gen_random_uuid()"),
        primary_key=True,
    )


def _timestamps() -> list[sa.Column]:
    return [
        sa.Column(
            "created_at",
            sa.DateTime(timezone=True),
            nullable=False,
            server_default=sa.text("now()"),
        ),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=True),
    ]


def _fundraiser_fk() -> sa.Column:
    return sa.Column(
        "fundraiser_id", sa.UUID(), sa.ForeignKey("fundraisers.id"), nullable=False
    )


def upgrade() -> None:
    # --- fundraisers ---
    op.create_table(
        "fundraisers",
        _id_column(),
        sa.Column("email", sa.String(320), nullable=False, unique=True),
        sa.Column("organization_name", sa.String(255), nullable=False),
        sa.Column("kyc_status", sa.Text(), nullable=False, server_default="unverified"),
        sa.Column("kyc_rejection_reason", sa.Text(), nullable=True),
        sa.Column("kyc_reviewed_by", sa.UUID(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="active"),
        *_timestamps(),
        sa.CheckConstraint(
            "kyc_status IN ('unverified', 'pending', 'verified', 'rejected')",
            name="ck_fundraisers_kyc_status",
        ),
        sa.CheckConstraint("status IN ('active', 'suspended')", name="ck_fundraisers_status"),
    )

    # --- campaigns ---
    op.create_table(
        "campaigns",
        _id_column(),
        _fundraiser_fk(),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column("category", sa.Text(), nullable=False),
        sa.Column("goal_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("amount_raised", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("currency", sa.String(3), nullable=False, server_default="NGN"),
        sa.Column("duration_days", sa.Integer(), nullable=False),
        sa.Column("cover_url", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("is_active", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("start_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("end_date", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("reviewed_by", sa.UUID(), nullable=True),
        sa.Column("donor_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("like_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("save_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("share_count", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("is_deleted", sa.Boolean(), nullable=False, server_default="false"),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('draft', 'pending', 'approved', 'active', 'completed', 'rejected')",
            name="ck_campaigns_status",
        ),
        sa.CheckConstraint(
            "category IN ('Health', 'Education', 'Community', 'Environment', 'Others')",
            name="ck_campaigns_category",
        ),
        sa.CheckConstraint("goal_amount > 0", name="ck_campaigns_goal_positive"),
        sa.CheckConstraint("amount_raised >= 0", name="ck_campaigns_raised_non_negative"),
        sa.CheckConstraint("duration_days > 0", name="ck_campaigns_duration_positive"),
    )
    op.create_index("ix_campaigns_fundraiser_id", "campaigns", ["fundraiser_id"])
    op.create_index("ix_campaigns_status", "campaigns", ["status"])

    # --- campaign_extension_requests ---
    op.create_table(
        "campaign_extension_requests",
        _id_column(),
        sa.Column("campaign_id", sa.UUID(), sa.ForeignKey("campaigns.id"), nullable=False),
        sa.Column("days", sa.Integer(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("reviewed_by", sa.UUID(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_campaign_extension_requests_status",
        ),
        sa.CheckConstraint("days > 0", name="ck_campaign_extension_requests_days_positive"),
    )
    op.create_index(
        "ix_campaign_extension_requests_campaign_id",
        "campaign_extension_requests",
        ["campaign_id"],
    )

    # --- milestones ---
    op.create_table(
        "milestones",
        _id_column(),
        _fundraiser_fk(),
        sa.Column("campaign_id", sa.UUID(), sa.ForeignKey("campaigns.id"), nullable=False),
        sa.Column("sequence", sa.Integer(), nullable=False),
        sa.Column("title", sa.String(255), nullable=False),
        sa.Column("description", sa.Text(), nullable=True),
        sa.Column("target_amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("released_amount", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column(
            "evidence_approval_status", sa.Text(), nullable=False, server_default="required"
        ),
        sa.Column("evidence_id", sa.UUID(), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("completed_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("campaign_id", "sequence", name="uq_milestones_campaign_sequence"),
        sa.CheckConstraint("sequence BETWEEN 1 AND 3", name="ck_milestones_sequence"),
        sa.CheckConstraint(
            "status IN ('pending', 'on_going', 'ready_for_release', 'completed')",
            name="ck_milestones_status",
        ),
        sa.CheckConstraint(
            "evidence_approval_status IN ('required', 'submitted', 'approved', 'rejected')",
            name="ck_milestones_evidence_approval_status",
        ),
        sa.CheckConstraint("target_amount >= 0", name="ck_milestones_target_non_negative"),
        sa.CheckConstraint(
            "released_amount >= 0 AND released_amount <= target_amount",
            name="ck_milestones_released_within_target",
        ),
    )
    op.create_index("ix_milestones_fundraiser_id", "milestones", ["fundraiser_id"])
    op.create_index("ix_milestones_campaign_id", "milestones", ["campaign_id"])

    # --- milestone_evidence ---
    op.create_table(
        "milestone_evidence",
        _id_column(),
        _fundraiser_fk(),
        sa.Column("campaign_id", sa.UUID(), sa.ForeignKey("campaigns.id"), nullable=False),
        sa.Column("milestone_id", sa.UUID(), sa.ForeignKey("milestones.id"), nullable=False),
        sa.Column("description", sa.Text(), nullable=False),
        sa.Column(
            "uploads",
            postgresql.JSONB(),
            nullable=False,
            server_default=sa.text("'[]'::jsonb"),
        ),
        sa.Column("status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("reviewed_by", sa.UUID(), nullable=True),
        sa.Column("reviewed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('pending', 'approved', 'rejected')",
            name="ck_milestone_evidence_status",
        ),
    )
    op.create_index("ix_milestone_evidence_fundraiser_id", "milestone_evidence", ["fundraiser_id"])
    op.create_index("ix_milestone_evidence_campaign_id", "milestone_evidence", ["campaign_id"])
    op.create_index("ix_milestone_evidence_milestone_id", "milestone_evidence", ["milestone_id"])
    op.create_index("ix_milestone_evidence_status", "milestone_evidence", ["status"])

    # --- fundraiser_wallets ---
    op.create_table(
        "fundraiser_wallets",
        _id_column(),
        _fundraiser_fk(),
        sa.Column("available_balance", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("total_withdrawn", sa.Numeric(14, 2), nullable=False, server_default="0"),
        sa.Column("payout_bank_name", sa.Text(), nullable=True),
        sa.Column("payout_bank_code", sa.String(16), nullable=True),
        sa.Column("payout_account_number", sa.String(32), nullable=True),
        sa.Column("payout_account_name", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("fundraiser_id", name="uq_fundraiser_wallets_fundraiser"),
        sa.CheckConstraint("available_balance >= 0", name="ck_fundraiser_wallets_balance"),
        sa.CheckConstraint("total_withdrawn >= 0", name="ck_fundraiser_wallets_withdrawn"),
    )
    op.create_index("ix_fundraiser_wallets_fundraiser_id", "fundraiser_wallets", ["fundraiser_id"])

    # --- wallet_transactions (append-only) ---
    op.create_table(
        "wallet_transactions",
        _id_column(),
        _fundraiser_fk(),
        sa.Column(
            "wallet_id", sa.UUID(), sa.ForeignKey("fundraiser_wallets.id"), nullable=False
        ),
        sa.Column("campaign_id", sa.UUID(), sa.ForeignKey("campaigns.id"), nullable=False),
        sa.Column("type", sa.Text(), nullable=False),
        sa.Column("source", sa.Text(), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("reference", sa.Text(), nullable=False),
        sa.Column("note", sa.Text(), nullable=True),
        *_timestamps(),
        sa.UniqueConstraint("type", "reference", name="uq_wallet_transactions_type_reference"),
        sa.CheckConstraint(
            "type IN ('credit', 'debit', 'reversal')", name="ck_wallet_transactions_type"
        ),
        sa.CheckConstraint(
            "source IN ('donation', 'payout', 'payout_reversal')",
            name="ck_wallet_transactions_source",
        ),
        sa.CheckConstraint("amount > 0", name="ck_wallet_transactions_amount_positive"),
    )
    op.create_index(
        "ix_wallet_transactions_fundraiser_id", "wallet_transactions", ["fundraiser_id"]
    )
    op.create_index("ix_wallet_transactions_wallet_id", "wallet_transactions", ["wallet_id"])
    op.create_index("ix_wallet_transactions_campaign_id", "wallet_transactions", ["campaign_id"])

    # --- payouts ---
    op.create_table(
        "payouts",
        _id_column(),
        _fundraiser_fk(),
        sa.Column("campaign_id", sa.UUID(), sa.ForeignKey("campaigns.id"), nullable=False),
        sa.Column("milestone_id", sa.UUID(), sa.ForeignKey("milestones.id"), nullable=True),
        sa.Column("reference", sa.Text(), nullable=False, unique=True),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("status", sa.Text(), nullable=False),
        sa.Column("requested_by", sa.UUID(), nullable=False),
        sa.Column("processed_by", sa.UUID(), nullable=True),
        sa.Column("processed_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("transaction_reference", sa.Text(), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("note", sa.Text(), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "status IN ('requested', 'processing', 'paid', 'rejected')",
            name="ck_payouts_status",
        ),
        sa.CheckConstraint("amount > 0", name="ck_payouts_amount_positive"),
    )
    op.create_index("ix_payouts_fundraiser_id", "payouts", ["fundraiser_id"])
    op.create_index("ix_payouts_campaign_id", "payouts", ["campaign_id"])
    op.create_index("ix_payouts_milestone_id", "payouts", ["milestone_id"])
    op.create_index("ix_payouts_status", "payouts", ["status"])
    # At most one requested/processing payout per fundraiser.
    op.create_index(
        "uq_payouts_one_outstanding_per_fundraiser",
        "payouts",
        ["fundraiser_id"],
        unique=True,
        postgresql_where=sa.text("status IN ('requested', 'processing')"),
    )

    # --- donations ---
    op.create_table(
        "donations",
        _id_column(),
        _fundraiser_fk(),
        sa.Column("donor_id", sa.UUID(), nullable=False),
        sa.Column("campaign_id", sa.UUID(), sa.ForeignKey("campaigns.id"), nullable=False),
        sa.Column("amount", sa.Numeric(14, 2), nullable=False),
        sa.Column("currency", sa.String(3), nullable=False, server_default="NGN"),
        sa.Column("payment_reference", sa.Text(), nullable=False, unique=True),
        sa.Column("transaction_id", sa.Text(), nullable=True),
        sa.Column("payment_status", sa.Text(), nullable=False, server_default="pending"),
        sa.Column("is_anonymous", sa.Boolean(), nullable=False, server_default="false"),
        sa.Column("message", sa.Text(), nullable=True),
        sa.Column("verified_at", sa.DateTime(timezone=True), nullable=True),
        *_timestamps(),
        sa.CheckConstraint(
            "payment_status IN ('pending', 'successful', 'failed')",
            name="ck_donations_payment_status",
        ),
        sa.CheckConstraint("amount > 0", name="ck_donations_amount_positive"),
    )
    op.create_index("ix_donations_fundraiser_id", "donations", ["fundraiser_id"])
    op.create_index("ix_donations_donor_id", "donations", ["donor_id"])
    op.create_index("ix_donations_campaign_id", "donations", ["campaign_id"])


def downgrade() -> None:
    op.drop_table("donations")
    op.drop_index("uq_payouts_one_outstanding_per_fundraiser", table_name="payouts")
    op.drop_table("payouts")
    op.drop_table("wallet_transactions")
    op.drop_table("fundraiser_wallets")
    op.drop_table("milestone_evidence")
    op.drop_table("milestones")
    op.drop_table("campaign_extension_requests")
    op.drop_table("campaigns")
    op.drop_table("fundraisers")
