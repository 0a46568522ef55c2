from traceaid.models.campaign import Campaign, CampaignExtensionRequest
from traceaid.models.donation import Donation
from traceaid.models.fundraiser import Fundraiser
from traceaid.models.milestone import Milestone, MilestoneEvidence
from traceaid.models.payout import Payout
from traceaid.models.wallet import FundraiserWallet, WalletTransaction

__all__ = [
    "Campaign",
    "CampaignExtensionRequest",
    "Donation",
    "Fundraiser",
    "FundraiserWallet",
    "Milestone",
    "MilestoneEvidence",
    "Payout",
    "WalletTransaction",
]
