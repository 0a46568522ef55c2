"""Capability checks: which principal may perform which action on which row.

Each action maps to the set of roles allowed to perform it. The pseudo-role
``owner`` grants the action to a fundraiser whose id matches the resource's
``fundraiser_id``. State preconditions (e.g. "only approved campaigns can be
self-activated") stay in the workflows.
"""

import uuid
from dataclasses import dataclass

from traceaid.core.exceptions import PermissionDenied

ADMIN = "admin"
FUNDRAISER = "fundraiser"
DONOR = "donor"
OWNER = "owner"

ROLES = frozenset({ADMIN, FUNDRAISER, DONOR})


@dataclass(frozen=True)
class Principal:
    id: uuid.UUID
    role: str
    email: str | None = None

    @property
    def is_admin(self) -> bool:
        return self.role == ADMIN


@dataclass(frozen=True)
class OwnedBy:
    """Stand-in resource for a fundraiser's own collections (wallet, history)."""

    fundraiser_id: uuid.UUID


@dataclass(frozen=True)
class Decision:
    allowed: bool
    reason: str = ""


POLICIES: dict[str, frozenset[str]] = {
    # campaigns
    "campaign.create": frozenset({FUNDRAISER}),
    "campaign.submit": frozenset({OWNER}),
    "campaign.review": frozenset({ADMIN}),
    "campaign.activate": frozenset({ADMIN, OWNER}),
    "campaign.extend": frozenset({OWNER}),
    "campaign.review_extension": frozenset({ADMIN}),
    "campaign.delete": frozenset({OWNER}),
    # fundraisers
    "fundraiser.review_kyc": frozenset({ADMIN}),
    # milestones
    "evidence.upload": frozenset({OWNER}),
    "evidence.submit": frozenset({OWNER}),
    "evidence.review": frozenset({ADMIN}),
    "evidence.list_pending": frozenset({ADMIN}),
    # payouts
    "payout.request": frozenset({OWNER}),
    "payout.create": frozenset({ADMIN}),
    "payout.authorize": frozenset({ADMIN}),
    "payout.reject": frozenset({ADMIN}),
    "payout.list_pending": frozenset({ADMIN}),
    "payout.history": frozenset({ADMIN, OWNER}),
    # wallet
    "wallet.read": frozenset({ADMIN, OWNER}),
    "wallet.update_bank": frozenset({OWNER}),
    # donations
    "donation.initiate": frozenset({DONOR}),
}


def authorize(principal: Principal, action: str, resource: object | None = None) -> Decision:
    """Decide whether ``principal`` may perform ``action`` on ``resource``.

    ``resource`` is any object exposing ``fundraiser_id`` (a row, or a
    stand-in for one that does not exist yet).
    """
    allowed_roles = POLICIES.get(action)
    if allowed_roles is None:
        return Decision(False, f"Unknown action '{action}'")

    if principal.role in allowed_roles:
        return Decision(True)

    if OWNER in allowed_roles and principal.role == FUNDRAISER:
        owner_id = getattr(resource, "fundraiser_id", None)
        if owner_id is not None and owner_id == principal.id:
            return Decision(True)
        return Decision(False, "Only the owning fundraiser can perform this action")

    return Decision(False, f"Role '{principal.role}' cannot perform '{action}'")


def ensure_authorized(principal: Principal, action: str, resource: object | None = None) -> None:
    """Raise ``PermissionDenied`` unless ``authorize`` allows the action."""
    decision = authorize(principal, action, resource)
    if not decision.allowed:
        raise PermissionDenied(decision.reason)
