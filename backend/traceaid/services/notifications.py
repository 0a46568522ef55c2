"""Outbound email through an HTTP email API.

Sending happens in a background task after the request's transaction has
committed; a failed send is logged and never affects ledger state.
"""

import logging
import uuid
from dataclasses import dataclass
from decimal import Decimal

import httpx
from fastapi import BackgroundTasks
from sqlalchemy.ext.asyncio import AsyncSession

from traceaid.models.fundraiser import Fundraiser

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Notice:
    to: str
    subject: str
    html: str


class EmailNotifier:
    def __init__(self, api_url: str, api_key: str, sender: str, timeout: float = 10.0):
        self.api_url = api_url
        self.api_key = api_key
        self.sender = sender
        self.timeout = timeout

    @property
    def configured(self) -> bool:
        return bool(self.api_url and self.api_key)

    async def send(self, to: str, subject: str, html: str) -> bool:
        """Send one email. Returns False instead of raising on any failure."""
        if not self.configured:
            logger.info("Email API not configured; dropping %r to %s", subject, to)
            return False

        try:
            async with httpx.AsyncClient(timeout=self.timeout) as client:
                resp = await client.post(
                    self.api_url,
                    json={"from": self.sender, "to": [to], "subject": subject, "html": html},
                    headers={"Authorization": f"Bearer {self.api_key}"},
                )
                resp.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Email %r to %s failed: %s", subject, to, exc)
            return False

        logger.info("Email %r sent to %s", subject, to)
        return True

    async def deliver(self, notice: Notice) -> bool:
        return await self.send(notice.to, notice.subject, notice.html)


def schedule(
    background_tasks: BackgroundTasks,
    notifier: EmailNotifier,
    notice: Notice | None,
) -> None:
    if notice is not None:
        background_tasks.add_task(notifier.deliver, notice)


async def fundraiser_email(db: AsyncSession, fundraiser_id: uuid.UUID) -> str | None:
    fundraiser = await db.get(Fundraiser, fundraiser_id)
    return fundraiser.email if fundraiser is not None else None


# ---------------------------------------------------------------------------
# Message bodies
# ---------------------------------------------------------------------------


def campaign_reviewed(to: str, title: str, approved: bool, remarks: str | None) -> Notice:
    if approved:
        return Notice(
            to,
            "Your campaign has been approved",
            f"<p>Your campaign <b>{title}</b> was approved and can now be activated.</p>",
        )
    return Notice(
        to,
        "Your campaign was not approved",
        f"<p>Your campaign <b>{title}</b> was rejected.</p><p>Reason: {remarks}</p>",
    )


def campaign_activated(to: str, title: str) -> Notice:
    return Notice(to, "Your campaign is live", f"<p><b>{title}</b> is now accepting donations.</p>")


def extension_decided(to: str, title: str, approved: bool, reason: str | None) -> Notice:
    if approved:
        return Notice(
            to,
            "Campaign extension approved",
            f"<p>The extension for <b>{title}</b> was approved.</p>",
        )
    return Notice(
        to,
        "Campaign extension rejected",
        f"<p>The extension for <b>{title}</b> was rejected.</p><p>Reason: {reason}</p>",
    )


def evidence_reviewed(to: str, milestone_title: str, approved: bool, reason: str | None) -> Notice:
    if approved:
        return Notice(
            to,
            "Milestone evidence approved",
            f"<p>Evidence for <b>{milestone_title}</b> was approved. "
            "The tranche has been queued for disbursement.</p>",
        )
    return Notice(
        to,
        "Milestone evidence rejected",
        f"<p>Evidence for <b>{milestone_title}</b> was rejected.</p><p>Reason: {reason}</p>"
        "<p>You can submit new evidence.</p>",
    )


def payout_decided(to: str, amount: Decimal, approved: bool, reason: str | None) -> Notice:
    if approved:
        return Notice(to, "Payout completed", f"<p>A payout of {amount} has been disbursed.</p>")
    return Notice(
        to,
        "Payout rejected",
        f"<p>Your payout of {amount} was rejected and the funds returned to your wallet.</p>"
        f"<p>Reason: {reason}</p>",
    )


def kyc_decided(to: str, verified: bool, reason: str | None) -> Notice:
    if verified:
        return Notice(to, "Verification complete", "<p>Your organization has been verified.</p>")
    return Notice(
        to, "Verification unsuccessful", f"<p>Your verification was rejected.</p><p>{reason}</p>"
    )
