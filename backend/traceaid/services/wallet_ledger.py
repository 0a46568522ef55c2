"""Fundraiser wallet and its append-only transaction ledger.

Every balance mutation is a single conditional ``UPDATE`` on the wallet row
paired with one ledger entry, inside the caller's transaction:

* ``credit``   donation settled, ``available += amount``
* ``debit``    payout reserved, ``available -= amount`` only if it stays >= 0
* ``reversal`` payout rejected, ``available += amount``

``total_withdrawn`` moves when a reserved payout is marked paid, so at any
point ``sum(credits) == available + reserved + total_withdrawn``.
"""

import logging
import uuid
from decimal import Decimal

from sqlalchemy import case, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from traceaid.core.exceptions import InsufficientFunds
from traceaid.db.base import utcnow
from traceaid.models.campaign import Campaign
from traceaid.models.payout import OUTSTANDING_PAYOUT_STATUSES, Payout
from traceaid.models.wallet import FundraiserWallet, WalletTransaction
from traceaid.services.milestone_progress import to_money

logger = logging.getLogger(__name__)

CREDIT = "credit"
DEBIT = "debit"
REVERSAL = "reversal"

TRANSACTION_TYPES = (CREDIT, DEBIT, REVERSAL)

RECENT_TRANSACTIONS = 10


def _insert_ignoring_conflicts(dialect_name: str):  # type: ignore[no-untyped-def]
    if dialect_name == "postgresql":
        from sqlalchemy.dialects.postgresql import insert
    elif dialect_name == "sqlite":
        from sqlalchemy.dialects.sqlite import insert
    else:
        return None
    return insert


async def ensure_wallet(db: AsyncSession, fundraiser_id: uuid.UUID) -> FundraiserWallet:
    """Create the wallet if missing, then return it row-locked."""
    insert = _insert_ignoring_conflicts(db.get_bind().dialect.name)
    if insert is not None:
        await db.execute(
            insert(FundraiserWallet)
            .values(
                id=uuid.uuid4(),
                fundraiser_id=fundraiser_id,
                available_balance=Decimal("0"),
                total_withdrawn=Decimal("0"),
                created_at=utcnow(),
            )
            .on_conflict_do_nothing(index_elements=["fundraiser_id"])
        )

    result = await db.execute(
        select(FundraiserWallet)
        .where(FundraiserWallet.fundraiser_id == fundraiser_id)
        .with_for_update()
        .execution_options(populate_existing=True)
    )
    wallet = result.scalar_one_or_none()
    if wallet is None:
        wallet = FundraiserWallet(fundraiser_id=fundraiser_id)
        db.add(wallet)
        await db.flush()
    return wallet


async def get_wallet(db: AsyncSession, fundraiser_id: uuid.UUID) -> FundraiserWallet | None:
    result = await db.execute(
        select(FundraiserWallet)
        .where(FundraiserWallet.fundraiser_id == fundraiser_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one_or_none()


def _entry(
    wallet: FundraiserWallet,
    campaign_id: uuid.UUID,
    type_: str,
    source: str,
    amount: Decimal,
    reference: str,
    note: str | None,
) -> WalletTransaction:
    return WalletTransaction(
        wallet_id=wallet.id,
        fundraiser_id=wallet.fundraiser_id,
        campaign_id=campaign_id,
        type=type_,
        source=source,
        amount=amount,
        reference=reference,
        note=note,
    )


async def credit(
    db: AsyncSession,
    wallet: FundraiserWallet,
    campaign_id: uuid.UUID,
    amount: Decimal,
    reference: str,
    note: str | None = None,
) -> WalletTransaction:
    await db.execute(
        update(FundraiserWallet)
        .where(FundraiserWallet.id == wallet.id)
        .values(available_balance=FundraiserWallet.available_balance + amount)
        .execution_options(synchronize_session=False)
    )
    entry = _entry(wallet, campaign_id, CREDIT, "donation", amount, reference, note)
    db.add(entry)
    await db.flush()
    await db.refresh(wallet)
    return entry


async def debit(
    db: AsyncSession,
    wallet: FundraiserWallet,
    campaign_id: uuid.UUID,
    amount: Decimal,
    reference: str,
    note: str | None = None,
) -> WalletTransaction:
    """Take ``amount`` out of the available balance or raise ``InsufficientFunds``."""
    result = await db.execute(
        update(FundraiserWallet)
        .where(
            FundraiserWallet.id == wallet.id,
            FundraiserWallet.available_balance >= amount,
        )
        .values(available_balance=FundraiserWallet.available_balance - amount)
        .execution_options(synchronize_session=False)
    )
    if result.rowcount == 0:
        raise InsufficientFunds(
            "Insufficient wallet balance",
            {"available_balance": to_money(wallet.available_balance), "requested": amount},
        )
    entry = _entry(wallet, campaign_id, DEBIT, "payout", amount, reference, note)
    db.add(entry)
    await db.flush()
    await db.refresh(wallet)
    return entry


async def reverse_debit(
    db: AsyncSession,
    wallet: FundraiserWallet,
    payout: Payout,
    note: str | None = None,
) -> WalletTransaction:
    """Return a rejected payout's reservation to the available balance."""
    await db.execute(
        update(FundraiserWallet)
        .where(FundraiserWallet.id == wallet.id)
        .values(available_balance=FundraiserWallet.available_balance + payout.amount)
        .execution_options(synchronize_session=False)
    )
    entry = _entry(
        wallet,
        payout.campaign_id,
        REVERSAL,
        "payout_reversal",
        payout.amount,
        payout.reference,
        note,
    )
    db.add(entry)
    await db.flush()
    await db.refresh(wallet)
    return entry


async def finalize_withdrawal(
    db: AsyncSession, wallet: FundraiserWallet, amount: Decimal
) -> None:
    await db.execute(
        update(FundraiserWallet)
        .where(FundraiserWallet.id == wallet.id)
        .values(total_withdrawn=FundraiserWallet.total_withdrawn + amount)
        .execution_options(synchronize_session=False)
    )
    await db.refresh(wallet)


# ---------------------------------------------------------------------------
# Balances
# ---------------------------------------------------------------------------


def _signed_amount():  # type: ignore[no-untyped-def]
    return case(
        (WalletTransaction.type == DEBIT, -WalletTransaction.amount),
        else_=WalletTransaction.amount,
    )


async def campaign_balance(db: AsyncSession, campaign_id: uuid.UUID) -> Decimal:
    """credits - debits + reversals recorded against one campaign."""
    result = await db.execute(
        select(func.coalesce(func.sum(_signed_amount()), 0)).where(
            WalletTransaction.campaign_id == campaign_id
        )
    )
    return to_money(result.scalar_one())


async def reserved_amount(db: AsyncSession, fundraiser_id: uuid.UUID) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(Payout.amount), 0)).where(
            Payout.fundraiser_id == fundraiser_id,
            Payout.status.in_(OUTSTANDING_PAYOUT_STATUSES),
        )
    )
    return to_money(result.scalar_one())


async def total_credited(db: AsyncSession, fundraiser_id: uuid.UUID) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(WalletTransaction.amount), 0)).where(
            WalletTransaction.fundraiser_id == fundraiser_id,
            WalletTransaction.type == CREDIT,
        )
    )
    return to_money(result.scalar_one())


async def list_transactions(
    db: AsyncSession,
    fundraiser_id: uuid.UUID,
    campaign_id: uuid.UUID | None = None,
    type_: str | None = None,
    limit: int = 50,
) -> list[WalletTransaction]:
    stmt = (
        select(WalletTransaction)
        .where(WalletTransaction.fundraiser_id == fundraiser_id)
        .order_by(WalletTransaction.created_at.desc(), WalletTransaction.id.desc())
        .limit(limit)
    )
    if campaign_id is not None:
        stmt = stmt.where(WalletTransaction.campaign_id == campaign_id)
    if type_ is not None:
        stmt = stmt.where(WalletTransaction.type == type_)
    result = await db.execute(stmt)
    return list(result.scalars().all())


async def wallet_summary(db: AsyncSession, fundraiser_id: uuid.UUID) -> dict:
    """Aggregate balances plus a per-campaign breakdown of the ledger."""
    wallet = await get_wallet(db, fundraiser_id)

    result = await db.execute(
        select(
            WalletTransaction.campaign_id,
            WalletTransaction.type,
            func.sum(WalletTransaction.amount),
        )
        .where(WalletTransaction.fundraiser_id == fundraiser_id)
        .group_by(WalletTransaction.campaign_id, WalletTransaction.type)
    )
    per_campaign: dict[uuid.UUID, dict[str, Decimal]] = {}
    for campaign_id, type_, total in result.all():
        per_campaign.setdefault(campaign_id, {t: Decimal("0.00") for t in TRANSACTION_TYPES})
        per_campaign[campaign_id][type_] = to_money(total)

    titles: dict[uuid.UUID, str] = {}
    if per_campaign:
        rows = await db.execute(
            select(Campaign.id, Campaign.title).where(Campaign.id.in_(list(per_campaign)))
        )
        titles = dict(rows.all())

    campaigns = []
    for campaign_id, totals in per_campaign.items():
        campaigns.append(
            {
                "campaign_id": campaign_id,
                "title": titles.get(campaign_id),
                "credited": totals[CREDIT],
                "debited": totals[DEBIT],
                "reversed": totals[REVERSAL],
                "balance": totals[CREDIT] - totals[DEBIT] + totals[REVERSAL],
            }
        )
    campaigns.sort(key=lambda c: c["title"] or "")

    return {
        "fundraiser_id": fundraiser_id,
        "available_balance": to_money(wallet.available_balance if wallet else None),
        "total_withdrawn": to_money(wallet.total_withdrawn if wallet else None),
        "reserved": await reserved_amount(db, fundraiser_id),
        "total_credited": await total_credited(db, fundraiser_id),
        "bank_account": _bank_account(wallet),
        "campaigns": campaigns,
        "recent_transactions": await list_transactions(
            db, fundraiser_id, limit=RECENT_TRANSACTIONS
        ),
    }


def _bank_account(wallet: FundraiserWallet | None) -> dict | None:
    if wallet is None or not wallet.payout_account_number:
        return None
    return {
        "bank_name": wallet.payout_bank_name,
        "bank_code": wallet.payout_bank_code,
        "account_number": wallet.payout_account_number,
        "account_name": wallet.payout_account_name,
    }


async def set_bank_account(
    db: AsyncSession,
    fundraiser_id: uuid.UUID,
    bank_name: str,
    bank_code: str,
    account_number: str,
    account_name: str,
) -> FundraiserWallet:
    wallet = await ensure_wallet(db, fundraiser_id)
    wallet.payout_bank_name = bank_name
    wallet.payout_bank_code = bank_code
    wallet.payout_account_number = account_number
    wallet.payout_account_name = account_name
    await db.flush()
    logger.info("Payout bank account set for fundraiser %s (%s)", fundraiser_id, bank_code)
    return wallet
