"""Revenue split and balance queries for creator earnings."""
from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from dump_billing.config import settings
from dump_billing.models.earning import Earning
from dump_billing.models.payout import Payout, RESERVED_PAYOUT_STATUSES

CENT = Decimal("0.01")


class RevenueSplit(NamedTuple):
    gross: Decimal
    platform_fee: Decimal
    net: Decimal


def _money(value) -> Decimal:
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def split_invoice_amount(amount_cents: int, fee_rate: float | None = None) -> RevenueSplit:
    """Split a paid invoice (minor units) into gross, platform fee and creator net.

    The fee is rounded to the cent and the net is derived from it, so
    ``net + platform_fee == gross`` always holds exactly.
    """
    rate = Decimal(str(settings.PLATFORM_FEE_RATE if fee_rate is None else fee_rate))
    gross = (Decimal(amount_cents) / 100).quantize(CENT)
    platform_fee = (gross * rate).quantize(CENT, rounding=ROUND_HALF_UP)
    return RevenueSplit(gross, platform_fee, gross - platform_fee)


async def sum_available_earnings(db: AsyncSession, creator_id: str) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(Earning.net_amount), 0)).where(
            Earning.creator_id == creator_id,
            Earning.status == "available",
        )
    )
    return _money(result.scalar())


async def sum_reserved_payouts(db: AsyncSession, creator_id: str) -> Decimal:
    result = await db.execute(
        select(func.coalesce(func.sum(Payout.amount), 0)).where(
            Payout.creator_id == creator_id,
            Payout.status.in_(RESERVED_PAYOUT_STATUSES),
        )
    )
    return _money(result.scalar())


async def available_balance(db: AsyncSession, creator_id: str) -> Decimal:
    """Available earnings minus every payout that is pending, processing or completed."""
    earned = await sum_available_earnings(db, creator_id)
    reserved = await sum_reserved_payouts(db, creator_id)
    return max(earned - reserved, Decimal("0.00"))


async def earnings_summary(db: AsyncSession, creator_id: str) -> dict:
    """Aggregate figures for the creator earnings dashboard."""
    totals = await db.execute(
        select(
            func.coalesce(func.sum(Earning.gross_amount), 0),
            func.coalesce(func.sum(Earning.platform_fee), 0),
            func.coalesce(func.sum(Earning.net_amount), 0),
            func.count(Earning.uuid),
            func.max(Earning.created_at),
        ).where(Earning.creator_id == creator_id)
    )
    gross, fees, net, count, last_payment_at = totals.one()

    payout_rows = await db.execute(
        select(Payout.status, func.coalesce(func.sum(Payout.amount), 0))
        .where(Payout.creator_id == creator_id)
        .group_by(Payout.status)
    )
    by_status = {row[0]: _money(row[1]) for row in payout_rows.all()}

    return {
        "creator_id": creator_id,
        "total_gross": float(_money(gross)),
        "total_fees": float(_money(fees)),
        "total_net": float(_money(net)),
        "available_balance": float(await available_balance(db, creator_id)),
        "pending_payouts": float(by_status.get("pending", Decimal("0")) + by_status.get("processing", Decimal("0"))),
        "paid_out": float(by_status.get("completed", Decimal("0"))),
        "payment_count": count or 0,
        "minimum_payout": settings.MINIMUM_PAYOUT,
        "last_payment_at": last_payment_at,
    }
