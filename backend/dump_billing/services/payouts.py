"""Creator payout requests and their admin settlement."""
import logging
from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dump_billing.config import settings
from dump_billing.exceptions import (
    ConflictError,
    InsufficientBalanceError,
    NotFoundError,
    ValidationError,
)
from dump_billing.models.creator import Creator
from dump_billing.models.payout import Payout, TERMINAL_PAYOUT_STATUSES
from dump_billing.models.user import User
from dump_billing.services.earnings import CENT, available_balance

logger = logging.getLogger(__name__)

# Admin settlement: allowed next states for each non-terminal status
PAYOUT_TRANSITIONS = {
    "pending": ("processing", "completed", "failed"),
    "processing": ("completed", "failed"),
}


def resolve_destination(creator: Creator, payout_details: Optional[dict]) -> dict:
    """Destination for the payout: request details, else the creator's saved settings."""
    details = dict(payout_details or creator.payout_details or {})
    if not details.get("email") and creator.payout_email:
        details["email"] = creator.payout_email
    if not details.get("email"):
        raise ValidationError("A payout email is required; add one to your payout settings")
    return details


async def request_payout(
    db: AsyncSession,
    user: User,
    amount: float,
    payout_method: str,
    payout_details: Optional[dict] = None,
) -> Payout:
    """
    Record a pending withdrawal for the caller's creator profile.

    - amount must be at least MINIMUM_PAYOUT
    - payout_method must be one of PAYOUT_METHODS
    - amount must not exceed the available balance, recomputed here with the
      creator row locked so concurrent requests cannot spend the same funds
    """
    value = Decimal(str(amount)).quantize(CENT, rounding=ROUND_HALF_UP)
    logger.info(f"[PAYOUT] User {user.uuid} requests ${value} via {payout_method}")

    if value < Decimal(str(settings.MINIMUM_PAYOUT)):
        raise ValidationError(f"Minimum payout amount is ${settings.MINIMUM_PAYOUT:g}")

    if payout_method not in settings.PAYOUT_METHODS:
        raise ValidationError(
            f"Unsupported payout method. Choose one of: {', '.join(settings.PAYOUT_METHODS)}"
        )

    result = await db.execute(
        select(Creator).where(Creator.user_id == user.uuid).with_for_update()
    )
    creator = result.scalar_one_or_none()
    if creator is None:
        raise NotFoundError("Creator profile not found")

    destination = resolve_destination(creator, payout_details)

    balance = await available_balance(db, creator.uuid)
    logger.info(f"[PAYOUT] Creator {creator.uuid} available balance ${balance}")
    if value > balance:
        raise InsufficientBalanceError(f"Insufficient balance. Available: ${balance:.2f}")

    payout = Payout(
        creator_id=creator.uuid,
        amount=value,
        payout_method=payout_method,
        payout_details=destination,
        status="pending",
    )
    db.add(payout)
    await db.commit()
    await db.refresh(payout)

    logger.info(f"[PAYOUT] Payout {payout.uuid} created for creator {creator.uuid}: ${value}")
    return payout


async def get_payout(db: AsyncSession, payout_id: str, lock: bool = False) -> Payout:
    query = select(Payout).where(Payout.uuid == payout_id)
    if lock:
        query = query.with_for_update()
    result = await db.execute(query)
    payout = result.scalar_one_or_none()
    if payout is None:
        raise NotFoundError("Payout not found")
    return payout


async def update_payout_status(
    db: AsyncSession,
    payout_id: str,
    status: str,
    notes: Optional[str] = None,
) -> Payout:
    """Admin transition. ``processed_at`` is stamped when the payout settles."""
    payout = await get_payout(db, payout_id, lock=True)

    if status not in PAYOUT_TRANSITIONS.get(payout.status, ()):
        raise ConflictError(f"Cannot move payout from {payout.status} to {status}")

    previous = payout.status
    payout.status = status
    if notes is not None:
        payout.notes = notes
    if status in TERMINAL_PAYOUT_STATUSES:
        payout.processed_at = datetime.utcnow()

    await db.commit()
    await db.refresh(payout)

    logger.info(f"[PAYOUT] Payout {payout.uuid}: {previous} -> {status}")
    return payout


async def list_creator_payouts(db: AsyncSession, creator_id: str, skip: int, limit: int):
    result = await db.execute(
        select(Payout)
        .where(Payout.creator_id == creator_id)
        .order_by(Payout.created_at.desc())
        .offset(skip)
        .limit(limit)
    )
    return result.scalars().all()


async def list_all_payouts(db: AsyncSession, skip: int, limit: int, status: Optional[str] = None):
    query = select(Payout)
    if status:
        query = query.where(Payout.status == status)
    result = await db.execute(query.order_by(Payout.created_at.desc()).offset(skip).limit(limit))
    return result.scalars().all()
