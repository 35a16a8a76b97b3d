"""Creator profiles and their payout preferences."""
import logging
from decimal import Decimal
from typing import Optional

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from dump_billing.config import settings
from dump_billing.exceptions import ConflictError, NotFoundError, ValidationError
from dump_billing.models.creator import Creator
from dump_billing.models.user import User
from dump_billing.services.pricing import ensure_price

logger = logging.getLogger(__name__)


async def get_creator_for_user(db: AsyncSession, user: User) -> Creator:
    result = await db.execute(select(Creator).where(Creator.user_id == user.uuid))
    creator = result.scalar_one_or_none()
    if creator is None:
        raise NotFoundError("Creator profile not found")
    return creator


async def create_creator(
    db: AsyncSession,
    user: User,
    handle: str,
    bio: Optional[str] = None,
    price_usd: float = 0,
) -> Creator:
    """Create the caller's creator profile; a positive price is registered with Stripe."""
    handle = handle.strip().lower()

    existing = await db.execute(select(Creator.uuid).where(Creator.user_id == user.uuid))
    if existing.scalar_one_or_none():
        raise ConflictError("You already have a creator profile")

    taken = await db.execute(select(Creator.uuid).where(Creator.handle == handle))
    if taken.scalar_one_or_none():
        raise ConflictError(f"Handle '{handle}' is already taken")

    if price_usd and Decimal(str(price_usd)) < Decimal(str(settings.MINIMUM_PRICE_USD)):
        raise ValidationError(
            f"price_usd must be at least ${settings.MINIMUM_PRICE_USD:g} for paid subscriptions; "
            "use 0 to make the subscription free"
        )

    creator = Creator(
        handle=handle,
        bio=bio,
        user_id=user.uuid,
        price_usd=Decimal("0"),
        payout_email=user.email,
    )
    db.add(creator)
    try:
        await db.commit()
    except IntegrityError:
        await db.rollback()
        raise ConflictError(f"Handle '{handle}' is already taken")
    await db.refresh(creator)
    logger.info(f"Creator {creator.uuid} created for user {user.uuid} ({handle})")

    if price_usd:
        await ensure_price(db, creator.uuid, price_usd, user)
        await db.refresh(creator)

    return creator


async def update_payout_settings(
    db: AsyncSession,
    user: User,
    payout_method: str,
    payout_email: Optional[str] = None,
) -> Creator:
    if payout_method not in settings.PAYOUT_METHODS:
        raise ValidationError(
            f"Unsupported payout method. Choose one of: {', '.join(settings.PAYOUT_METHODS)}"
        )

    creator = await get_creator_for_user(db, user)
    creator.payout_method = payout_method
    if payout_email is not None:
        creator.payout_email = payout_email or None
    await db.commit()
    await db.refresh(creator)

    logger.info(f"Creator {creator.uuid} payout settings updated ({payout_method})")
    return creator
