"""Price registry: maps each creator to the Stripe price subscribers are billed.

Stripe prices are immutable, so every price change mints a new Price object
on the creator's (single, reused) Product and repoints ``stripe_price_id``.
Earlier prices are left orphaned in Stripe; only the current one is billed.
Free creators (price 0) never reach Stripe: ``set_free_pricing`` just clears
the local price reference.
"""
from __future__ import annotations

import logging
from decimal import Decimal, ROUND_HALF_UP
from typing import NamedTuple, Optional

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dump_billing.config import settings
from dump_billing.exceptions import NotFoundError, UpstreamError, ValidationError
from dump_billing.models.creator import Creator
from dump_billing.models.user import User

logger = logging.getLogger(__name__)

# Configure Stripe
stripe.api_key = settings.STRIPE_SECRET_KEY

CENT = Decimal("0.01")


class PriceRegistration(NamedTuple):
    product_id: Optional[str]
    price_id: Optional[str]
    price_usd: Decimal


def to_cents(amount: Decimal) -> int:
    """Dollars to Stripe minor units."""
    return int((amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


async def _lock_owned_creator(db: AsyncSession, creator_id: str, owner: User) -> Creator:
    # Row lock serialises concurrent first-time setups so only one of them
    # sees stripe_product_id empty and creates the product.
    result = await db.execute(
        select(Creator)
        .where(Creator.uuid == creator_id, Creator.user_id == owner.uuid)
        .with_for_update()
    )
    creator = result.scalar_one_or_none()
    if creator is None:
        raise NotFoundError("Creator not found or does not belong to you")
    return creator


async def ensure_price(
    db: AsyncSession,
    creator_id: str,
    price_usd: float | Decimal,
    owner: User,
) -> PriceRegistration:
    """Register ``price_usd`` as the creator's current monthly Stripe price.

    Raises:
        ValidationError: price below ``settings.MINIMUM_PRICE_USD``.
        NotFoundError: creator missing or not owned by ``owner``.
        UpstreamError: Stripe rejected the product or price creation.
    """
    price = Decimal(str(price_usd)).quantize(CENT, rounding=ROUND_HALF_UP)
    if price < Decimal(str(settings.MINIMUM_PRICE_USD)):
        raise ValidationError(
            f"price_usd must be at least ${settings.MINIMUM_PRICE_USD:g} for paid subscriptions; "
            "use 0 to make the subscription free"
        )

    creator = await _lock_owned_creator(db, creator_id, owner)
    display_name = owner.name or creator.handle
    logger.info(f"[PRICE] Registering ${price} for creator {creator.uuid} ({creator.handle})")

    if not creator.stripe_product_id:
        try:
            product = stripe.Product.create(
                name=f"{display_name} - Dump Subscription",
                description=f"Monthly subscription to {display_name}'s Dump library",
                metadata={"creator_id": creator.uuid, "handle": creator.handle},
                idempotency_key=f"creator-product-{creator.uuid}",
            )
        except stripe.StripeError as e:
            logger.error(f"[PRICE] Product creation failed for creator {creator.uuid}: {e}")
            raise UpstreamError(f"Failed to create Stripe product: {str(e)}")
        creator.stripe_product_id = product.id
        logger.info(f"[PRICE] Created Stripe product {product.id} for creator {creator.uuid}")

    try:
        stripe_price = stripe.Price.create(
            product=creator.stripe_product_id,
            unit_amount=to_cents(price),
            currency=settings.STRIPE_CURRENCY,
            recurring={"interval": settings.STRIPE_BILLING_INTERVAL},
            metadata={"creator_id": creator.uuid},
        )
    except stripe.StripeError as e:
        # Keep the product reference so a retry reuses it
        await db.commit()
        logger.error(f"[PRICE] Price creation failed for creator {creator.uuid}: {e}")
        raise UpstreamError(f"Failed to create Stripe price: {str(e)}")

    creator.stripe_price_id = stripe_price.id
    creator.price_usd = price
    await db.commit()
    logger.info(f"[PRICE] Creator {creator.uuid} now billed with price {stripe_price.id}")

    return PriceRegistration(creator.stripe_product_id, stripe_price.id, price)


async def set_free_pricing(db: AsyncSession, creator_id: str, owner: User) -> PriceRegistration:
    """Switch a creator to free. No Stripe calls; the product is kept for later reuse."""
    creator = await _lock_owned_creator(db, creator_id, owner)
    creator.price_usd = Decimal("0")
    creator.stripe_price_id = None
    await db.commit()
    logger.info(f"[PRICE] Creator {creator.uuid} switched to free")
    return PriceRegistration(creator.stripe_product_id, None, Decimal("0"))
