"""Subscriber-side subscription actions: free subscribe and cancellation."""
import logging
from datetime import datetime
from typing import NamedTuple, Optional

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dump_billing.config import settings
from dump_billing.exceptions import ConflictError, NotFoundError, UpstreamError, ValidationError
from dump_billing.models.subscription import Subscription
from dump_billing.models.user import User
from dump_billing.services.checkout import get_creator
from dump_billing.services.stripe_events import map_remote_status, subscription_period_end
from dump_billing.services.subscription_state import activate_free_subscription

logger = logging.getLogger(__name__)

# Configure Stripe
stripe.api_key = settings.STRIPE_SECRET_KEY


class CancellationResult(NamedTuple):
    subscription: Subscription
    effective_date: Optional[datetime]


async def subscribe_free(db: AsyncSession, subscriber: User, creator_id: str) -> Subscription:
    """Subscribe to a free creator. No billing calls are made."""
    creator = await get_creator(db, creator_id)

    if creator.user_id == subscriber.uuid:
        raise ConflictError("You cannot subscribe to yourself")

    if not creator.is_free:
        raise ValidationError("This creator requires a paid subscription; start a checkout instead")

    subscription_id = await activate_free_subscription(db, subscriber.uuid, creator.uuid)
    if subscription_id is None:
        existing = await db.execute(
            select(Subscription.status).where(
                Subscription.subscriber_id == subscriber.uuid,
                Subscription.creator_id == creator.uuid,
            )
        )
        if existing.scalar_one_or_none() == "active":
            raise ConflictError("You already have an active subscription to this creator")
        raise ConflictError(
            "You still have a paid subscription to this creator; "
            "update your payment method or cancel it before subscribing for free"
        )

    await db.commit()
    logger.info(f"[SUBSCRIBE] Free subscription {subscription_id}: {subscriber.uuid} -> {creator.uuid}")

    result = await db.execute(
        select(Subscription)
        .where(Subscription.uuid == subscription_id)
        .execution_options(populate_existing=True)
    )
    return result.scalar_one()


async def cancel_subscription(db: AsyncSession, subscriber: User, subscription_id: str) -> CancellationResult:
    """
    Flag a paid subscription to cancel at the end of its billing period.

    Access continues until ``current_period_end``; the webhook reconciler
    records the final cancellation when Stripe deletes the subscription.
    """
    result = await db.execute(
        select(Subscription).where(
            Subscription.uuid == subscription_id,
            Subscription.subscriber_id == subscriber.uuid,
        )
    )
    subscription = result.scalar_one_or_none()

    if subscription is None:
        raise NotFoundError("Subscription not found or does not belong to you")

    if not subscription.stripe_subscription_id:
        raise ValidationError("Only paid subscriptions can be canceled through billing")

    if subscription.status == "canceled":
        raise ConflictError("Subscription is already canceled")

    try:
        remote = stripe.Subscription.modify(
            subscription.stripe_subscription_id,
            cancel_at_period_end=True
        )
    except stripe.StripeError as e:
        logger.error(f"[CANCEL] Stripe error for {subscription.stripe_subscription_id}: {e}")
        raise UpstreamError(f"Stripe error: {str(e)}")

    period_end = subscription_period_end(remote) or subscription.current_period_end
    subscription.status = map_remote_status(remote.get("status"))
    subscription.cancel_at_period_end = bool(remote.get("cancel_at_period_end", True))
    subscription.current_period_end = period_end
    await db.commit()
    await db.refresh(subscription)

    logger.info(f"[CANCEL] Subscription {subscription.uuid} cancels at {period_end}")
    return CancellationResult(subscription, period_end)


async def list_subscriptions(db: AsyncSession, subscriber: User, skip: int, limit: int, status: Optional[str] = None):
    query = select(Subscription).where(Subscription.subscriber_id == subscriber.uuid)
    if status:
        query = query.where(Subscription.status == status)
    result = await db.execute(query.order_by(Subscription.created_at.desc()).offset(skip).limit(limit))
    return result.scalars().all()
