"""Checkout initiator: opens a Stripe Checkout Session for a paid subscription.

No local subscription row is written here. The row is created by the webhook
reconciler once Stripe confirms the checkout, from the metadata embedded on
both the session and the subscription it creates.
"""
import logging
from typing import NamedTuple

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dump_billing.config import settings
from dump_billing.exceptions import ConflictError, NotFoundError, UpstreamError, ValidationError
from dump_billing.models.creator import Creator
from dump_billing.models.subscription import Subscription
from dump_billing.models.user import User

logger = logging.getLogger(__name__)

# Configure Stripe
stripe.api_key = settings.STRIPE_SECRET_KEY


class CheckoutSession(NamedTuple):
    url: str
    session_id: str


async def get_creator(db: AsyncSession, creator_id: str) -> Creator:
    result = await db.execute(select(Creator).where(Creator.uuid == creator_id))
    creator = result.scalar_one_or_none()
    if creator is None:
        raise NotFoundError("Creator not found")
    return creator


async def has_active_subscription(db: AsyncSession, subscriber_id: str, creator_id: str) -> bool:
    result = await db.execute(
        select(Subscription.uuid).where(
            Subscription.subscriber_id == subscriber_id,
            Subscription.creator_id == creator_id,
            Subscription.status == "active",
        )
    )
    return result.scalar_one_or_none() is not None


def find_customer_id(email: str) -> str | None:
    """Reuse the Stripe customer already registered for ``email``, if any."""
    customers = stripe.Customer.list(email=email, limit=1)
    if customers.data:
        return customers.data[0].id
    return None


async def start_checkout(db: AsyncSession, subscriber: User, creator_id: str) -> CheckoutSession:
    """
    Create a hosted checkout for ``subscriber`` against the creator's current price.

    - Rejects subscribing to yourself (regardless of the creator's price)
    - Requires the creator to have a Stripe price (free creators subscribe directly)
    - Rejects a second active subscription to the same creator
    - Embeds {subscriber_id, creator_id} on the session and the subscription
    """
    creator = await get_creator(db, creator_id)
    logger.info(f"[CHECKOUT] Subscriber {subscriber.uuid} -> creator {creator.uuid} ({creator.handle})")

    if creator.user_id == subscriber.uuid:
        raise ConflictError("You cannot subscribe to yourself")

    if not creator.stripe_price_id:
        raise ValidationError("Creator has not set up paid pricing; free creators are subscribed directly")

    if await has_active_subscription(db, subscriber.uuid, creator.uuid):
        raise ConflictError("You already have an active subscription to this creator")

    metadata = {"subscriber_id": subscriber.uuid, "creator_id": creator.uuid}

    try:
        customer_id = find_customer_id(subscriber.email)
        if customer_id:
            customer_params = {"customer": customer_id}
        else:
            customer_params = {"customer_email": subscriber.email}

        session = stripe.checkout.Session.create(
            mode="subscription",
            line_items=[{"price": creator.stripe_price_id, "quantity": 1}],
            success_url=f"{settings.FRONTEND_URL}/subscriptions?success=1&creator={creator.handle}",
            cancel_url=f"{settings.FRONTEND_URL}/creator/{creator.handle}",
            metadata=metadata,
            subscription_data={"metadata": metadata},
            **customer_params,
        )
    except stripe.StripeError as e:
        logger.error(f"[CHECKOUT] Stripe error for creator {creator.uuid}: {e}")
        raise UpstreamError(f"Failed to create checkout session: {str(e)}")

    logger.info(f"[CHECKOUT] Session {session.id} created (customer={customer_id or 'new'})")
    return CheckoutSession(url=session.url, session_id=session.id)
