"""Subscription endpoints: paid checkout, free subscribe, listing and cancellation."""
from typing import Optional

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from dump_billing.database import get_db
from dump_billing.models.user import User
from dump_billing.models.subscription import Subscription
from dump_billing.schemas.subscriptions import (
    CheckoutResponse, SubscriptionResponse,
    SubscriptionListResponse, CancelSubscriptionResponse
)
from dump_billing.auth.dependencies import get_current_active_user
from dump_billing.rate_limit import limiter
from dump_billing.services.checkout import start_checkout
from dump_billing.services.subscriptions import cancel_subscription, list_subscriptions, subscribe_free

router = APIRouter()


@router.post("/api/creators/{creator_id}/checkout", response_model=CheckoutResponse)
@limiter.limit("10/minute")
async def create_checkout_session(
    request: Request,
    creator_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Start a Stripe Checkout for a paid creator.

    - Subscribing to yourself is rejected
    - Free creators are subscribed directly, not through checkout
    - An existing active subscription is rejected
    - No subscription row is written until Stripe confirms via webhook
    """
    session = await start_checkout(db, current_user, creator_id)
    return CheckoutResponse(url=session.url, session_id=session.session_id)


@router.post("/api/creators/{creator_id}/subscribe", response_model=SubscriptionResponse, status_code=status.HTTP_201_CREATED)
async def subscribe_to_free_creator(
    creator_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Subscribe to a free creator. No billing is involved."""
    return await subscribe_free(db, current_user, creator_id)


@router.get("/api/users/me/subscriptions", response_model=SubscriptionListResponse)
async def get_my_subscriptions(
    skip: int = Query(0, ge=0),
    limit: int = Query(10, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get current user's subscriptions."""
    count_query = select(func.count(Subscription.uuid)).where(Subscription.subscriber_id == current_user.uuid)
    if status_filter:
        count_query = count_query.where(Subscription.status == status_filter)
    count_result = await db.execute(count_query)
    total = count_result.scalar()

    subscriptions = await list_subscriptions(db, current_user, skip, limit, status_filter)

    return {
        "items": subscriptions,
        "total": total,
        "skip": skip,
        "limit": limit
    }


@router.post("/api/subscriptions/{subscription_id}/cancel", response_model=CancelSubscriptionResponse)
async def cancel_my_subscription(
    subscription_id: str,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Cancel a paid subscription at the end of the current billing period.

    Access continues until the period end date returned here.
    """
    result = await cancel_subscription(db, current_user, subscription_id)
    return CancelSubscriptionResponse(
        success=True,
        message="Subscription will be canceled at the end of the billing period",
        status=result.subscription.status,
        cancel_at=result.effective_date,
    )
