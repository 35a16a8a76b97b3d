"""Pydantic schemas for subscription endpoints."""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class CheckoutResponse(BaseModel):
    """Hosted checkout session the subscriber is redirected to."""
    url: str = Field(..., description="Stripe Checkout redirect URL")
    session_id: str


class SubscriptionResponse(BaseModel):
    """Schema for subscription detail response."""
    uuid: str
    status: str
    subscriber_id: str
    creator_id: str
    stripe_subscription_id: Optional[str] = None
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class SubscriptionListResponse(BaseModel):
    """Schema for paginated subscription list response."""
    items: list[SubscriptionResponse]
    total: int
    skip: int
    limit: int


class CancelSubscriptionResponse(BaseModel):
    """Result of flagging a subscription to cancel at period end."""
    success: bool
    message: str
    status: str
    cancel_at: Optional[datetime] = Field(None, description="When access ends")
