"""Pydantic schemas for creator profile and pricing endpoints."""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel, Field


class CreatorCreateRequest(BaseModel):
    """Schema for creating the caller's creator profile."""
    handle: str = Field(..., min_length=2, max_length=64, pattern=r"^[A-Za-z0-9_.-]+$")
    bio: Optional[str] = Field(None, max_length=2000)
    price_usd: float = Field(0, ge=0, description="Monthly price in USD; 0 means free")


class CreatorResponse(BaseModel):
    """Schema for creator detail response."""
    uuid: str
    handle: str
    bio: Optional[str] = None
    user_id: str
    price_usd: Optional[float] = None
    stripe_product_id: Optional[str] = None
    stripe_price_id: Optional[str] = None
    payout_method: Optional[str] = None
    payout_email: Optional[str] = None
    is_active: bool
    created_at: datetime

    class Config:
        from_attributes = True


class PriceUpdateRequest(BaseModel):
    """Set a creator's monthly price. 0 switches the creator to free."""
    price_usd: float = Field(..., ge=0, description="Monthly price in USD")


class PriceResponse(BaseModel):
    """Stripe references backing the creator's current price."""
    creator_id: str
    price_usd: float
    stripe_product_id: Optional[str] = None
    stripe_price_id: Optional[str] = None


class PayoutSettingsRequest(BaseModel):
    """Creator's default payout destination."""
    payout_method: str = Field(..., min_length=1)
    payout_email: Optional[str] = Field(None, max_length=255)
