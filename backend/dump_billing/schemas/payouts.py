"""Schemas for payout endpoints."""
from typing import Literal, Optional
from datetime import datetime
from pydantic import BaseModel, Field


class PayoutRequest(BaseModel):
    """Creator withdrawal request."""

    amount: float = Field(..., gt=0, description="Amount in USD")
    payout_method: str = Field(..., description="One of the supported payout methods")
    payout_details: Optional[dict] = Field(None, description="Destination details, e.g. {'email': ...}")


class PayoutResponse(BaseModel):
    """Schema for a single payout."""

    uuid: str
    creator_id: str
    amount: float
    payout_method: str
    payout_details: Optional[dict] = None
    status: str
    notes: Optional[str] = None
    created_at: datetime
    processed_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PayoutRequestResponse(BaseModel):
    """Response after a payout request is recorded."""

    success: bool = True
    payout_id: str
    amount: float
    status: str
    message: str


class PayoutListResponse(BaseModel):
    """Schema for paginated payout list."""

    items: list[PayoutResponse]
    total: int
    skip: int
    limit: int


class PayoutStatusUpdate(BaseModel):
    """Admin transition of a payout."""

    status: Literal["processing", "completed", "failed"]
    notes: Optional[str] = Field(None, max_length=2000)


class PayoutNotifyRequest(BaseModel):
    """Admin request to email the creator about a settled payout."""

    status: Literal["completed", "failed"]
    notes: Optional[str] = Field(None, max_length=2000)


class PayoutNotifyResponse(BaseModel):
    success: bool
    email_id: Optional[str] = None
