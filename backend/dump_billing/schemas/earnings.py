"""Schemas for creator earnings endpoints."""
from typing import Optional
from datetime import datetime
from pydantic import BaseModel


class EarningResponse(BaseModel):
    """Schema for a single earning record."""

    uuid: str
    subscriber_id: str
    subscription_id: str
    gross_amount: float
    platform_fee: float
    net_amount: float
    status: str
    stripe_invoice_id: str
    created_at: datetime

    class Config:
        from_attributes = True


class EarningListResponse(BaseModel):
    items: list[EarningResponse]
    total: int
    skip: int
    limit: int


class EarningsSummaryResponse(BaseModel):
    """Creator earnings dashboard, all amounts in dollars."""

    creator_id: str
    total_gross: float
    total_fees: float
    total_net: float
    available_balance: float
    pending_payouts: float
    paid_out: float
    payment_count: int
    minimum_payout: float
    last_payment_at: Optional[datetime] = None
