"""Admin endpoints for payout settlement."""
from typing import Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from dump_billing.database import get_db
from dump_billing.models.user import User
from dump_billing.models.payout import Payout
from dump_billing.schemas.payouts import (
    PayoutListResponse, PayoutResponse, PayoutStatusUpdate,
    PayoutNotifyRequest, PayoutNotifyResponse
)
from dump_billing.auth.dependencies import admin_required
from dump_billing.services.email_service import notify_payout_outcome
from dump_billing.services.payouts import list_all_payouts, update_payout_status

router = APIRouter()


@router.get("/payouts", response_model=PayoutListResponse)
async def list_payouts(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    status_filter: Optional[str] = Query(None, alias="status"),
    admin_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """List payout requests across all creators (admin only)."""
    count_query = select(func.count(Payout.uuid))
    if status_filter:
        count_query = count_query.where(Payout.status == status_filter)
    count_result = await db.execute(count_query)
    total = count_result.scalar()

    return {
        "items": await list_all_payouts(db, skip, limit, status_filter),
        "total": total,
        "skip": skip,
        "limit": limit
    }


@router.patch("/payouts/{payout_id}", response_model=PayoutResponse)
async def set_payout_status(
    payout_id: str,
    update_data: PayoutStatusUpdate,
    admin_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """
    Move a payout through settlement (admin only).

    - pending -> processing, completed or failed
    - processing -> completed or failed
    - completed and failed payouts cannot change
    """
    return await update_payout_status(db, payout_id, update_data.status, update_data.notes)


@router.post("/payouts/{payout_id}/notify", response_model=PayoutNotifyResponse)
async def notify_payout(
    payout_id: str,
    notify_data: PayoutNotifyRequest,
    admin_user: User = Depends(admin_required),
    db: AsyncSession = Depends(get_db)
):
    """Email the creator the outcome of a payout (admin only)."""
    email_id = await notify_payout_outcome(db, payout_id, notify_data.status, notify_data.notes)
    return PayoutNotifyResponse(success=True, email_id=email_id)
