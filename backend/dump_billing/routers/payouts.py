"""Creator payout request endpoints."""
from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from dump_billing.database import get_db
from dump_billing.models.user import User
from dump_billing.models.payout import Payout
from dump_billing.schemas.payouts import PayoutRequest, PayoutRequestResponse, PayoutListResponse
from dump_billing.auth.dependencies import get_current_active_user
from dump_billing.rate_limit import limiter
from dump_billing.services.creators import get_creator_for_user
from dump_billing.services.payouts import request_payout, list_creator_payouts

router = APIRouter()


@router.post("/api/payouts", response_model=PayoutRequestResponse, status_code=status.HTTP_201_CREATED)
@limiter.limit("5/minute")
async def create_payout_request(
    request: Request,
    payout_data: PayoutRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Request a withdrawal of available earnings.

    - Amount must be at least the minimum payout
    - Amount must not exceed the available balance, computed server-side
    - The payout is created as pending and settled by an admin
    """
    payout = await request_payout(
        db,
        current_user,
        payout_data.amount,
        payout_data.payout_method,
        payout_data.payout_details,
    )
    return PayoutRequestResponse(
        success=True,
        payout_id=payout.uuid,
        amount=float(payout.amount),
        status=payout.status,
        message="Payout request submitted. You will receive your payment within 5-7 business days.",
    )


@router.get("/api/payouts", response_model=PayoutListResponse)
async def get_my_payouts(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get the caller's payout history."""
    creator = await get_creator_for_user(db, current_user)

    count_result = await db.execute(
        select(func.count(Payout.uuid)).where(Payout.creator_id == creator.uuid)
    )
    total = count_result.scalar()

    return {
        "items": await list_creator_payouts(db, creator.uuid, skip, limit),
        "total": total,
        "skip": skip,
        "limit": limit
    }
