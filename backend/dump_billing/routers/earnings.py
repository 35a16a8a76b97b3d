"""Creator earnings dashboard endpoints."""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select, func

from dump_billing.database import get_db
from dump_billing.models.user import User
from dump_billing.models.earning import Earning
from dump_billing.schemas.earnings import EarningListResponse, EarningsSummaryResponse
from dump_billing.auth.dependencies import get_current_active_user
from dump_billing.services.creators import get_creator_for_user
from dump_billing.services.earnings import earnings_summary

router = APIRouter()


@router.get("/api/creators/me/earnings", response_model=EarningsSummaryResponse)
async def get_my_earnings(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Earnings summary for the caller's creator profile.

    - available_balance: available net earnings minus pending, processing and completed payouts
    - pending_payouts: payouts still being settled
    """
    creator = await get_creator_for_user(db, current_user)
    return await earnings_summary(db, creator.uuid)


@router.get("/api/creators/me/earnings/history", response_model=EarningListResponse)
async def get_my_earnings_history(
    skip: int = Query(0, ge=0),
    limit: int = Query(20, ge=1, le=100),
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """One row per paid invoice, newest first."""
    creator = await get_creator_for_user(db, current_user)

    count_result = await db.execute(
        select(func.count(Earning.uuid)).where(Earning.creator_id == creator.uuid)
    )
    total = count_result.scalar()

    result = await db.execute(
        select(Earning)
        .where(Earning.creator_id == creator.uuid)
        .order_by(Earning.created_at.desc())
        .offset(skip)
        .limit(limit)
    )

    return {
        "items": result.scalars().all(),
        "total": total,
        "skip": skip,
        "limit": limit
    }
