"""Creator profile and pricing endpoints."""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from dump_billing.database import get_db
from dump_billing.models.user import User
from dump_billing.schemas.creators import (
    CreatorCreateRequest, CreatorResponse, PriceUpdateRequest,
    PriceResponse, PayoutSettingsRequest
)
from dump_billing.auth.dependencies import get_current_active_user
from dump_billing.services.creators import create_creator, get_creator_for_user, update_payout_settings
from dump_billing.services.pricing import ensure_price, set_free_pricing

router = APIRouter()


@router.post("/api/creators", response_model=CreatorResponse, status_code=status.HTTP_201_CREATED)
async def create_creator_profile(
    creator_data: CreatorCreateRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Create the caller's creator profile.

    - Handle is stored lowercase and must be unique
    - A price above zero registers a monthly Stripe price
    """
    return await create_creator(
        db,
        current_user,
        creator_data.handle,
        bio=creator_data.bio,
        price_usd=creator_data.price_usd,
    )


@router.get("/api/creators/me", response_model=CreatorResponse)
async def get_my_creator_profile(
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Get the caller's creator profile."""
    return await get_creator_for_user(db, current_user)


@router.put("/api/creators/{creator_id}/price", response_model=PriceResponse)
async def update_creator_price(
    creator_id: str,
    price_data: PriceUpdateRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """
    Set the creator's monthly price.

    A price of 0 makes the creator free and clears the Stripe price locally.
    Any other price mints a new Stripe price on the creator's product.
    """
    if price_data.price_usd == 0:
        registration = await set_free_pricing(db, creator_id, current_user)
    else:
        registration = await ensure_price(db, creator_id, price_data.price_usd, current_user)

    return PriceResponse(
        creator_id=creator_id,
        price_usd=float(registration.price_usd),
        stripe_product_id=registration.product_id,
        stripe_price_id=registration.price_id,
    )


@router.put("/api/creators/me/payout-settings", response_model=CreatorResponse)
async def update_my_payout_settings(
    settings_data: PayoutSettingsRequest,
    current_user: User = Depends(get_current_active_user),
    db: AsyncSession = Depends(get_db)
):
    """Set the default payout method and email used for withdrawals."""
    return await update_payout_settings(
        db,
        current_user,
        settings_data.payout_method,
        settings_data.payout_email,
    )
