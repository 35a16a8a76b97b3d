"""Stripe webhook endpoint."""
from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from dump_billing.database import get_db
from dump_billing.schemas.webhooks import WebhookAck
from dump_billing.services.reconciler import handle_event

router = APIRouter()


@router.post("/api/webhooks/stripe", response_model=WebhookAck)
async def stripe_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db)
):
    """
    Handle Stripe webhook events.

    - Rejects deliveries without a valid signature (401), processing nothing
    - Acknowledges every verified event, including ones that failed locally
    """
    payload = await request.body()
    sig_header = request.headers.get("stripe-signature")
    return await handle_event(db, payload, sig_header)
