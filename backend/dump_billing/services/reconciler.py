"""Webhook reconciler: folds Stripe's event stream into local billing state.

This is the only writer of paid subscription status and of earnings.  Events
arrive at least once and in any order, so:

- the signature is verified before anything is read from the payload;
- every event is narrowed into a typed variant (``parse_event``) and routed
  to one handler per variant;
- every subscription write is a guarded upsert (see ``subscription_state``),
  earnings are deduplicated on the Stripe invoice id;
- a handler failure or unparseable payload is logged and recorded on
  ``webhook_events`` but the event is still acknowledged; the replay job
  retries it later.
"""
import logging
from datetime import datetime
from typing import Any, Optional

import stripe
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from dump_billing.config import settings
from dump_billing.database import dialect_insert
from dump_billing.exceptions import SignatureError, ValidationError
from dump_billing.models.earning import Earning
from dump_billing.models.subscription import Subscription
from dump_billing.models.webhook_event import WebhookEvent
from dump_billing.schemas.webhooks import (
    CheckoutSessionCompleted,
    InvoicePaymentFailed,
    InvoicePaymentSucceeded,
    SubscriptionDeleted,
    SubscriptionUpdated,
)
from dump_billing.services.earnings import split_invoice_amount
from dump_billing.services.stripe_events import (
    from_unix,
    map_remote_status,
    parse_event,
    subscription_period_end,
)
from dump_billing.services.subscription_state import (
    mark_subscription_ended,
    update_subscription_by_reference,
    upsert_subscription_state,
)

logger = logging.getLogger(__name__)

# Configure Stripe
stripe.api_key = settings.STRIPE_SECRET_KEY

# Outcomes that leave the event unprocessed so the replay job retries it
DEFERRED_OUTCOMES = ("subscription_not_found", "error")

# Stripe statuses after which a subscription can never bill again
ENDED_REMOTE_STATUSES = ("canceled", "incomplete_expired")


async def handle_event(db: AsyncSession, payload: bytes, sig_header: Optional[str]) -> dict:
    """
    Verify and process one webhook delivery.

    Raises:
        SignatureError: webhook secret not configured, header missing, or
            signature invalid. Nothing is processed.
        ValidationError: payload is not a Stripe event.
    """
    if not settings.STRIPE_WEBHOOK_SECRET:
        logger.error("[WEBHOOK] STRIPE_WEBHOOK_SECRET is not configured, rejecting delivery")
        raise SignatureError("Webhook secret is not configured")

    if not sig_header:
        logger.warning("[WEBHOOK] Rejected delivery without stripe-signature header")
        raise SignatureError("Missing stripe-signature header")

    try:
        event = stripe.Webhook.construct_event(
            payload, sig_header, settings.STRIPE_WEBHOOK_SECRET
        )
    except ValueError:
        raise ValidationError("Invalid payload")
    except stripe.SignatureVerificationError:
        logger.warning("[WEBHOOK] Rejected delivery with invalid signature")
        raise SignatureError("Invalid signature")

    return await process_event(db, event)


async def process_event(db: AsyncSession, event: Any) -> dict:
    """Dispatch a verified event and record the outcome. Always acknowledges."""
    try:
        parsed = parse_event(event)
    except (KeyError, TypeError, ValueError) as e:
        return await _record_malformed(db, event, e)

    logger.info(f"[WEBHOOK] Received {parsed.event_type} ({parsed.event_id})")

    handler = EVENT_HANDLERS.get(type(parsed))
    if handler is None:
        return {"received": True, "status": "ignored"}

    if await _already_processed(db, parsed.event_id):
        logger.info(f"[WEBHOOK] Event {parsed.event_id} already processed, skipping")
        return {"received": True, "status": "already_processed"}

    error_message = None
    try:
        outcome = await handler(db, parsed)
        await db.commit()
    except Exception as e:
        await db.rollback()
        logger.error(f"[WEBHOOK] Failed to process {parsed.event_type} ({parsed.event_id}): {e}", exc_info=True)
        outcome, error_message = "error", str(e)

    try:
        await _record_event(db, parsed.event_id, parsed.event_type, parsed.created, outcome, error_message)
    except Exception as e:
        await db.rollback()
        logger.error(f"[WEBHOOK] Failed to record event {parsed.event_id}: {e}")

    logger.info(f"[WEBHOOK] {parsed.event_type} ({parsed.event_id}) -> {outcome}")
    return {"received": True, "status": outcome}


async def _record_malformed(db: AsyncSession, event: Any, error: Exception) -> dict:
    """Acknowledge an event whose payload could not be parsed, recording it for replay."""
    event_id = event.get("id") if hasattr(event, "get") else None
    event_type = (event.get("type") if hasattr(event, "get") else None) or "unknown"
    logger.error(f"[WEBHOOK] Malformed {event_type} event ({event_id}): {error!r}")

    if event_id:
        try:
            await _record_event(db, event_id, event_type, None, "error", f"Malformed event: {error!r}")
        except Exception as e:
            await db.rollback()
            logger.error(f"[WEBHOOK] Failed to record event {event_id}: {e}")
    return {"received": True, "status": "error"}


async def _already_processed(db: AsyncSession, stripe_event_id: str) -> bool:
    result = await db.execute(
        select(WebhookEvent.processed).where(WebhookEvent.stripe_event_id == stripe_event_id)
    )
    return bool(result.scalar_one_or_none())


async def _record_event(
    db: AsyncSession,
    event_id: str,
    event_type: str,
    event_created: Optional[datetime],
    outcome: str,
    error_message: Optional[str],
) -> None:
    processed = outcome not in DEFERRED_OUTCOMES
    if outcome == "subscription_not_found" and error_message is None:
        error_message = "No local subscription for this Stripe subscription yet"

    now = datetime.utcnow()
    events = WebhookEvent.__table__
    stmt = dialect_insert(db, WebhookEvent).values(
        stripe_event_id=event_id,
        event_type=event_type,
        event_created=event_created,
        processed=processed,
        error_message=error_message,
        attempts=1,
        received_at=now,
        processed_at=now if processed else None,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[events.c.stripe_event_id],
        set_={
            "processed": stmt.excluded.processed,
            "error_message": stmt.excluded.error_message,
            "attempts": events.c.attempts + 1,
            "processed_at": stmt.excluded.processed_at,
        },
    )
    await db.execute(stmt)
    await db.commit()


async def _subscription_by_reference(db: AsyncSession, stripe_subscription_id: str) -> Optional[Subscription]:
    result = await db.execute(
        select(Subscription)
        .where(Subscription.stripe_subscription_id == stripe_subscription_id)
        .limit(1)
    )
    return result.scalars().first()


async def handle_checkout_completed(db: AsyncSession, event: CheckoutSessionCompleted) -> str:
    """Create or refresh the (subscriber, creator) row once Stripe confirms checkout."""
    if event.mode != "subscription" or not event.subscription_id:
        return "ignored"

    if event.identity is None:
        logger.warning(f"[WEBHOOK] Checkout session {event.session_id} has no subscriber/creator metadata")
        return "missing_metadata"

    remote = stripe.Subscription.retrieve(event.subscription_id)

    applied = await upsert_subscription_state(
        db,
        event.identity,
        stripe_subscription_id=event.subscription_id,
        stripe_customer_id=event.customer_id,
        status="active",
        current_period_end=subscription_period_end(remote),
        cancel_at_period_end=bool(remote.get("cancel_at_period_end")),
        event_at=event.created,
        rebind=True,
    )
    if applied:
        logger.info(
            f"[WEBHOOK] Subscription {event.subscription_id} active for "
            f"subscriber {event.identity.subscriber_id} -> creator {event.identity.creator_id}"
        )
    return "processed" if applied else "stale"


async def handle_invoice_paid(db: AsyncSession, event: InvoicePaymentSucceeded) -> str:
    """Credit the creator once per paid invoice."""
    if event.amount_paid <= 0 or not event.subscription_id:
        return "ignored"

    subscription = await _subscription_by_reference(db, event.subscription_id)
    if subscription is None:
        logger.warning(f"[WEBHOOK] Invoice {event.invoice_id}: no local subscription {event.subscription_id}")
        return "subscription_not_found"

    split = split_invoice_amount(event.amount_paid)
    stmt = (
        dialect_insert(db, Earning)
        .values(
            creator_id=subscription.creator_id,
            subscriber_id=subscription.subscriber_id,
            subscription_id=subscription.uuid,
            gross_amount=split.gross,
            platform_fee=split.platform_fee,
            net_amount=split.net,
            status="available",
            stripe_invoice_id=event.invoice_id,
            stripe_payment_intent_id=event.payment_intent_id,
        )
        .on_conflict_do_nothing(index_elements=[Earning.__table__.c.stripe_invoice_id])
        .returning(Earning.__table__.c.uuid)
    )
    result = await db.execute(stmt)
    earning_id = result.scalar_one_or_none()

    if earning_id is None:
        logger.info(f"[WEBHOOK] Invoice {event.invoice_id} already credited")
        return "duplicate"

    logger.info(
        f"[WEBHOOK] Earning {earning_id} for creator {subscription.creator_id}: "
        f"gross={split.gross} fee={split.platform_fee} net={split.net}"
    )
    return "processed"


async def handle_subscription_updated(db: AsyncSession, event: SubscriptionUpdated) -> str:
    status = map_remote_status(event.remote_status)

    if event.identity is not None:
        applied = await upsert_subscription_state(
            db,
            event.identity,
            stripe_subscription_id=event.subscription_id,
            stripe_customer_id=event.customer_id,
            status=status,
            current_period_end=event.current_period_end,
            cancel_at_period_end=event.cancel_at_period_end,
            event_at=event.created,
        )
        return "processed" if applied else "stale"

    applied = await update_subscription_by_reference(
        db,
        event.subscription_id,
        status=status,
        event_at=event.created,
        current_period_end=event.current_period_end,
        cancel_at_period_end=event.cancel_at_period_end,
    )
    if applied:
        return "processed"
    return await _unapplied_outcome(db, event.subscription_id)


async def handle_subscription_deleted(db: AsyncSession, event: SubscriptionDeleted) -> str:
    """Terminal: the row is kept for history with status canceled."""
    if await mark_subscription_ended(db, event.subscription_id, event.created):
        logger.info(f"[WEBHOOK] Subscription {event.subscription_id} ended")
        return "processed"

    if event.identity is None:
        return "subscription_not_found"

    # Checkout confirmation never reached us; record the pair as ended
    applied = await upsert_subscription_state(
        db,
        event.identity,
        stripe_subscription_id=event.subscription_id,
        stripe_customer_id=None,
        status="canceled",
        current_period_end=None,
        cancel_at_period_end=False,
        event_at=event.created,
    )
    if not applied:
        return "stale"
    await mark_subscription_ended(db, event.subscription_id, event.created)
    return "processed"


async def handle_invoice_failed(db: AsyncSession, event: InvoicePaymentFailed) -> str:
    if not event.subscription_id:
        return "ignored"

    applied = await update_subscription_by_reference(
        db,
        event.subscription_id,
        status="past_due",
        event_at=event.created,
    )
    if applied:
        logger.info(f"[WEBHOOK] Subscription {event.subscription_id} past due (invoice {event.invoice_id})")
        return "processed"
    return await _unapplied_outcome(db, event.subscription_id)


async def _unapplied_outcome(db: AsyncSession, stripe_subscription_id: str) -> str:
    if await _subscription_by_reference(db, stripe_subscription_id) is None:
        return "subscription_not_found"
    return "stale"


EVENT_HANDLERS = {
    CheckoutSessionCompleted: handle_checkout_completed,
    InvoicePaymentSucceeded: handle_invoice_paid,
    SubscriptionUpdated: handle_subscription_updated,
    SubscriptionDeleted: handle_subscription_deleted,
    InvoicePaymentFailed: handle_invoice_failed,
}


async def sync_remote_subscription(db: AsyncSession, stripe_subscription_id: str) -> str:
    """Pull the current Stripe state of one paid subscription and apply it.

    Used by the reconciliation job. The remote state is as of now, so it is
    applied with the current time and later-delivered older events are
    discarded as stale.
    """
    remote = stripe.Subscription.retrieve(stripe_subscription_id)
    remote_status = remote.get("status")
    now = datetime.utcnow()

    if remote_status in ENDED_REMOTE_STATUSES:
        ended_at = from_unix(remote.get("ended_at") or remote.get("canceled_at")) or now
        applied = await mark_subscription_ended(db, stripe_subscription_id, ended_at)
    else:
        applied = await update_subscription_by_reference(
            db,
            stripe_subscription_id,
            status=map_remote_status(remote_status),
            event_at=now,
            current_period_end=subscription_period_end(remote),
            cancel_at_period_end=bool(remote.get("cancel_at_period_end")),
        )
    await db.commit()
    return "synced" if applied else "unchanged"
