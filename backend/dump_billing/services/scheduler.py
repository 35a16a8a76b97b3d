"""Scheduler service for billing backfill jobs using APScheduler."""
import logging
import os
import multiprocessing
from datetime import datetime, timedelta

import stripe
import redis.asyncio as redis
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger
from sqlalchemy import select, and_, update

from dump_billing.config import settings
from dump_billing.database import AsyncSessionLocal
from dump_billing.models.subscription import Subscription
from dump_billing.models.webhook_event import WebhookEvent
from dump_billing.services.reconciler import process_event, sync_remote_subscription

logger = logging.getLogger(__name__)

# Configure Stripe
stripe.api_key = settings.STRIPE_SECRET_KEY

# Initialize scheduler
scheduler = AsyncIOScheduler()

# Redis client for distributed locking
redis_client = None

# uvicorn names its first worker SpawnProcess-1; a single-process run is MainProcess
SCHEDULER_PROCESS_NAMES = ("MainProcess", "SpawnProcess-1")

REPLAY_BATCH_SIZE = 100


async def get_redis_client():
    """Get or create Redis client."""
    global redis_client
    if redis_client is None:
        redis_client = redis.from_url(settings.REDIS_URL, decode_responses=True)
    return redis_client


async def acquire_lock(lock_name: str, timeout: int = 300) -> bool:
    """
    Acquire a distributed lock using Redis.

    Args:
        lock_name: Name of the lock
        timeout: Lock timeout in seconds

    Returns:
        True if lock acquired, False otherwise
    """
    try:
        client = await get_redis_client()
        # Use SET with NX (only set if not exists) and EX (expiry)
        result = await client.set(f"dump:lock:{lock_name}", "1", nx=True, ex=timeout)
        return result is not None
    except Exception as e:
        logger.error(f"Failed to acquire lock {lock_name}: {e}")
        return False


async def release_lock(lock_name: str):
    """Release a distributed lock."""
    try:
        client = await get_redis_client()
        await client.delete(f"dump:lock:{lock_name}")
    except Exception as e:
        logger.error(f"Failed to release lock {lock_name}: {e}")


async def reconcile_subscriptions(session_factory=AsyncSessionLocal) -> dict:
    """Diff every live paid subscription against Stripe and apply the remote state."""
    lock_name = "reconcile_subscriptions"
    counts = {"synced": 0, "unchanged": 0, "failed": 0}

    if not await acquire_lock(lock_name, timeout=settings.RECONCILE_INTERVAL_MINUTES * 60):
        logger.info(f"Skipping {lock_name} - another instance is running")
        return counts

    try:
        logger.info("Running reconcile_subscriptions job")
        async with session_factory() as session:
            result = await session.execute(
                select(Subscription.stripe_subscription_id).where(
                    and_(
                        Subscription.stripe_subscription_id.is_not(None),
                        Subscription.ended_at.is_(None)
                    )
                )
            )
            stripe_subscription_ids = result.scalars().all()

            for stripe_subscription_id in stripe_subscription_ids:
                try:
                    outcome = await sync_remote_subscription(session, stripe_subscription_id)
                    counts[outcome] += 1
                except stripe.StripeError as e:
                    await session.rollback()
                    counts["failed"] += 1
                    logger.error(f"Failed to reconcile subscription {stripe_subscription_id}: {e}")

        logger.info(
            f"Reconciled {len(stripe_subscription_ids)} subscriptions: "
            f"{counts['synced']} synced, {counts['unchanged']} unchanged, {counts['failed']} failed"
        )

    except Exception as e:
        logger.error(f"Error in reconcile_subscriptions: {e}")
    finally:
        await release_lock(lock_name)

    return counts


async def replay_failed_webhook_events(session_factory=AsyncSessionLocal) -> dict:
    """Re-fetch webhook events whose local processing failed and dispatch them again."""
    lock_name = "replay_failed_webhook_events"
    counts = {"replayed": 0, "processed": 0, "failed": 0}

    if not await acquire_lock(lock_name):
        logger.info(f"Skipping {lock_name} - another instance is running")
        return counts

    try:
        logger.info("Running replay_failed_webhook_events job")
        async with session_factory() as session:
            result = await session.execute(
                select(WebhookEvent.stripe_event_id)
                .where(
                    and_(
                        WebhookEvent.processed.is_(False),
                        WebhookEvent.attempts < settings.WEBHOOK_MAX_ATTEMPTS
                    )
                )
                .order_by(WebhookEvent.received_at)
                .limit(REPLAY_BATCH_SIZE)
            )
            event_ids = result.scalars().all()

            for event_id in event_ids:
                try:
                    event = stripe.Event.retrieve(event_id)
                except stripe.StripeError as e:
                    counts["failed"] += 1
                    logger.error(f"Failed to retrieve webhook event {event_id}: {e}")
                    # Counts toward the attempt cap so expired events stop being retried
                    await session.execute(
                        update(WebhookEvent)
                        .where(WebhookEvent.stripe_event_id == event_id)
                        .values(
                            attempts=WebhookEvent.attempts + 1,
                            error_message=f"Could not retrieve event from Stripe: {e}",
                        )
                    )
                    await session.commit()
                    continue

                ack = await process_event(session, event)
                counts["replayed"] += 1
                if ack["status"] not in ("error", "subscription_not_found"):
                    counts["processed"] += 1

        logger.info(
            f"Replayed {counts['replayed']} webhook events, "
            f"{counts['processed']} processed, {counts['failed']} could not be fetched"
        )

    except Exception as e:
        logger.error(f"Error in replay_failed_webhook_events: {e}")
    finally:
        await release_lock(lock_name)

    return counts


def start_scheduler():
    """Start the APScheduler with the billing backfill jobs."""
    # Only start scheduler on the first worker process to avoid duplicate runs
    current_pid = os.getpid()
    current_process_name = multiprocessing.current_process().name

    if current_process_name not in SCHEDULER_PROCESS_NAMES:
        logger.info(f"Skipping scheduler on {current_process_name} (PID: {current_pid})")
        return

    logger.info(f"Starting scheduler on {current_process_name} (PID: {current_pid})...")

    # Job 1: Replay failed webhook events (staggered: starts at :01)
    scheduler.add_job(
        replay_failed_webhook_events,
        trigger=IntervalTrigger(
            minutes=settings.WEBHOOK_REPLAY_INTERVAL_MINUTES,
            start_date=datetime.utcnow() + timedelta(minutes=1)
        ),
        id="replay_failed_webhook_events",
        name="Replay failed webhook events",
        replace_existing=True
    )

    # Job 2: Reconcile subscriptions against Stripe (staggered: starts at :05)
    scheduler.add_job(
        reconcile_subscriptions,
        trigger=IntervalTrigger(
            minutes=settings.RECONCILE_INTERVAL_MINUTES,
            start_date=datetime.utcnow() + timedelta(minutes=5)
        ),
        id="reconcile_subscriptions",
        name="Reconcile subscriptions with Stripe",
        replace_existing=True
    )

    scheduler.start()
    logger.info("Scheduler started with 2 billing jobs")


def stop_scheduler():
    """Stop the APScheduler."""
    current_pid = os.getpid()
    current_process_name = multiprocessing.current_process().name

    if current_process_name not in SCHEDULER_PROCESS_NAMES:
        logger.info(f"Skipping scheduler shutdown on {current_process_name} (PID: {current_pid})")
        return

    logger.info(f"Stopping scheduler on {current_process_name} (PID: {current_pid})...")
    if scheduler.running:
        scheduler.shutdown()
        logger.info("Scheduler stopped")
    else:
        logger.info("Scheduler was not running")
