"""Atomic writes to the subscriptions table.

Every write here is a single conditional statement so concurrent webhook
deliveries, the reconciliation job and user actions cannot interleave into a
duplicate row or an older state overwriting a newer one:

* rows are keyed on (subscriber_id, creator_id) and written with
  ``INSERT ... ON CONFLICT DO UPDATE``;
* a write carrying a provider timestamp older than ``last_event_at`` is
  dropped;
* once Stripe reports a subscription deleted (``ended_at`` set), nothing but a
  *different* Stripe subscription for the same pair can reactivate the row;
* only a completed checkout may move a live row onto another Stripe
  subscription. Events scoped to a subscription claim the row only while it is
  unbound, bound to that subscription, or ended.
"""
import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import and_, case, or_, update
from sqlalchemy.ext.asyncio import AsyncSession

from dump_billing.database import dialect_insert
from dump_billing.models.subscription import Subscription
from dump_billing.schemas.webhooks import BillingIdentity

logger = logging.getLogger(__name__)

subscriptions = Subscription.__table__


def _not_stale(event_at: datetime):
    return or_(subscriptions.c.last_event_at.is_(None), subscriptions.c.last_event_at <= event_at)


async def upsert_subscription_state(
    db: AsyncSession,
    identity: BillingIdentity,
    *,
    stripe_subscription_id: str,
    stripe_customer_id: Optional[str],
    status: str,
    current_period_end: Optional[datetime],
    cancel_at_period_end: bool,
    event_at: datetime,
    rebind: bool = False,
) -> bool:
    """Insert or update the row for ``identity`` with a full provider state.

    ``rebind`` lets the write replace a live row bound to a different Stripe
    subscription; only checkout completion passes it.

    Returns False when the write was discarded, either as stale or because
    the row belongs to another live Stripe subscription.
    """
    now = datetime.utcnow()
    stmt = dialect_insert(db, Subscription).values(
        subscriber_id=identity.subscriber_id,
        creator_id=identity.creator_id,
        status=status,
        stripe_customer_id=stripe_customer_id,
        stripe_subscription_id=stripe_subscription_id,
        current_period_end=current_period_end,
        cancel_at_period_end=cancel_at_period_end,
        last_event_at=event_at,
        created_at=now,
        updated_at=now,
    )
    excluded = stmt.excluded
    bound_id = subscriptions.c.stripe_subscription_id
    if rebind:
        claimable = or_(
            subscriptions.c.ended_at.is_(None),
            bound_id.is_(None),
            bound_id != excluded.stripe_subscription_id,
        )
    else:
        claimable = or_(
            bound_id.is_(None),
            and_(bound_id == excluded.stripe_subscription_id, subscriptions.c.ended_at.is_(None)),
            and_(bound_id != excluded.stripe_subscription_id, subscriptions.c.ended_at.is_not(None)),
        )

    stmt = stmt.on_conflict_do_update(
        index_elements=[subscriptions.c.subscriber_id, subscriptions.c.creator_id],
        set_={
            "status": excluded.status,
            "stripe_customer_id": excluded.stripe_customer_id,
            "stripe_subscription_id": excluded.stripe_subscription_id,
            "current_period_end": excluded.current_period_end,
            "cancel_at_period_end": excluded.cancel_at_period_end,
            "last_event_at": excluded.last_event_at,
            "ended_at": None,
            "updated_at": now,
        },
        where=and_(
            or_(
                subscriptions.c.last_event_at.is_(None),
                subscriptions.c.last_event_at <= excluded.last_event_at,
            ),
            claimable,
        ),
    ).returning(subscriptions.c.uuid)

    result = await db.execute(stmt)
    applied = result.scalar_one_or_none() is not None
    if not applied:
        logger.info(
            f"Discarded state for subscriber={identity.subscriber_id} "
            f"creator={identity.creator_id} stripe_sub={stripe_subscription_id}"
        )
    return applied


async def update_subscription_by_reference(
    db: AsyncSession,
    stripe_subscription_id: str,
    *,
    status: str,
    event_at: datetime,
    current_period_end: Optional[datetime] = None,
    cancel_at_period_end: Optional[bool] = None,
) -> bool:
    """Apply a status change to the row holding ``stripe_subscription_id``.

    Returns False when no row matched or the event was stale.
    """
    values = {"status": status, "last_event_at": event_at, "updated_at": datetime.utcnow()}
    if current_period_end is not None:
        values["current_period_end"] = current_period_end
    if cancel_at_period_end is not None:
        values["cancel_at_period_end"] = cancel_at_period_end

    result = await db.execute(
        update(Subscription)
        .where(
            subscriptions.c.stripe_subscription_id == stripe_subscription_id,
            subscriptions.c.ended_at.is_(None),
            _not_stale(event_at),
        )
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def mark_subscription_ended(
    db: AsyncSession,
    stripe_subscription_id: str,
    ended_at: datetime,
) -> bool:
    """Terminal transition: Stripe deleted the subscription.

    Applied regardless of event order; ``last_event_at`` only moves forward.
    """
    result = await db.execute(
        update(Subscription)
        .where(subscriptions.c.stripe_subscription_id == stripe_subscription_id)
        .values(
            status="canceled",
            cancel_at_period_end=False,
            ended_at=case(
                (subscriptions.c.ended_at.is_(None), ended_at),
                else_=subscriptions.c.ended_at,
            ),
            last_event_at=case(
                (_not_stale(ended_at), ended_at),
                else_=subscriptions.c.last_event_at,
            ),
            updated_at=datetime.utcnow(),
        )
        .execution_options(synchronize_session=False)
    )
    return result.rowcount > 0


async def activate_free_subscription(
    db: AsyncSession,
    subscriber_id: str,
    creator_id: str,
) -> Optional[str]:
    """Insert an active, billing-free row for the pair.

    An existing canceled or billing-free row is reactivated in the same
    statement. Returns the row id, or None when the pair already has an active
    subscription or a paid one Stripe is still billing (e.g. past due).
    """
    now = datetime.utcnow()
    stmt = dialect_insert(db, Subscription).values(
        subscriber_id=subscriber_id,
        creator_id=creator_id,
        status="active",
        cancel_at_period_end=False,
        created_at=now,
        updated_at=now,
    )
    stmt = stmt.on_conflict_do_update(
        index_elements=[subscriptions.c.subscriber_id, subscriptions.c.creator_id],
        set_={
            "status": "active",
            "stripe_customer_id": None,
            "stripe_subscription_id": None,
            "current_period_end": None,
            "cancel_at_period_end": False,
            "ended_at": None,
            "updated_at": now,
        },
        where=and_(
            subscriptions.c.status != "active",
            or_(subscriptions.c.status == "canceled", subscriptions.c.stripe_subscription_id.is_(None)),
        ),
    ).returning(subscriptions.c.uuid)

    result = await db.execute(stmt)
    return result.scalar_one_or_none()
