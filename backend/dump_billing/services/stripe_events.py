"""Helpers for reading Stripe objects and narrowing webhook events.

Stripe moved several fields between API versions (``current_period_end``
now lives on subscription items, an invoice's subscription id moved under
``parent.subscription_details``).  The accessors here read both shapes so
the reconciler does not care which API version signed the event.
"""
from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Optional

from dump_billing.schemas.webhooks import (
    BillingEvent,
    BillingIdentity,
    CheckoutSessionCompleted,
    InvoicePaymentFailed,
    InvoicePaymentSucceeded,
    SubscriptionDeleted,
    SubscriptionUpdated,
    UnhandledEvent,
)


def from_unix(ts: Optional[int]) -> Optional[datetime]:
    """Convert a Stripe unix timestamp to a naive UTC datetime."""
    if ts is None:
        return None
    return datetime.fromtimestamp(int(ts), tz=timezone.utc).replace(tzinfo=None)


def _get(obj: Any, *path: str) -> Any:
    """Walk nested Stripe objects / dicts, returning None on any missing hop."""
    for key in path:
        if obj is None:
            return None
        try:
            obj = obj.get(key)
        except AttributeError:
            obj = getattr(obj, key, None)
    return obj


def _ref(value: Any) -> Optional[str]:
    """Stripe fields can hold either an id string or an expanded object."""
    if value is None or isinstance(value, str):
        return value
    return _get(value, "id")


def subscription_period_end(subscription: Any) -> Optional[datetime]:
    """Current period end of a Stripe subscription."""
    ts = _get(subscription, "current_period_end")
    if ts is None:
        items = _get(subscription, "items", "data") or []
        ends = [item.get("current_period_end") for item in items if item.get("current_period_end")]
        ts = max(ends) if ends else None
    return from_unix(ts)


def invoice_subscription_id(invoice: Any) -> Optional[str]:
    return _ref(
        _get(invoice, "subscription")
        or _get(invoice, "parent", "subscription_details", "subscription")
    )


def invoice_payment_intent_id(invoice: Any) -> Optional[str]:
    payment_intent = _ref(_get(invoice, "payment_intent"))
    if payment_intent:
        return payment_intent
    payments = _get(invoice, "payments", "data") or []
    for payment in payments:
        payment_intent = _ref(_get(payment, "payment", "payment_intent"))
        if payment_intent:
            return payment_intent
    return None


def map_remote_status(remote_status: Optional[str]) -> str:
    """Collapse Stripe's subscription statuses onto the local three."""
    if remote_status == "active":
        return "active"
    if remote_status == "past_due":
        return "past_due"
    return "canceled"


def parse_event(event: Any) -> BillingEvent:
    """Narrow a verified Stripe event into one of the typed variants."""
    event_type = event["type"]
    obj = event["data"]["object"]
    base = {
        "event_id": event["id"],
        "event_type": event_type,
        "created": from_unix(event["created"]),
    }

    if event_type == "checkout.session.completed":
        return CheckoutSessionCompleted(
            **base,
            session_id=obj["id"],
            mode=obj.get("mode"),
            customer_id=_ref(obj.get("customer")),
            subscription_id=_ref(obj.get("subscription")),
            identity=BillingIdentity.from_metadata(obj.get("metadata")),
        )

    if event_type == "invoice.payment_succeeded":
        return InvoicePaymentSucceeded(
            **base,
            invoice_id=obj["id"],
            subscription_id=invoice_subscription_id(obj),
            payment_intent_id=invoice_payment_intent_id(obj),
            amount_paid=obj.get("amount_paid") or 0,
        )

    if event_type == "invoice.payment_failed":
        return InvoicePaymentFailed(
            **base,
            invoice_id=obj["id"],
            subscription_id=invoice_subscription_id(obj),
        )

    if event_type == "customer.subscription.updated":
        return SubscriptionUpdated(
            **base,
            subscription_id=obj["id"],
            customer_id=_ref(obj.get("customer")),
            remote_status=obj.get("status") or "",
            current_period_end=subscription_period_end(obj),
            cancel_at_period_end=bool(obj.get("cancel_at_period_end")),
            identity=BillingIdentity.from_metadata(obj.get("metadata")),
        )

    if event_type == "customer.subscription.deleted":
        return SubscriptionDeleted(
            **base,
            subscription_id=obj["id"],
            identity=BillingIdentity.from_metadata(obj.get("metadata")),
        )

    return UnhandledEvent(**base)
