"""Typed variants of the Stripe webhook events the reconciler consumes.

Stripe payloads are loosely typed dictionaries; ``parse_event`` in
``dump_billing.services.stripe_events`` narrows each one into exactly one of
the models below before any handler runs.
"""
from datetime import datetime
from typing import Optional, Union

from pydantic import BaseModel, Field, ValidationError


class BillingIdentity(BaseModel):
    """The {subscriber_id, creator_id} pair embedded in Stripe metadata."""

    subscriber_id: str = Field(..., min_length=1)
    creator_id: str = Field(..., min_length=1)

    @classmethod
    def from_metadata(cls, metadata) -> Optional["BillingIdentity"]:
        """Parse metadata, returning None when either id is missing or blank."""
        try:
            return cls.model_validate(dict(metadata or {}))
        except (ValidationError, TypeError, ValueError):
            return None


class StripeEventBase(BaseModel):
    event_id: str
    event_type: str
    created: datetime


class CheckoutSessionCompleted(StripeEventBase):
    session_id: str
    mode: Optional[str] = None
    customer_id: Optional[str] = None
    subscription_id: Optional[str] = None
    identity: Optional[BillingIdentity] = None


class InvoicePaymentSucceeded(StripeEventBase):
    invoice_id: str
    subscription_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    amount_paid: int = 0


class InvoicePaymentFailed(StripeEventBase):
    invoice_id: str
    subscription_id: Optional[str] = None


class SubscriptionUpdated(StripeEventBase):
    subscription_id: str
    customer_id: Optional[str] = None
    remote_status: str
    current_period_end: Optional[datetime] = None
    cancel_at_period_end: bool = False
    identity: Optional[BillingIdentity] = None


class SubscriptionDeleted(StripeEventBase):
    subscription_id: str
    identity: Optional[BillingIdentity] = None


class UnhandledEvent(StripeEventBase):
    """Any event type the reconciler does not consume. Acknowledged and ignored."""


BillingEvent = Union[
    CheckoutSessionCompleted,
    InvoicePaymentSucceeded,
    InvoicePaymentFailed,
    SubscriptionUpdated,
    SubscriptionDeleted,
    UnhandledEvent,
]


class WebhookAck(BaseModel):
    received: bool = True
    status: str
