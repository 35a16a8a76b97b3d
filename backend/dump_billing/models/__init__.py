"""Database models for the Dump billing service."""
from dump_billing.models.user import User
from dump_billing.models.creator import Creator
from dump_billing.models.subscription import Subscription
from dump_billing.models.earning import Earning
from dump_billing.models.payout import Payout
from dump_billing.models.webhook_event import WebhookEvent

__all__ = [
    "User",
    "Creator",
    "Subscription",
    "Earning",
    "Payout",
    "WebhookEvent",
]
