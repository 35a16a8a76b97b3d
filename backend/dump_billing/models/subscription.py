"""Subscription model for Dump platform."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, Boolean, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship
from dump_billing.database import Base

SUBSCRIPTION_STATUSES = ("active", "past_due", "canceled")


class Subscription(Base):
    """One row per (subscriber, creator) pair.

    Paid rows are written only by the webhook reconciler; free rows are
    inserted directly with status "active" and no Stripe references.  Rows
    are never deleted: provider deletion sets ``status="canceled"`` and
    ``ended_at``.

    ``last_event_at`` holds the provider timestamp of the last applied state
    so stale, out-of-order events can be discarded.
    """

    __tablename__ = "subscriptions"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Subscription info
    status: Mapped[str] = mapped_column(String(20), default="active", nullable=False)
    current_period_end: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    cancel_at_period_end: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    # Stripe info
    stripe_customer_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_subscription_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Reconciliation bookkeeping
    last_event_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    ended_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # Foreign keys
    subscriber_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)
    creator_id: Mapped[str] = mapped_column(String(36), ForeignKey("creators.uuid"), nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    subscriber: Mapped["User"] = relationship("User", foreign_keys=[subscriber_id])
    creator: Mapped["Creator"] = relationship("Creator", foreign_keys=[creator_id])

    __table_args__ = (
        UniqueConstraint("subscriber_id", "creator_id", name="uq_subscription_subscriber_creator"),
        Index("idx_subscription_creator_id", "creator_id"),
        Index("idx_subscription_stripe_subscription_id", "stripe_subscription_id"),
        Index("idx_subscription_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Subscription(uuid={self.uuid}, subscriber_id={self.subscriber_id}, creator_id={self.creator_id}, status={self.status})>"
