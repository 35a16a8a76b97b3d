"""Earning model for tracking creator revenue from subscription invoices."""
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import String, Numeric, DateTime, ForeignKey, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dump_billing.database import Base


class Earning(Base):
    """Records each successful recurring invoice payment.

    Created by the invoice.payment_succeeded webhook handler, at most once per
    Stripe invoice (``stripe_invoice_id`` is unique).  Amounts are stored in
    dollars; ``net_amount == gross_amount - platform_fee``.

    Earnings stay ``available``: completed payouts are netted from the balance
    (see ``services.earnings.available_balance``) rather than moving individual
    earnings to ``paid_out``, since a payout need not cover whole earnings.
    """
    __tablename__ = "creator_earnings"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    creator_id: Mapped[str] = mapped_column(String(36), ForeignKey("creators.uuid"), nullable=False)
    subscriber_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), nullable=False)
    subscription_id: Mapped[str] = mapped_column(String(36), ForeignKey("subscriptions.uuid"), nullable=False)
    gross_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    platform_fee: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    net_amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    status: Mapped[str] = mapped_column(String(20), default="available", nullable=False)
    stripe_invoice_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    stripe_payment_intent_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)

    # Relationships
    creator = relationship("Creator", foreign_keys=[creator_id])
    subscription = relationship("Subscription", foreign_keys=[subscription_id])

    __table_args__ = (
        Index("idx_earning_creator_id_status", "creator_id", "status"),
        Index("idx_earning_subscription_id", "subscription_id"),
    )

    def __repr__(self) -> str:
        return f"<Earning(uuid={self.uuid}, creator_id={self.creator_id}, net_amount={self.net_amount})>"
