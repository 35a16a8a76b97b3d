"""Log of Stripe webhook events received by the reconciler."""
from datetime import datetime
from uuid import uuid4

from sqlalchemy import String, Boolean, Text, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column

from dump_billing.database import Base


class WebhookEvent(Base):
    """One row per verified Stripe event id.

    ``processed`` is False when local persistence failed; the replay job picks
    those rows up and re-fetches the event from Stripe.
    """
    __tablename__ = "webhook_events"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    stripe_event_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    event_type: Mapped[str] = mapped_column(String(100), nullable=False)
    event_created: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    processed: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    error_message: Mapped[str | None] = mapped_column(Text, nullable=True)
    attempts: Mapped[int] = mapped_column(default=0, nullable=False)
    received_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    __table_args__ = (
        Index("idx_webhook_event_processed", "processed"),
    )

    def __repr__(self) -> str:
        return f"<WebhookEvent(stripe_event_id={self.stripe_event_id}, type={self.event_type}, processed={self.processed})>"
