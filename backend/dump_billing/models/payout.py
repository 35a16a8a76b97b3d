"""Payout model for creator withdrawal requests."""
from datetime import datetime
from decimal import Decimal
from uuid import uuid4

from sqlalchemy import String, Numeric, Text, DateTime, ForeignKey, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship

from dump_billing.database import Base

PAYOUT_STATUSES = ("pending", "processing", "completed", "failed")
# Payouts in these states are deducted from the creator's available balance
RESERVED_PAYOUT_STATUSES = ("pending", "processing", "completed")
TERMINAL_PAYOUT_STATUSES = ("completed", "failed")


class Payout(Base):
    """A creator's withdrawal request, settled manually by an admin."""

    __tablename__ = "creator_payouts"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))
    creator_id: Mapped[str] = mapped_column(String(36), ForeignKey("creators.uuid"), nullable=False)
    amount: Mapped[Decimal] = mapped_column(Numeric(12, 2), nullable=False)
    payout_method: Mapped[str] = mapped_column(String(50), nullable=False)
    payout_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    status: Mapped[str] = mapped_column(String(20), default="pending", nullable=False)
    notes: Mapped[str | None] = mapped_column(Text, nullable=True)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, nullable=False)
    processed_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    creator = relationship("Creator", foreign_keys=[creator_id])

    __table_args__ = (
        Index("idx_payout_creator_id_status", "creator_id", "status"),
        Index("idx_payout_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<Payout(uuid={self.uuid}, creator_id={self.creator_id}, amount={self.amount}, status={self.status})>"
