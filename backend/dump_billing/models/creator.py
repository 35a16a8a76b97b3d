"""Creator model for Dump platform."""
from datetime import datetime
from decimal import Decimal
from uuid import uuid4
from sqlalchemy import String, Text, Numeric, Boolean, DateTime, ForeignKey, JSON, Index
from sqlalchemy.orm import Mapped, mapped_column, relationship
from dump_billing.database import Base


class Creator(Base):
    """A producer account that sells a monthly subscription to its dump packs.

    ``price_usd`` of 0 (or NULL) means free; a free creator never carries a
    ``stripe_price_id``.  ``stripe_product_id`` is created once per creator and
    reused; a new ``stripe_price_id`` is minted on every price change.
    """

    __tablename__ = "creators"

    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # Profile
    handle: Mapped[str] = mapped_column(String(64), unique=True, nullable=False)
    bio: Mapped[str | None] = mapped_column(Text, nullable=True)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True)

    # Pricing
    price_usd: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    stripe_product_id: Mapped[str | None] = mapped_column(String(255), nullable=True)
    stripe_price_id: Mapped[str | None] = mapped_column(String(255), nullable=True)

    # Payout preferences
    payout_method: Mapped[str | None] = mapped_column(String(50), nullable=True)
    payout_email: Mapped[str | None] = mapped_column(String(255), nullable=True)
    payout_details: Mapped[dict | None] = mapped_column(JSON, nullable=True)

    # Owning account
    user_id: Mapped[str] = mapped_column(String(36), ForeignKey("users.uuid"), unique=True, nullable=False)

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user: Mapped["User"] = relationship("User", foreign_keys=[user_id])

    __table_args__ = (
        Index("idx_creator_stripe_product_id", "stripe_product_id"),
    )

    @property
    def is_free(self) -> bool:
        return not self.stripe_price_id and not self.price_usd

    def __repr__(self) -> str:
        return f"<Creator(uuid={self.uuid}, handle={self.handle}, price_usd={self.price_usd})>"
