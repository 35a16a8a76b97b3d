"""User model mirroring the identity provider's profile."""
from datetime import datetime
from uuid import uuid4
from sqlalchemy import String, DateTime, Index
from sqlalchemy.orm import Mapped, mapped_column
from dump_billing.database import Base


class User(Base):
    """Profile row for an authenticated account (subscriber, creator or admin)."""

    __tablename__ = "users"

    # Primary key (same id the identity provider puts in the token ``sub``)
    uuid: Mapped[str] = mapped_column(String(36), primary_key=True, default=lambda: str(uuid4()))

    # User info
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    email: Mapped[str] = mapped_column(String(255), unique=True, nullable=False, index=True)

    # Account info
    status: Mapped[str] = mapped_column(String(50), default="active")
    user_role: Mapped[str] = mapped_column(String(50), default="user")

    # Timestamps
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    __table_args__ = (
        Index("idx_user_status", "status"),
    )

    def __repr__(self) -> str:
        return f"<User(uuid={self.uuid}, email={self.email})>"
