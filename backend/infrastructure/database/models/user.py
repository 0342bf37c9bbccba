"""
User database model.

The user row doubles as the durable credit account: ``ai_credits`` is the
spendable balance and ``lifetime_credits`` counts every credit ever granted.
Both are only ever changed through ``services.credit_ledger.CreditLedger``.
"""

from datetime import datetime
from enum import Enum
from typing import Optional
from uuid import uuid4

from sqlalchemy import Boolean, CheckConstraint, DateTime, Index, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class UserStatus(str, Enum):
    """User account status enumeration."""

    ACTIVE = "active"
    SUSPENDED = "suspended"
    DELETED = "deleted"


class SubscriptionTier(str, Enum):
    """Subscription tier enumeration, lowest first."""

    FREE = "free"
    PRO = "pro"
    ENTERPRISE = "enterprise"


class User(Base, TimestampMixin):
    """User account model."""

    __tablename__ = "users"

    # Primary key
    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    # Basic info
    email: Mapped[str] = mapped_column(
        String(255),
        unique=True,
        nullable=False,
        index=True,
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    status: Mapped[str] = mapped_column(
        String(50),
        default=UserStatus.ACTIVE.value,
        nullable=False,
    )

    # Subscription
    subscription_tier: Mapped[str] = mapped_column(
        String(50),
        default=SubscriptionTier.FREE.value,
        nullable=False,
    )
    subscription_expires: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    # Credit account
    ai_credits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)
    lifetime_credits: Mapped[int] = mapped_column(Integer, default=0, nullable=False)

    # Editor preferences
    auto_save: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    auto_save_interval: Mapped[int] = mapped_column(Integer, default=3, nullable=False)
    """Seconds of inactivity before the editor persists a chapter (1-60)."""

    # Soft delete
    deleted_at: Mapped[Optional[datetime]] = mapped_column(
        DateTime(timezone=True), nullable=True
    )

    __table_args__ = (
        CheckConstraint("ai_credits >= 0", name="ck_users_ai_credits_non_negative"),
        Index("ix_users_subscription", "subscription_tier", "subscription_expires"),
    )

    def __repr__(self) -> str:
        return f"<User(id={self.id}, email={self.email}, tier={self.subscription_tier})>"

    @property
    def is_active(self) -> bool:
        """Check if user account is active."""
        return self.status == UserStatus.ACTIVE.value and self.deleted_at is None

    @property
    def subscription_tier_enum(self) -> SubscriptionTier:
        """Get subscription tier as enum."""
        return SubscriptionTier(self.subscription_tier)
