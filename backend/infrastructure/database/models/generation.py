"""
Generation attempt and credit transaction database models.
"""

from typing import Optional
from uuid import uuid4

from sqlalchemy import ForeignKey, Index, Integer, String, Text, JSON
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from .base import Base, TimestampMixin


class GenerationLog(Base, TimestampMixin):
    """Tracks each AI generation attempt (one row per cover in a batch)."""

    __tablename__ = "generation_logs"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )

    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    project_id: Mapped[Optional[str]] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("projects.id", ondelete="SET NULL"),
        nullable=True,
        index=True,
    )

    resource_type: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    """Values: 'cover'"""

    status: Mapped[str] = mapped_column(String(50), nullable=False, index=True)
    """Values: 'started', 'success', 'failed'"""

    error_message: Mapped[Optional[str]] = mapped_column(Text, nullable=True)
    ai_model: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    duration_ms: Mapped[Optional[int]] = mapped_column(Integer, nullable=True)

    input_metadata: Mapped[Optional[dict]] = mapped_column(JSON, nullable=True)
    """
    Structure:
    {
        "prompt": "...",
        "style": "...",
        "attempt": 0,
        "batch_id": "..."
    }
    """

    __table_args__ = (
        Index("ix_generation_logs_user_resource", "user_id", "resource_type"),
        Index("ix_generation_logs_status_type", "status", "resource_type"),
    )

    def __repr__(self) -> str:
        return (
            f"<GenerationLog(id={self.id}, resource_type={self.resource_type}, "
            f"status={self.status}, user_id={self.user_id})>"
        )


class CreditTransactionKind:
    DEBIT = "debit"
    REFUND = "refund"
    GRANT = "grant"


class CreditTransaction(Base, TimestampMixin):
    """Append-only audit row for every applied credit ledger mutation."""

    __tablename__ = "credit_transactions"

    id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        primary_key=True,
        default=lambda: str(uuid4()),
    )
    user_id: Mapped[str] = mapped_column(
        UUID(as_uuid=False),
        ForeignKey("users.id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    kind: Mapped[str] = mapped_column(String(20), nullable=False)
    amount: Mapped[int] = mapped_column(Integer, nullable=False)
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)
    reason: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    """E.g. 'signup', 'upgrade:pro', 'purchase', 'cover_batch', 'cover_refund'"""

    reference_id: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)

    __table_args__ = (Index("ix_credit_transactions_user_created", "user_id", "created_at"),)

    def __repr__(self) -> str:
        return (
            f"<CreditTransaction(user_id={self.user_id}, kind={self.kind}, "
            f"amount={self.amount}, balance_after={self.balance_after})>"
        )
