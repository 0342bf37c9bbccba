"""
SQLAlchemy database models.
"""

from .base import Base, TimestampMixin
from .generation import CreditTransaction, CreditTransactionKind, GenerationLog
from .project import Chapter, Export, ExportFormat, Project
from .user import SubscriptionTier, User, UserStatus

__all__ = [
    "Base",
    "TimestampMixin",
    "User",
    "UserStatus",
    "SubscriptionTier",
    "Project",
    "Chapter",
    "Export",
    "ExportFormat",
    "GenerationLog",
    "CreditTransaction",
    "CreditTransactionKind",
]
