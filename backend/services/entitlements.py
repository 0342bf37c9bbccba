"""
Entitlement service: resolves a user's effective tier limits and enforces
project, chapter, export and capability quotas.

Every check follows the same shape: resolve limits for the *effective* tier
(expired subscriptions collapse to free), compare a live count or capability
flag, and raise unless the limit is the UNLIMITED sentinel.
"""

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import CapabilityDeniedError, ForbiddenError, NotFoundError, QuotaExceededError
from core.plans import TierLimits, effective_tier, is_expired, limits_for, tier_rank, within_limit
from infrastructure.database.models.project import Chapter, Export, Project
from infrastructure.database.models.user import User

logger = logging.getLogger(__name__)


def month_start(now: Optional[datetime] = None) -> datetime:
    """First instant of the current UTC month."""
    now = now or datetime.now(timezone.utc)
    return datetime(now.year, now.month, 1, tzinfo=timezone.utc)


@dataclass
class BillingInfo:
    """Snapshot of a user's plan, balance and usage."""

    subscription_tier: str
    effective_tier: str
    ai_credits: int
    lifetime_credits: int
    subscription_expires_at: Optional[datetime]
    limits: TierLimits
    projects: int
    exports_this_month: int


class EntitlementService:
    """Reads plan state and enforces quotas. Never mutates anything."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def _get_user(self, user_id: str) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            raise NotFoundError("User not found")
        return user

    async def resolve_limits(self, user_id: str) -> TierLimits:
        """
        Currently effective limits for a user.

        Raises:
            NotFoundError: If the user does not exist.
        """
        user = await self._get_user(user_id)
        return limits_for(user.subscription_tier, user.subscription_expires)

    async def check_project_limit(self, user_id: str) -> None:
        limits = await self.resolve_limits(user_id)
        count = await self._scalar(
            select(func.count()).select_from(Project).where(Project.user_id == user_id)
        )
        if not within_limit(count, limits.max_projects):
            logger.warning("User %s reached project limit %d", user_id, limits.max_projects)
            raise QuotaExceededError(
                f"You have reached your project limit of {limits.max_projects}. "
                "Please upgrade to create more projects.",
                {"limit": limits.max_projects, "current": count},
            )

    async def check_chapter_limit(self, user_id: str, project_id: str) -> None:
        limits = await self.resolve_limits(user_id)
        count = await self._scalar(
            select(func.count()).select_from(Chapter).where(Chapter.project_id == project_id)
        )
        if not within_limit(count, limits.max_chapters_per_project):
            raise QuotaExceededError(
                f"This project has reached the limit of {limits.max_chapters_per_project} "
                "chapters for your plan.",
                {"limit": limits.max_chapters_per_project, "current": count},
            )

    async def count_exports_this_month(self, user_id: str) -> int:
        return await self._scalar(
            select(func.count())
            .select_from(Export)
            .join(Project, Export.project_id == Project.id)
            .where(Project.user_id == user_id, Export.generated_at >= month_start())
        )

    async def check_export_limit(self, user_id: str) -> None:
        limits = await self.resolve_limits(user_id)
        count = await self.count_exports_this_month(user_id)
        if not within_limit(count, limits.max_exports_per_month):
            raise QuotaExceededError(
                f"You have used all {limits.max_exports_per_month} exports for this month.",
                {"limit": limits.max_exports_per_month, "current": count},
            )

    async def check_export_format(self, user_id: str, fmt: str) -> TierLimits:
        """Raise CapabilityDeniedError unless the tier may export *fmt*."""
        limits = await self.resolve_limits(user_id)
        if not limits.allows_format(fmt):
            raise CapabilityDeniedError(
                f"Your subscription tier does not support {fmt.upper()} exports. "
                "Please upgrade to PRO or ENTERPRISE to access this format."
            )
        return limits

    async def check_template_access(self, user_id: str, premium: bool = False) -> None:
        limits = await self.resolve_limits(user_id)
        allowed = (
            limits.can_access_premium_templates if premium else limits.can_access_template_marketplace
        )
        if not allowed:
            raise CapabilityDeniedError("Your subscription tier does not include the template marketplace.")

    async def check_tier_entitlement(self, user_id: str, required_tier: str) -> None:
        """Require an unexpired subscription at or above *required_tier*."""
        user = await self._get_user(user_id)
        if is_expired(user.subscription_expires):
            raise ForbiddenError(
                "Your subscription has expired. Please renew to continue using premium features."
            )
        if tier_rank(user.subscription_tier) < tier_rank(required_tier):
            raise ForbiddenError(
                f"This feature requires a {required_tier.upper()} subscription. "
                "Please upgrade to continue."
            )

    async def get_billing_info(self, user_id: str) -> BillingInfo:
        user = await self._get_user(user_id)
        projects = await self._scalar(
            select(func.count()).select_from(Project).where(Project.user_id == user_id)
        )
        return BillingInfo(
            subscription_tier=user.subscription_tier,
            effective_tier=effective_tier(user.subscription_tier, user.subscription_expires),
            ai_credits=user.ai_credits,
            lifetime_credits=user.lifetime_credits,
            subscription_expires_at=user.subscription_expires,
            limits=limits_for(user.subscription_tier, user.subscription_expires),
            projects=projects,
            exports_this_month=await self.count_exports_this_month(user_id),
        )

    async def _scalar(self, stmt) -> int:
        result = await self.db.execute(stmt)
        value = result.scalar()
        return int(value) if value is not None else 0
