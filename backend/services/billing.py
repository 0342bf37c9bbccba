"""
Billing service: signup credits, subscription upgrades and credit purchases.

Payment processing is handled upstream; by the time these methods run the
charge has been accepted, so they only change plan state and grant credits.
"""

import logging
from datetime import datetime, timedelta, timezone

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from core.errors import InvalidRequestError, NotFoundError
from core.plans import FREE, TIER_LIMITS, is_expired, tier_rank
from infrastructure.config.settings import settings
from infrastructure.database.models.user import User
from services.credit_ledger import CreditLedger

logger = logging.getLogger(__name__)

MAX_CREDIT_PURCHASE = 1000


class BillingService:
    """Plan changes and credit top-ups, all routed through the credit ledger."""

    def __init__(self, db: AsyncSession):
        self.db = db
        self.ledger = CreditLedger(db)

    async def grant_signup_credits(self, user_id: str) -> int:
        """Initial allowance for a freshly created account."""
        return await self.ledger.grant(user_id, settings.signup_credits, reason="signup")

    async def purchase_credits(self, user_id: str, amount: int) -> int:
        if not 1 <= amount <= MAX_CREDIT_PURCHASE:
            raise InvalidRequestError(
                f"Credit purchases must be between 1 and {MAX_CREDIT_PURCHASE} credits"
            )
        return await self.ledger.grant(user_id, amount, reason="purchase")

    async def upgrade_subscription(self, user_id: str, new_tier: str) -> User:
        """
        Move a user to a higher tier for one billing period and grant that
        tier's monthly credits.

        Raises:
            InvalidRequestError: For unknown tiers or non-upgrades.
            NotFoundError: If the user does not exist.
        """
        if new_tier not in TIER_LIMITS or new_tier == FREE:
            raise InvalidRequestError(f"Unknown subscription tier: {new_tier}")

        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            raise NotFoundError("User not found")

        # An expired paid plan counts as free, so re-subscribing is allowed
        current = FREE if is_expired(user.subscription_expires) else user.subscription_tier
        if tier_rank(new_tier) <= tier_rank(current):
            raise InvalidRequestError("Cannot downgrade subscription through this endpoint")

        user.subscription_tier = new_tier
        user.subscription_expires = datetime.now(timezone.utc) + timedelta(
            days=settings.subscription_period_days
        )
        await self.db.flush()

        await self.ledger.grant(
            user_id,
            TIER_LIMITS[new_tier].ai_credits_per_month,
            reason=f"upgrade:{new_tier}",
        )
        await self.db.refresh(user)
        logger.info("User %s upgraded to %s", user_id, new_tier, extra={"user_id": user_id})
        return user
