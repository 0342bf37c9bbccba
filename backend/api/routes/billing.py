"""
Billing API routes: entitlements, billing info, credit purchases and upgrades.
"""

import logging

from fastapi import APIRouter, Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from api.middleware.rate_limit import get_rate_limit, limiter
from api.routes.auth import get_current_user
from api.schemas.billing import (
    BillingInfoResponse,
    CreditBalanceResponse,
    CreditPurchaseRequest,
    TierLimitsResponse,
    UpgradeRequest,
    UpgradeResponse,
)
from infrastructure.database.connection import get_db
from infrastructure.database.models.user import User
from services.billing import BillingService
from services.entitlements import EntitlementService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/billing", tags=["Billing"])


@router.get("/entitlements", response_model=TierLimitsResponse)
async def get_entitlements(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Limits currently in force; an expired paid plan reports free limits."""
    limits = await EntitlementService(db).resolve_limits(current_user.id)
    return TierLimitsResponse(**limits.to_dict())


@router.get("/info", response_model=BillingInfoResponse)
async def get_billing_info(
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    info = await EntitlementService(db).get_billing_info(current_user.id)
    return BillingInfoResponse(
        subscription_tier=info.subscription_tier,
        effective_tier=info.effective_tier,
        ai_credits=info.ai_credits,
        lifetime_credits=info.lifetime_credits,
        subscription_expires_at=info.subscription_expires_at,
        limits=TierLimitsResponse(**info.limits.to_dict()),
        projects=info.projects,
        exports_this_month=info.exports_this_month,
    )


@router.post("/credits/purchase", response_model=CreditBalanceResponse)
@limiter.limit(get_rate_limit("credit_purchase"))
async def purchase_credits(
    request: Request,
    body: CreditPurchaseRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Add purchased credits to the balance and the lifetime total."""
    await BillingService(db).purchase_credits(current_user.id, body.amount)
    await db.commit()
    await db.refresh(current_user)
    logger.info(
        "User %s purchased %d credits",
        current_user.id,
        body.amount,
        extra={"user_id": current_user.id, "credits_remaining": current_user.ai_credits},
    )
    return CreditBalanceResponse(
        ai_credits=current_user.ai_credits,
        lifetime_credits=current_user.lifetime_credits,
    )


@router.post("/upgrade", response_model=UpgradeResponse)
@limiter.limit(get_rate_limit("subscription_upgrade"))
async def upgrade_subscription(
    request: Request,
    body: UpgradeRequest,
    current_user: User = Depends(get_current_user),
    db: AsyncSession = Depends(get_db),
):
    """Upgrade for one billing period and grant the new tier's monthly credits."""
    user = await BillingService(db).upgrade_subscription(current_user.id, body.tier)
    await db.commit()
    return UpgradeResponse(
        subscription_tier=user.subscription_tier,
        subscription_expires_at=user.subscription_expires,
        ai_credits=user.ai_credits,
        lifetime_credits=user.lifetime_credits,
    )
