"""
Billing, entitlement and credit request/response schemas.
"""

from datetime import datetime

from pydantic import BaseModel, Field


class TierLimitsResponse(BaseModel):
    """Effective quota and capability profile (-1 means unlimited)."""

    tier: str = Field(..., description="Tier the limits belong to (free, pro, enterprise)")
    max_projects: int
    max_exports_per_month: int
    max_chapters_per_project: int
    ai_credits_per_month: int
    can_export_pdf: bool
    can_export_epub: bool
    can_export_mobi: bool
    has_watermark: bool
    can_access_template_marketplace: bool
    can_access_premium_templates: bool
    max_storage_versions: int


class BillingInfoResponse(BaseModel):
    """Current plan, balance and usage for the authenticated user."""

    subscription_tier: str = Field(..., description="Stored subscription tier")
    effective_tier: str = Field(..., description="Tier in force; free once the plan has expired")
    ai_credits: int = Field(..., description="Spendable AI credits")
    lifetime_credits: int = Field(..., description="Credits ever granted")
    subscription_expires_at: datetime | None = None
    limits: TierLimitsResponse
    projects: int = Field(..., description="Projects owned")
    exports_this_month: int = Field(..., description="Exports created this calendar month")


class CreditPurchaseRequest(BaseModel):
    """Top up AI credits. Payment is confirmed before this call."""

    amount: int = Field(..., ge=1, le=1000, description="Credits to add (1-1000)")

    model_config = {"json_schema_extra": {"example": {"amount": 50}}}


class CreditBalanceResponse(BaseModel):
    ai_credits: int
    lifetime_credits: int


class UpgradeRequest(BaseModel):
    """Move to a higher subscription tier."""

    tier: str = Field(..., pattern="^(pro|enterprise)$", description="Target tier")


class UpgradeResponse(BaseModel):
    subscription_tier: str
    subscription_expires_at: datetime | None
    ai_credits: int
    lifetime_credits: int
