"""
Plan configuration for subscription tiers.

This module is the single source of truth for plan limits and features.
It lives in core/ so both service and API layers can import from it
without creating circular dependencies.
"""

from dataclasses import asdict, dataclass
from datetime import datetime, timezone
from typing import Optional

# Sentinel for "no limit" on any numeric quota
UNLIMITED = -1

FREE = "free"
PRO = "pro"
ENTERPRISE = "enterprise"

# Lowest first; used for upgrade and tier-entitlement comparisons
TIER_ORDER = (FREE, PRO, ENTERPRISE)


@dataclass(frozen=True)
class TierLimits:
    """Immutable quota and capability profile for one tier."""

    tier: str
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

    def allows_format(self, fmt: str) -> bool:
        """Return True if this tier may export *fmt*; unknown formats are denied."""
        flags = {
            "pdf": self.can_export_pdf,
            "epub": self.can_export_epub,
            "mobi": self.can_export_mobi,
        }
        return flags.get(fmt.lower(), False)

    def to_dict(self) -> dict:
        return asdict(self)


TIER_LIMITS: dict[str, TierLimits] = {
    FREE: TierLimits(
        tier=FREE,
        max_projects=3,
        max_exports_per_month=5,
        max_chapters_per_project=20,
        ai_credits_per_month=10,
        can_export_pdf=False,
        can_export_epub=True,
        can_export_mobi=False,
        has_watermark=True,
        can_access_template_marketplace=False,
        can_access_premium_templates=False,
        max_storage_versions=3,
    ),
    PRO: TierLimits(
        tier=PRO,
        max_projects=20,
        max_exports_per_month=50,
        max_chapters_per_project=100,
        ai_credits_per_month=100,
        can_export_pdf=True,
        can_export_epub=True,
        can_export_mobi=True,
        has_watermark=False,
        can_access_template_marketplace=True,
        can_access_premium_templates=True,
        max_storage_versions=20,
    ),
    ENTERPRISE: TierLimits(
        tier=ENTERPRISE,
        max_projects=UNLIMITED,
        max_exports_per_month=UNLIMITED,
        max_chapters_per_project=UNLIMITED,
        ai_credits_per_month=500,
        can_export_pdf=True,
        can_export_epub=True,
        can_export_mobi=True,
        has_watermark=False,
        can_access_template_marketplace=True,
        can_access_premium_templates=True,
        max_storage_versions=UNLIMITED,
    ),
}


def is_expired(expires_at: Optional[datetime], now: Optional[datetime] = None) -> bool:
    """True when *expires_at* is set and already in the past."""
    if expires_at is None:
        return False
    # SQLite hands back naive datetimes; everything is stored as UTC
    if expires_at.tzinfo is None:
        expires_at = expires_at.replace(tzinfo=timezone.utc)
    return expires_at < (now or datetime.now(timezone.utc))


def effective_tier(
    stored_tier: Optional[str],
    expires_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> str:
    """Collapse an expired or unknown subscription to the free tier."""
    if is_expired(expires_at, now):
        return FREE
    return stored_tier if stored_tier in TIER_LIMITS else FREE


def limits_for(
    stored_tier: Optional[str],
    expires_at: Optional[datetime],
    now: Optional[datetime] = None,
) -> TierLimits:
    """Limits for the tier a user is effectively on right now."""
    return TIER_LIMITS[effective_tier(stored_tier, expires_at, now)]


def within_limit(current: int, limit: int) -> bool:
    """True if one more unit fits under *limit*."""
    return limit == UNLIMITED or current < limit


def tier_rank(tier: str) -> int:
    return TIER_ORDER.index(tier) if tier in TIER_ORDER else 0
