"""
Unit tests for tier limit profiles and effective-tier resolution.
"""

from datetime import datetime, timedelta, timezone

import pytest

from core.plans import (
    ENTERPRISE,
    FREE,
    PRO,
    TIER_LIMITS,
    UNLIMITED,
    effective_tier,
    is_expired,
    limits_for,
    tier_rank,
    within_limit,
)

NOW = datetime(2026, 3, 15, 12, 0, tzinfo=timezone.utc)


class TestTierLimits:
    def test_free_tier_profile(self):
        free = TIER_LIMITS[FREE]
        assert free.max_projects == 3
        assert free.max_exports_per_month == 5
        assert free.max_chapters_per_project == 20
        assert free.ai_credits_per_month == 10
        assert free.has_watermark is True
        assert free.max_storage_versions == 3

    def test_free_tier_exports_epub_only(self):
        free = TIER_LIMITS[FREE]
        assert free.allows_format("epub")
        assert not free.allows_format("pdf")
        assert not free.allows_format("mobi")

    def test_pro_tier_profile(self):
        pro = TIER_LIMITS[PRO]
        assert pro.max_projects == 20
        assert pro.max_exports_per_month == 50
        assert pro.max_chapters_per_project == 100
        assert pro.ai_credits_per_month == 100
        assert pro.has_watermark is False
        assert all(pro.allows_format(f) for f in ("pdf", "epub", "mobi"))

    def test_enterprise_numeric_quotas_are_unlimited(self):
        ent = TIER_LIMITS[ENTERPRISE]
        assert ent.max_projects == UNLIMITED
        assert ent.max_exports_per_month == UNLIMITED
        assert ent.max_chapters_per_project == UNLIMITED
        assert ent.max_storage_versions == UNLIMITED
        assert ent.ai_credits_per_month == 500

    def test_unknown_format_denied_everywhere(self):
        for limits in TIER_LIMITS.values():
            assert not limits.allows_format("docx")

    def test_format_check_is_case_insensitive(self):
        assert TIER_LIMITS[PRO].allows_format("PDF")

    def test_limits_are_immutable(self):
        with pytest.raises(Exception):
            TIER_LIMITS[FREE].max_projects = 99

    def test_to_dict_contains_every_field(self):
        data = TIER_LIMITS[PRO].to_dict()
        assert data["tier"] == PRO
        assert data["can_access_premium_templates"] is True
        assert len(data) == 12


class TestEffectiveTier:
    def test_no_expiry_keeps_stored_tier(self):
        assert effective_tier(PRO, None, NOW) == PRO

    def test_future_expiry_keeps_stored_tier(self):
        assert effective_tier(PRO, NOW + timedelta(days=1), NOW) == PRO

    def test_past_expiry_collapses_to_free(self):
        assert effective_tier(ENTERPRISE, NOW - timedelta(seconds=1), NOW) == FREE

    def test_unknown_tier_collapses_to_free(self):
        assert effective_tier("platinum", None, NOW) == FREE
        assert effective_tier(None, None, NOW) == FREE

    def test_naive_expiry_is_treated_as_utc(self):
        naive_past = (NOW - timedelta(hours=1)).replace(tzinfo=None)
        assert is_expired(naive_past, NOW)

    def test_limits_for_expired_pro_are_free_limits(self):
        limits = limits_for(PRO, NOW - timedelta(days=3), NOW)
        assert limits == TIER_LIMITS[FREE]


class TestWithinLimit:
    @pytest.mark.parametrize(
        "current,limit,expected",
        [
            (0, 3, True),
            (2, 3, True),
            (3, 3, False),
            (10_000, UNLIMITED, True),
            (0, 0, False),
        ],
    )
    def test_within_limit(self, current, limit, expected):
        assert within_limit(current, limit) is expected


def test_tier_rank_orders_tiers():
    assert tier_rank(FREE) < tier_rank(PRO) < tier_rank(ENTERPRISE)
    assert tier_rank("bogus") == tier_rank(FREE)
