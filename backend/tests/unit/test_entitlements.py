"""
Unit tests for EntitlementService against an in-memory SQLite database.
"""

from datetime import UTC, datetime, timedelta
from uuid import uuid4

import pytest

from core.errors import CapabilityDeniedError, ForbiddenError, NotFoundError, QuotaExceededError
from core.plans import ENTERPRISE, FREE, PRO, TIER_LIMITS
from infrastructure.database.models import Chapter, Export
from services.entitlements import EntitlementService, month_start


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


async def _add_chapters(db_session, project, n):
    for i in range(n):
        db_session.add(Chapter(project_id=project.id, title=f"Chapter {i + 1}", content="", order=i + 1))
    await db_session.commit()


async def _add_exports(db_session, project, n, when=None):
    for _ in range(n):
        export = Export(project_id=project.id, format="epub", has_watermark=True)
        if when is not None:
            export.generated_at = when
        db_session.add(export)
    await db_session.commit()


# ---------------------------------------------------------------------------
# Tests: resolve_limits
# ---------------------------------------------------------------------------


class TestResolveLimits:
    async def test_unknown_user_raises_not_found(self, db_session):
        with pytest.raises(NotFoundError):
            await EntitlementService(db_session).resolve_limits(str(uuid4()))

    async def test_active_pro_gets_pro_limits(self, db_session, make_user):
        user = await make_user(tier=PRO, expires_in_days=10)
        limits = await EntitlementService(db_session).resolve_limits(user.id)
        assert limits == TIER_LIMITS[PRO]

    async def test_expired_pro_gets_free_limits(self, db_session, make_user):
        user = await make_user(tier=PRO, expires_in_days=-1)
        limits = await EntitlementService(db_session).resolve_limits(user.id)
        assert limits == TIER_LIMITS[FREE]


# ---------------------------------------------------------------------------
# Tests: quota checks
# ---------------------------------------------------------------------------


class TestProjectLimit:
    async def test_free_user_blocked_at_three_projects(self, db_session, make_user, make_project):
        user = await make_user()
        service = EntitlementService(db_session)
        for i in range(3):
            await service.check_project_limit(user.id)
            await make_project(user, title=f"Book {i}")

        with pytest.raises(QuotaExceededError) as exc_info:
            await service.check_project_limit(user.id)
        assert exc_info.value.context == {"limit": 3, "current": 3}

    async def test_enterprise_is_never_blocked(self, db_session, make_user, make_project):
        user = await make_user(tier=ENTERPRISE)
        for i in range(25):
            await make_project(user, title=f"Book {i}")
        await EntitlementService(db_session).check_project_limit(user.id)

    async def test_lapsed_pro_with_many_projects_is_blocked(self, db_session, make_user, make_project):
        user = await make_user(tier=PRO, expires_in_days=-2)
        for i in range(5):
            await make_project(user, title=f"Book {i}")
        with pytest.raises(QuotaExceededError):
            await EntitlementService(db_session).check_project_limit(user.id)


class TestChapterLimit:
    async def test_free_project_blocked_at_twenty_chapters(self, db_session, test_user, test_project):
        await _add_chapters(db_session, test_project, 20)
        with pytest.raises(QuotaExceededError):
            await EntitlementService(db_session).check_chapter_limit(test_user.id, test_project.id)

    async def test_below_limit_passes(self, db_session, test_user, test_project):
        await _add_chapters(db_session, test_project, 19)
        await EntitlementService(db_session).check_chapter_limit(test_user.id, test_project.id)


class TestExportChecks:
    async def test_free_user_cannot_export_pdf(self, db_session, test_user):
        with pytest.raises(CapabilityDeniedError) as exc_info:
            await EntitlementService(db_session).check_export_format(test_user.id, "pdf")
        assert "PDF" in exc_info.value.message

    async def test_free_user_can_export_epub_with_watermark(self, db_session, test_user):
        limits = await EntitlementService(db_session).check_export_format(test_user.id, "epub")
        assert limits.has_watermark is True

    async def test_unknown_format_denied(self, db_session, make_user):
        user = await make_user(tier=ENTERPRISE)
        with pytest.raises(CapabilityDeniedError):
            await EntitlementService(db_session).check_export_format(user.id, "docx")

    async def test_monthly_export_quota(self, db_session, test_user, test_project):
        await _add_exports(db_session, test_project, 5)
        with pytest.raises(QuotaExceededError):
            await EntitlementService(db_session).check_export_limit(test_user.id)

    async def test_last_month_exports_do_not_count(self, db_session, test_user, test_project):
        last_month = month_start() - timedelta(days=1)
        await _add_exports(db_session, test_project, 5, when=last_month)
        service = EntitlementService(db_session)
        assert await service.count_exports_this_month(test_user.id) == 0
        await service.check_export_limit(test_user.id)

    async def test_exports_of_other_users_do_not_count(self, db_session, make_user, make_project, test_user):
        other = await make_user()
        other_project = await make_project(other)
        await _add_exports(db_session, other_project, 5)
        await EntitlementService(db_session).check_export_limit(test_user.id)


class TestCapabilities:
    async def test_free_user_has_no_template_marketplace(self, db_session, test_user):
        with pytest.raises(CapabilityDeniedError):
            await EntitlementService(db_session).check_template_access(test_user.id)

    async def test_pro_user_has_premium_templates(self, db_session, make_user):
        user = await make_user(tier=PRO, expires_in_days=5)
        await EntitlementService(db_session).check_template_access(user.id, premium=True)

    async def test_tier_entitlement_rejects_lower_tier(self, db_session, make_user):
        user = await make_user(tier=PRO)
        with pytest.raises(ForbiddenError):
            await EntitlementService(db_session).check_tier_entitlement(user.id, ENTERPRISE)

    async def test_tier_entitlement_accepts_higher_tier(self, db_session, make_user):
        user = await make_user(tier=ENTERPRISE)
        await EntitlementService(db_session).check_tier_entitlement(user.id, PRO)

    async def test_tier_entitlement_rejects_expired(self, db_session, make_user):
        user = await make_user(tier=ENTERPRISE, expires_in_days=-1)
        with pytest.raises(ForbiddenError) as exc_info:
            await EntitlementService(db_session).check_tier_entitlement(user.id, PRO)
        assert "expired" in exc_info.value.message


class TestBillingInfo:
    async def test_billing_info_reports_usage(self, db_session, make_user, make_project):
        user = await make_user(tier=PRO, credits=42, expires_in_days=-1)
        project = await make_project(user)
        await _add_exports(db_session, project, 2)

        info = await EntitlementService(db_session).get_billing_info(user.id)

        assert info.subscription_tier == PRO
        assert info.effective_tier == FREE
        assert info.ai_credits == 42
        assert info.limits == TIER_LIMITS[FREE]
        assert info.projects == 1
        assert info.exports_this_month == 2


def test_month_start_is_first_of_month_utc():
    start = month_start(datetime(2026, 7, 19, 8, 30, tzinfo=UTC))
    assert start == datetime(2026, 7, 1, tzinfo=UTC)
