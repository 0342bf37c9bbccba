"""
Integration tests for billing API routes.

Covers:
- Effective entitlements (expired plans report free limits)
- Billing info
- Credit purchases
- Subscription upgrades
"""

import pytest
from fastapi import status
from httpx import AsyncClient

pytestmark = pytest.mark.asyncio


class TestEntitlementsEndpoint:
    """Tests for GET /billing/entitlements."""

    async def test_requires_authentication(self, async_client: AsyncClient):
        response = await async_client.get("/api/v1/billing/entitlements")

        assert response.status_code == status.HTTP_401_UNAUTHORIZED
        assert response.headers["www-authenticate"] == "Bearer"
        assert response.json()["code"] == "unauthenticated"

    async def test_free_user_limits(self, async_client: AsyncClient, auth_headers):
        response = await async_client.get("/api/v1/billing/entitlements", headers=auth_headers)

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["tier"] == "free"
        assert data["max_projects"] == 3
        assert data["can_export_pdf"] is False
        assert data["has_watermark"] is True

    async def test_enterprise_unlimited_is_minus_one(self, async_client: AsyncClient, make_user, headers_for):
        user = await make_user(tier="enterprise")
        response = await async_client.get("/api/v1/billing/entitlements", headers=headers_for(user))

        data = response.json()
        assert data["max_projects"] == -1
        assert data["ai_credits_per_month"] == 500

    async def test_expired_pro_gets_free_limits(self, async_client: AsyncClient, make_user, headers_for):
        user = await make_user(tier="pro", expires_in_days=-1)
        response = await async_client.get("/api/v1/billing/entitlements", headers=headers_for(user))

        data = response.json()
        assert data["tier"] == "free"
        assert data["max_projects"] == 3
        assert data["can_export_pdf"] is False


class TestBillingInfoEndpoint:
    async def test_reports_stored_and_effective_tier(
        self, async_client: AsyncClient, make_user, make_project, headers_for
    ):
        user = await make_user(tier="pro", credits=42, expires_in_days=-1)
        await make_project(user)

        response = await async_client.get("/api/v1/billing/info", headers=headers_for(user))

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["subscription_tier"] == "pro"
        assert data["effective_tier"] == "free"
        assert data["ai_credits"] == 42
        assert data["projects"] == 1
        assert data["exports_this_month"] == 0
        assert data["limits"]["tier"] == "free"


class TestCreditPurchase:
    async def test_purchase_adds_to_balance(self, async_client: AsyncClient, auth_headers):
        response = await async_client.post(
            "/api/v1/billing/credits/purchase", json={"amount": 50}, headers=auth_headers
        )

        assert response.status_code == status.HTTP_200_OK
        assert response.json() == {"ai_credits": 60, "lifetime_credits": 60}

    @pytest.mark.parametrize("amount", [0, 1001])
    async def test_amount_out_of_range(self, async_client: AsyncClient, auth_headers, amount):
        response = await async_client.post(
            "/api/v1/billing/credits/purchase", json={"amount": amount}, headers=auth_headers
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY


class TestUpgrade:
    async def test_upgrade_to_pro(self, async_client: AsyncClient, auth_headers):
        response = await async_client.post(
            "/api/v1/billing/upgrade", json={"tier": "pro"}, headers=auth_headers
        )

        assert response.status_code == status.HTTP_200_OK
        data = response.json()
        assert data["subscription_tier"] == "pro"
        assert data["ai_credits"] == 110
        assert data["subscription_expires_at"] is not None

        limits = await async_client.get("/api/v1/billing/entitlements", headers=auth_headers)
        assert limits.json()["tier"] == "pro"

    async def test_downgrade_rejected(self, async_client: AsyncClient, make_user, headers_for):
        user = await make_user(tier="enterprise", expires_in_days=20)
        response = await async_client.post(
            "/api/v1/billing/upgrade", json={"tier": "pro"}, headers=headers_for(user)
        )

        assert response.status_code == status.HTTP_400_BAD_REQUEST
        assert response.json()["code"] == "invalid_request"

    async def test_unknown_tier_is_validation_error(self, async_client: AsyncClient, auth_headers):
        response = await async_client.post(
            "/api/v1/billing/upgrade", json={"tier": "platinum"}, headers=auth_headers
        )
        assert response.status_code == status.HTTP_422_UNPROCESSABLE_ENTITY
