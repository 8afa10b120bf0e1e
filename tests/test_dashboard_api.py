"""Tests for /api/v1/dashboard and /api/v1/health."""
from decimal import Decimal

import pytest

from app.core.startup import ensure_sample_customers


class TestDashboard:

    @pytest.mark.asyncio
    async def test_dashboard_summary_after_payment(self, client, database):
        assert await ensure_sample_customers(database) == 3
        posted = await client.post("/api/v1/payments/", json={"account_number": "ACC001", "payment_amount": "5000.00"})
        assert posted.status_code == 201

        response = await client.get("/api/v1/dashboard/")

        assert response.status_code == 200
        stats = response.json()["summary_stats"]
        assert stats["active_customers"] == 3
        assert Decimal(stats["collected_this_month"]) == Decimal("5000.00")
        assert Decimal(stats["total_outstanding"]) == Decimal("505000.00")
        assert stats["successful_transactions"] == 1
        recent = response.json()["recent_payments"]
        assert len(recent) == 1
        assert recent[0]["customer_name"] == "Rahul Kumar"

    @pytest.mark.asyncio
    async def test_empty_dashboard(self, client):
        body = (await client.get("/api/v1/dashboard/")).json()

        assert body["summary_stats"]["active_customers"] == 0
        assert Decimal(body["summary_stats"]["total_outstanding"]) == Decimal("0.00")
        assert body["recent_payments"] == []


class TestHealth:

    @pytest.mark.asyncio
    async def test_health_check(self, client):
        response = await client.get("/api/v1/health/")

        assert response.status_code == 200
        assert response.json()["status"] == "ok"
        assert "timestamp" in response.json()
