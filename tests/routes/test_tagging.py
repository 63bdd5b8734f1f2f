"""
Tests for the AI tagging status endpoint and the auto-tagging cron job.
"""

from unittest.mock import patch

from tests.conftest import make_query, make_supabase

ROUTE = "budgenudge.routes.tagging"


class TestTaggingStatus:

    def test_requires_auth(self, client):
        assert client.get("/ai-tagging-status").status_code == 401

    def test_reports_status(self, client, auth_user):
        with patch(f"{ROUTE}.get_supabase_client", return_value=make_supabase()):
            response = client.get("/ai-tagging-status")

        assert response.status_code == 200
        data = response.json()
        assert data["success"] is True
        assert data["timestamp"]
        assert data["overall_stats"]["health_status"] == "CRITICAL"
        assert len(data["daily_trends"]) == 7

    def test_database_error_returns_500(self, client, auth_user):
        items = make_query([])
        items.execute.side_effect = Exception("timeout")

        with patch(f"{ROUTE}.get_supabase_client", return_value=make_supabase({"items": items})):
            response = client.get("/ai-tagging-status")

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "status_error"


class TestCronAutoTag:

    def test_rejects_missing_secret(self, client):
        response = client.post("/cron/auto-ai-tag")

        assert response.status_code == 401

    def test_rejects_wrong_secret(self, client):
        response = client.post("/cron/auto-ai-tag", headers={"Authorization": "Bearer nope"})

        assert response.status_code == 401
        assert response.json()["detail"]["details"] == "Invalid cron secret"

    def test_runs_with_secret(self, client):
        with patch(f"{ROUTE}.get_service_role_client", return_value=make_supabase()):
            response = client.post("/cron/auto-ai-tag", headers={"Authorization": "Bearer test-cron-secret"})

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "No untagged transactions found"
        assert data["stats"]["processed"] == 0

    def test_accepts_platform_cron_header(self, client):
        with patch(f"{ROUTE}.get_service_role_client", return_value=make_supabase()):
            response = client.post("/cron/auto-ai-tag", headers={"x-vercel-cron": "1"})

        assert response.status_code == 200

    def test_tags_with_service_role(self, client):
        service_client = make_supabase({
            "transactions": make_query([{"id": "t1", "merchant_name": None, "name": "SHELL OIL", "amount": 40}]),
        })

        with patch(f"{ROUTE}.get_service_role_client", return_value=service_client), \
             patch("budgenudge.services.tagging_service.asyncio.sleep"):
            response = client.post("/cron/auto-ai-tag", headers={"Authorization": "Bearer test-cron-secret"})

        assert response.status_code == 200
        assert response.json()["stats"] == {
            "total_untagged_found": 1,
            "processed": 1,
            "cached": 0,
            "api_calls": 1,
            "new_merchants_cached": 1,
        }

    def test_missing_service_key_returns_500(self, client):
        with patch(f"{ROUTE}.get_service_role_client", side_effect=ValueError("SUPABASE_SECRET_KEY is not configured")):
            response = client.post("/cron/auto-ai-tag", headers={"Authorization": "Bearer test-cron-secret"})

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "tagging_error"
