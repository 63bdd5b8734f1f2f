"""
Tests for merchant/category pacing tracking and combined auto-selection endpoints.
"""

from unittest.mock import patch

from tests.conftest import make_query, make_supabase
from tests.routes.conftest import TEST_USER_ID

MERCHANT_ROUTE = "budgenudge.routes.merchant_pacing"
CATEGORY_ROUTE = "budgenudge.routes.category_pacing"
PACING_ROUTE = "budgenudge.routes.pacing"


def _merchant_row(**overrides):
    row = {
        "id": "mt-1",
        "user_id": TEST_USER_ID,
        "ai_merchant_name": "Publix",
        "is_active": True,
        "auto_selected": False,
        "created_at": "2025-07-01T00:00:00Z",
        "updated_at": "2025-07-01T00:00:00Z",
    }
    row.update(overrides)
    return row


def _category_row(**overrides):
    row = {
        "id": "ct-1",
        "user_id": TEST_USER_ID,
        "ai_category": "Groceries",
        "is_active": True,
        "auto_selected": True,
    }
    row.update(overrides)
    return row


class TestMerchantTracking:

    def test_requires_auth(self, client):
        assert client.get("/merchant-pacing-tracking").status_code == 401

    def test_list(self, client, auth_user):
        supabase = make_supabase({"merchant_pacing_tracking": make_query([_merchant_row()])})

        with patch(f"{MERCHANT_ROUTE}.get_supabase_client", return_value=supabase) as get_client:
            response = client.get("/merchant-pacing-tracking")

        assert response.status_code == 200
        assert response.json()["count"] == 1
        assert response.json()["tracked_merchants"][0]["ai_merchant_name"] == "Publix"
        get_client.assert_called_once_with("fake-test-token")

    def test_track_merchant(self, client, auth_user):
        query = make_query([_merchant_row(is_active=False)])

        with patch(f"{MERCHANT_ROUTE}.get_supabase_client",
                   return_value=make_supabase({"merchant_pacing_tracking": query})):
            response = client.post("/merchant-pacing-tracking", json={"ai_merchant_name": "Publix", "is_active": False})

        assert response.status_code == 200
        assert response.json()["message"] == "Merchant tracking disabled for Publix"
        assert query.upsert.call_args.kwargs["on_conflict"] == "user_id,ai_merchant_name"

    def test_blank_merchant_name_returns_422(self, client, auth_user):
        response = client.post("/merchant-pacing-tracking", json={"ai_merchant_name": ""})

        assert response.status_code == 422

    def test_update_without_identifier_returns_422(self, client, auth_user):
        response = client.put("/merchant-pacing-tracking", json={"is_active": True})

        assert response.status_code == 422

    def test_update_missing_row_returns_404(self, client, auth_user):
        with patch(f"{MERCHANT_ROUTE}.get_supabase_client", return_value=make_supabase()):
            response = client.put("/merchant-pacing-tracking", json={"id": "mt-9", "is_active": False})

        assert response.status_code == 404
        assert response.json()["detail"]["error"] == "not_found"

    def test_delete_by_name(self, client, auth_user):
        query = make_query([_merchant_row()])

        with patch(f"{MERCHANT_ROUTE}.get_supabase_client",
                   return_value=make_supabase({"merchant_pacing_tracking": query})):
            response = client.delete("/merchant-pacing-tracking", params={"ai_merchant_name": "Publix"})

        assert response.status_code == 200
        assert response.json() == {"status": "DELETED", "message": "Merchant tracking removed for Publix"}
        query.eq.assert_any_call("ai_merchant_name", "Publix")

    def test_delete_without_identifier_returns_400(self, client, auth_user):
        response = client.delete("/merchant-pacing-tracking")

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "validation_error"

    def test_auto_select_status(self, client, auth_user):
        with patch(f"{MERCHANT_ROUTE}.get_supabase_client", return_value=make_supabase()):
            response = client.get("/merchant-pacing-tracking/auto-select")

        assert response.status_code == 200
        assert response.json()["needs_auto_selection"] is True

    def test_auto_select_skipped(self, client, auth_user):
        supabase = make_supabase({"merchant_pacing_tracking": make_query([_merchant_row()])})

        with patch(f"{MERCHANT_ROUTE}.get_supabase_client", return_value=supabase):
            response = client.post("/merchant-pacing-tracking/auto-select")

        assert response.status_code == 200
        assert response.json()["success"] is False
        assert response.json()["message"] == "User already has merchant tracking configured"

    def test_auto_select_failure_returns_500(self, client, auth_user):
        query = make_query([])
        query.execute.side_effect = Exception("timeout")

        with patch(f"{MERCHANT_ROUTE}.get_supabase_client",
                   return_value=make_supabase({"merchant_pacing_tracking": query})):
            response = client.post("/merchant-pacing-tracking/auto-select")

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "auto_select_error"


class TestCategoryTracking:

    def test_list(self, client, auth_user):
        supabase = make_supabase({"category_pacing_tracking": make_query([_category_row()])})

        with patch(f"{CATEGORY_ROUTE}.get_supabase_client", return_value=supabase):
            response = client.get("/category-pacing-tracking")

        assert response.status_code == 200
        assert response.json()["tracked_categories"][0]["auto_selected"] is True

    def test_track_category(self, client, auth_user):
        supabase = make_supabase({"category_pacing_tracking": make_query([_category_row()])})

        with patch(f"{CATEGORY_ROUTE}.get_supabase_client", return_value=supabase):
            response = client.post("/category-pacing-tracking", json={"ai_category": "Groceries"})

        assert response.status_code == 200
        assert response.json()["message"] == "Now tracking Groceries for pacing"

    def test_update_by_category(self, client, auth_user):
        query = make_query([_category_row(is_active=False)])

        with patch(f"{CATEGORY_ROUTE}.get_supabase_client",
                   return_value=make_supabase({"category_pacing_tracking": query})):
            response = client.put("/category-pacing-tracking", json={"ai_category": "Groceries", "is_active": False})

        assert response.status_code == 200
        assert response.json()["category_tracking"]["is_active"] is False
        query.eq.assert_any_call("ai_category", "Groceries")

    def test_delete_without_identifier_returns_400(self, client, auth_user):
        response = client.delete("/category-pacing-tracking")

        assert response.status_code == 400

    def test_database_error_returns_500(self, client, auth_user):
        query = make_query([])
        query.execute.side_effect = Exception("timeout")

        with patch(f"{CATEGORY_ROUTE}.get_supabase_client",
                   return_value=make_supabase({"category_pacing_tracking": query})):
            response = client.get("/category-pacing-tracking")

        assert response.status_code == 500
        assert response.json()["detail"]["error"] == "fetch_error"


class TestCombinedAutoSelect:

    def test_no_accounts(self, client, auth_user):
        with patch(f"{PACING_ROUTE}.get_supabase_client", return_value=make_supabase()):
            response = client.post("/auto-select-pacing")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "No accounts connected yet - auto-selection skipped"
        assert data["merchant_result"] is None
        assert data["summary"]["total_selected"] == 0

    def test_both_halves_report(self, client, auth_user):
        supabase = make_supabase({
            "items": make_query([{"plaid_item_id": "item-1"}]),
            "merchant_pacing_tracking": make_query([_merchant_row()]),
            "category_pacing_tracking": make_query([_category_row()]),
        })

        with patch(f"{PACING_ROUTE}.get_supabase_client", return_value=supabase):
            response = client.post("/auto-select-pacing")

        assert response.status_code == 200
        data = response.json()
        assert data["message"] == "Auto-selection completed: 0 items selected"
        assert data["merchant_result"]["success"] is False
        assert data["category_result"]["message"] == "User already has category pacing tracking configured"
