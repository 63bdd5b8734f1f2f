"""
Tests for /tagged-merchants (recurring bill) endpoints.
"""

from datetime import date, timedelta
from unittest.mock import patch

from postgrest.exceptions import APIError

from tests.conftest import make_query, make_supabase
from tests.routes.conftest import TEST_USER_ID

ROUTE = "budgenudge.routes.tagged_merchants"


def _bill(**overrides):
    row = {
        "id": "tm-1",
        "user_id": TEST_USER_ID,
        "merchant_name": "Netflix",
        "expected_amount": "15.99",
        "prediction_frequency": "monthly",
        "next_predicted_date": "2025-08-01",
        "confidence_score": 90,
        "is_active": True,
        "auto_detected": False,
    }
    row.update(overrides)
    return row


class TestListAndCreate:

    def test_list(self, client, auth_user):
        supabase = make_supabase({"tagged_merchants": make_query([_bill()])})

        with patch(f"{ROUTE}.get_supabase_client", return_value=supabase):
            response = client.get("/tagged-merchants")

        assert response.status_code == 200
        data = response.json()
        assert data["count"] == 1
        assert data["tagged_merchants"][0]["expected_amount"] == 15.99

    def test_create(self, client, auth_user):
        query = make_query([_bill()])

        with patch(f"{ROUTE}.get_supabase_client", return_value=make_supabase({"tagged_merchants": query})):
            response = client.post("/tagged-merchants", json={
                "merchant_name": "  Netflix ",
                "expected_amount": 15.99,
                "prediction_frequency": "monthly",
            })

        assert response.status_code == 201
        assert response.json()["message"] == "Successfully tagged Netflix as recurring"
        inserted = query.insert.call_args[0][0]
        assert inserted["merchant_name"] == "Netflix"
        assert inserted["user_id"] == TEST_USER_ID

    def test_duplicate_returns_409(self, client, auth_user):
        query = make_query([])
        query.execute.side_effect = APIError({
            "message": "duplicate key value violates unique constraint",
            "code": "23505",
            "details": None,
            "hint": None,
        })

        with patch(f"{ROUTE}.get_supabase_client", return_value=make_supabase({"tagged_merchants": query})):
            response = client.post("/tagged-merchants", json={
                "merchant_name": "Netflix",
                "expected_amount": 15.99,
                "prediction_frequency": "monthly",
            })

        assert response.status_code == 409
        assert response.json()["detail"]["error"] == "conflict"

    def test_invalid_frequency_returns_422(self, client, auth_user):
        response = client.post("/tagged-merchants", json={
            "merchant_name": "Netflix",
            "expected_amount": 15.99,
            "prediction_frequency": "yearly",
        })

        assert response.status_code == 422

    def test_non_positive_amount_returns_422(self, client, auth_user):
        response = client.post("/tagged-merchants", json={
            "merchant_name": "Netflix",
            "expected_amount": 0,
            "prediction_frequency": "monthly",
        })

        assert response.status_code == 422


class TestUpcomingAndPredictions:

    def test_upcoming(self, client, auth_user):
        soon = (date.today() + timedelta(days=3)).isoformat()
        later = (date.today() + timedelta(days=20)).isoformat()
        supabase = make_supabase({"tagged_merchants": make_query([
            _bill(id="a", merchant_name="Gym", expected_amount=40, next_predicted_date=later),
            _bill(id="b", merchant_name="Phone", expected_amount=65.5, next_predicted_date=soon),
            _bill(id="c", merchant_name="Old", next_predicted_date=date.today().isoformat()),
        ])})

        with patch(f"{ROUTE}.get_supabase_client", return_value=supabase):
            response = client.get("/tagged-merchants/upcoming")

        assert response.status_code == 200
        data = response.json()
        assert [b["merchant_name"] for b in data["bills"]] == ["Phone", "Gym"]
        assert data["total_next_7_days"] == 65.5
        assert data["total_next_30_days"] == 105.5

    def test_update_predictions_without_bills(self, client, auth_user):
        with patch(f"{ROUTE}.get_supabase_client", return_value=make_supabase()):
            response = client.post("/tagged-merchants/update-predictions")

        assert response.status_code == 200
        assert response.json() == {"message": "No active merchants found", "updated_count": 0, "updates": []}

    def test_auto_detect_uses_threshold(self, client, auth_user):
        with patch(f"{ROUTE}.get_supabase_client", return_value=make_supabase()):
            response = client.post("/tagged-merchants/auto-detect", json={"confidence_threshold": 70})

        assert response.status_code == 200
        data = response.json()
        assert data["confidence_threshold"] == 70
        assert data["analysis_period_days"] == 90
        assert data["message"] == "No connected accounts found"

    def test_auto_detect_without_body(self, client, auth_user):
        with patch(f"{ROUTE}.get_supabase_client", return_value=make_supabase()):
            response = client.post("/tagged-merchants/auto-detect")

        assert response.status_code == 200
        assert response.json()["confidence_threshold"] == 85


class TestUpdateAndDelete:

    def test_patch(self, client, auth_user):
        query = make_query([_bill(is_active=False)])

        with patch(f"{ROUTE}.get_supabase_client", return_value=make_supabase({"tagged_merchants": query})):
            response = client.patch("/tagged-merchants/tm-1", json={"is_active": False})

        assert response.status_code == 200
        assert response.json()["tagged_merchant"]["is_active"] is False
        query.update.assert_called_once_with({"is_active": False})

    def test_patch_empty_body_returns_400(self, client, auth_user):
        response = client.patch("/tagged-merchants/tm-1", json={})

        assert response.status_code == 400
        assert response.json()["detail"]["error"] == "validation_error"

    def test_patch_missing_returns_404(self, client, auth_user):
        with patch(f"{ROUTE}.get_supabase_client", return_value=make_supabase()):
            response = client.patch("/tagged-merchants/tm-9", json={"confidence_score": 50})

        assert response.status_code == 404

    def test_delete(self, client, auth_user):
        supabase = make_supabase({"tagged_merchants": make_query([_bill()])})

        with patch(f"{ROUTE}.get_supabase_client", return_value=supabase):
            response = client.delete("/tagged-merchants/tm-1")

        assert response.status_code == 200
        assert response.json() == {
            "status": "DELETED",
            "merchant_id": "tm-1",
            "message": "Successfully removed Netflix from recurring bills",
        }

    def test_delete_missing_returns_404(self, client, auth_user):
        with patch(f"{ROUTE}.get_supabase_client", return_value=make_supabase()):
            response = client.delete("/tagged-merchants/tm-9")

        assert response.status_code == 404
