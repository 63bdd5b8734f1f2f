"""
Tests for POST /adf/classify.

No API key is configured in tests, so classification uses keyword rules.
"""

from unittest.mock import patch

ROUTE = "budgenudge.routes.adf"


def test_requires_auth(client):
    response = client.post("/adf/classify", json={"transactions": [{"name": "Netflix", "amount": 15.99}]})

    assert response.status_code == 401


def test_classifies_and_summarizes(client, auth_user):
    response = client.post("/adf/classify", json={
        "days": 10,
        "transactions": [
            {"name": "NETFLIX.COM", "amount": 20, "ai_merchant_name": "Netflix", "ai_category_tag": "Subscription"},
            {"name": "STARBUCKS #42", "amount": 30, "ai_merchant_name": "Starbucks", "ai_category_tag": "Restaurant"},
            {"name": "PAYROLL", "amount": -1000},
        ],
    })

    assert response.status_code == 200
    data = response.json()
    assert [r["expense_type"] for r in data["results"]] == ["fixed_expense", "discretionary", "discretionary"]
    assert data["results"][1]["adf_eligible"] is True
    summary = data["summary"]
    assert summary["total_spending"] == 50
    assert summary["adf_total"] == 30
    assert summary["adf_percentage"] == 60.0
    assert summary["daily_adf"] == 3.0
    assert summary["top_merchants"] == [{"merchant": "Starbucks", "total": 30, "daily_adf": 3.0}]


def test_empty_batch_returns_422(client, auth_user):
    response = client.post("/adf/classify", json={"transactions": []})

    assert response.status_code == 422
    assert response.json()["error"] == "validation_error"


def test_blank_name_returns_422(client, auth_user):
    response = client.post("/adf/classify", json={"transactions": [{"name": "   ", "amount": 5}]})

    assert response.status_code == 422


def test_batch_over_limit_returns_422(client, auth_user):
    response = client.post("/adf/classify", json={
        "transactions": [{"name": f"Shop {i}", "amount": 5} for i in range(101)]
    })

    assert response.status_code == 422


def test_unexpected_error_returns_500(client, auth_user):
    with patch(f"{ROUTE}.summarize_adf", side_effect=RuntimeError("boom")):
        response = client.post("/adf/classify", json={"transactions": [{"name": "Target", "amount": 5}]})

    assert response.status_code == 500
    assert response.json()["detail"]["error"] == "classification_error"
