"""
Tests for ADF classification and summaries.

run_adf_classifier is patched; with no API key configured it raises, which
exercises the rule-based fallback.
"""

from unittest.mock import AsyncMock, patch

import pytest

from budgenudge.services.adf_service import (
    classify_for_adf,
    classify_multiple_for_adf,
    classify_with_rules,
    summarize_adf,
)

SERVICE = "budgenudge.services.adf_service"


class TestClassifyWithRules:

    def test_fixed_keyword(self):
        result = classify_with_rules("Netflix", "Subscription", 15.99)

        assert result["expense_type"] == "fixed_expense"
        assert result["adf_eligible"] is False
        assert result["confidence"] == 75
        assert result["reasoning"] == "Rule-based: matched fixed expense pattern"

    def test_discretionary_keyword(self):
        result = classify_with_rules("Starbucks", "Restaurant", 6.5)

        assert result["expense_type"] == "discretionary"
        assert result["adf_eligible"] is True
        assert result["confidence"] == 75

    def test_fixed_keywords_are_checked_first(self):
        # "gas" appears in both lists
        assert classify_with_rules("Wawa", "Gas", 40)["expense_type"] == "fixed_expense"

    @pytest.mark.parametrize("category,amount,expected_type,expected_confidence", [
        ("", 50, "discretionary", 60),
        ("", 500, "fixed_expense", 65),
        ("Utilities", 50, "fixed_expense", 80),
        ("Pet Insurance", 500, "fixed_expense", 80),
    ])
    def test_defaults(self, category, amount, expected_type, expected_confidence):
        result = classify_with_rules("Zzyzx Co", category, amount)

        assert result["expense_type"] == expected_type
        assert result["confidence"] == expected_confidence


class TestClassifyForAdf:

    def test_prefers_ai_tags(self):
        with patch(f"{SERVICE}.run_adf_classifier", return_value={
            "expense_type": "fixed_expense", "confidence": 92, "reasoning": "Monthly plan"
        }) as classifier:
            result = classify_for_adf({
                "merchant_name": "SPOTIFY USA",
                "name": "SPOTIFY P1234",
                "amount": 11.99,
                "category": ["Service"],
                "ai_merchant_name": "Spotify",
                "ai_category_tag": "Subscription",
            })

        classifier.assert_called_once_with("Spotify", "SPOTIFY P1234", 11.99, "Subscription", ["Service"])
        assert result == {
            "merchant_name": "Spotify",
            "category_tag": "Subscription",
            "expense_type": "fixed_expense",
            "adf_eligible": False,
            "confidence": 92,
            "reasoning": "Monthly plan",
        }

    @pytest.mark.parametrize("confidence,expected", [(None, 80), (0, 80), (150, 100), (-5, 0), ("77.9", 78), (85.7, 86), (85.2, 85), (99.5, 100), ("high", 80)])
    def test_confidence_is_clamped(self, confidence, expected):
        with patch(f"{SERVICE}.run_adf_classifier", return_value={"expense_type": "discretionary", "confidence": confidence}):
            result = classify_for_adf({"name": "Target", "amount": 20})

        assert result["confidence"] == expected

    def test_unknown_expense_type_is_discretionary(self):
        with patch(f"{SERVICE}.run_adf_classifier", return_value={"expense_type": "maybe"}):
            result = classify_for_adf({"name": "Target", "amount": 20})

        assert result["expense_type"] == "discretionary"
        assert result["reasoning"] == "AI classification"

    def test_model_failure_falls_back_to_rules(self):
        with patch(f"{SERVICE}.run_adf_classifier", side_effect=ValueError("GOOGLE_API_KEY is not configured")):
            result = classify_for_adf({"merchant_name": "Duke Energy", "name": "DUKE ENERGY PAYMENT", "amount": 120})

        assert result["merchant_name"] == "Duke Energy"
        assert result["expense_type"] == "fixed_expense"
        assert result["reasoning"].startswith("Rule-based")

    def test_without_api_key_uses_rules(self):
        result = classify_for_adf({"name": "STARBUCKS #42", "amount": 5})

        assert result["reasoning"] == "Rule-based: matched discretionary pattern"


class TestClassifyMultiple:

    @pytest.mark.asyncio
    async def test_preserves_order_without_delay_when_no_key(self):
        with patch(f"{SERVICE}.asyncio.sleep", new_callable=AsyncMock) as sleep:
            results = await classify_multiple_for_adf([
                {"name": "Netflix", "amount": 15.99},
                {"name": "Starbucks", "amount": 5},
            ])

        assert [r["merchant_name"] for r in results] == ["Netflix", "Starbucks"]
        sleep.assert_not_called()

    @pytest.mark.asyncio
    async def test_pauses_between_model_calls_without_blocking(self):
        with patch(f"{SERVICE}.settings.GOOGLE_API_KEY", "test-key"), \
             patch(f"{SERVICE}.run_adf_classifier", return_value={"expense_type": "discretionary", "confidence": 90}), \
             patch(f"{SERVICE}.asyncio.sleep", new_callable=AsyncMock) as sleep:
            await classify_multiple_for_adf([{"name": "A", "amount": 1}] * 3, delay_seconds=0.25)

        assert sleep.await_count == 2
        sleep.assert_awaited_with(0.25)

    @pytest.mark.asyncio
    async def test_model_calls_run_in_worker_thread(self):
        with patch(f"{SERVICE}.asyncio.to_thread", new_callable=AsyncMock) as to_thread:
            to_thread.return_value = classify_with_rules("Target", "", 5)
            results = await classify_multiple_for_adf([{"name": "Target", "amount": 5}])

        assert to_thread.await_args.args == (classify_for_adf, {"name": "Target", "amount": 5})
        assert results[0]["merchant_name"] == "Target"


class TestSummarizeAdf:

    def _results(self, *pairs):
        return [
            classify_with_rules(merchant, category, 0) | {"merchant_name": merchant}
            for merchant, category in pairs
        ]

    def test_totals_and_top_lists(self):
        transactions = [
            {"amount": 100},
            {"amount": 30},
            {"amount": 20},
            {"amount": 50},
            {"amount": -500},
        ]
        results = self._results(
            ("Rent Co", "Housing"),
            ("Starbucks", "Restaurant"),
            ("Starbucks", "Restaurant"),
            ("Target", "Shopping"),
            ("Payroll", "Income"),
        )

        summary = summarize_adf(transactions, results, days=10)

        assert summary["total_spending"] == 200
        assert summary["adf_total"] == 100
        assert summary["fixed_total"] == 100
        assert summary["adf_count"] == 3
        assert summary["fixed_count"] == 1
        assert summary["adf_percentage"] == 50.0
        assert summary["daily_adf"] == 10.0
        assert summary["top_merchants"] == [
            {"merchant": "Starbucks", "total": 50, "daily_adf": 5.0},
            {"merchant": "Target", "total": 50, "daily_adf": 5.0},
        ]
        assert summary["top_categories"][0] == {"category": "Restaurant", "total": 50, "daily_adf": 5.0}

    def test_no_spending(self):
        summary = summarize_adf([], [], days=30)

        assert summary["total_spending"] == 0
        assert summary["adf_percentage"] == 0.0
        assert summary["top_merchants"] == []

    def test_validates_arguments(self):
        with pytest.raises(ValueError):
            summarize_adf([], [], days=0)
        with pytest.raises(ValueError):
            summarize_adf([{"amount": 1}], [], days=30)
