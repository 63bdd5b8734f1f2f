"""
Tests for the auto-tagging job and tagging status report.
"""

from datetime import date
from unittest.mock import patch

import pytest

from budgenudge.services.tagging_service import (
    daily_tagging_trends,
    generate_recommendations,
    get_tagging_status,
    run_auto_tagging,
    tagging_health,
)
from tests.conftest import make_query, make_supabase

SERVICE = "budgenudge.services.tagging_service"
TODAY = date(2025, 7, 15)


def _untagged(tx_id, merchant_name, name):
    return {
        "id": tx_id,
        "merchant_name": merchant_name,
        "name": name,
        "amount": 12.5,
        "category": ["Food and Drink"],
        "subcategory": None,
        "ai_merchant_name": None,
        "ai_category_tag": None,
        "date": "2025-07-14",
    }


class TestRunAutoTagging:

    @pytest.mark.asyncio
    async def test_nothing_to_tag(self):
        result = await run_auto_tagging(make_supabase(), today=TODAY, pause_seconds=0)

        assert result == {
            "success": True,
            "message": "No untagged transactions found",
            "stats": {
                "total_untagged_found": 0,
                "processed": 0,
                "cached": 0,
                "api_calls": 0,
                "new_merchants_cached": 0,
            },
        }

    @pytest.mark.asyncio
    async def test_uses_cache_then_ai_and_updates_every_transaction(self):
        select = make_query([
            _untagged("t1", "Publix", "PUBLIX #12"),
            _untagged("t2", "Publix", "PUBLIX #40"),
            _untagged("t3", None, "SHELL OIL 123"),
        ])
        update = make_query([{"id": "updated"}])
        cache_lookup = make_query([
            {"merchant_pattern": "Publix", "ai_merchant_name": "Publix", "ai_category_tag": "Groceries"},
        ])
        cache_insert = make_query([])
        client = make_supabase({
            "transactions": [select, update],
            "merchant_ai_tags": [cache_lookup, cache_insert],
        })

        with patch(f"{SERVICE}.tag_merchant", return_value={"merchant_name": "Shell", "category_tag": "Gas"}) as tagger:
            result = await run_auto_tagging(client, today=TODAY, pause_seconds=0)

        assert result["message"] == "Auto AI tagging completed successfully"
        assert result["stats"] == {
            "total_untagged_found": 3,
            "processed": 3,
            "cached": 2,
            "api_calls": 1,
            "new_merchants_cached": 1,
        }
        tagger.assert_called_once()
        assert tagger.call_args[0][0]["name"] == "SHELL OIL 123"
        select.gte.assert_called_once_with("date", "2025-04-16")
        select.limit.assert_called_once_with(500)
        cache_lookup.in_.assert_called_once_with("merchant_pattern", ["Publix", "SHELL OIL 123"])
        cache_insert.insert.assert_called_once_with([
            {"merchant_pattern": "SHELL OIL 123", "ai_merchant_name": "Shell", "ai_category_tag": "Gas"},
        ])
        update.update.assert_any_call({"ai_merchant_name": "Publix", "ai_category_tag": "Groceries"})
        assert [c.args for c in update.eq.call_args_list] == [("id", "t1"), ("id", "t2"), ("id", "t3")]

    @pytest.mark.asyncio
    async def test_failed_merchant_is_skipped(self):
        client = make_supabase({
            "transactions": make_query([_untagged("t1", "Mystery", "MYSTERY")]),
        })

        with patch(f"{SERVICE}.tag_merchant", side_effect=RuntimeError("quota")):
            result = await run_auto_tagging(client, today=TODAY, pause_seconds=0)

        assert result["stats"]["processed"] == 0
        assert result["stats"]["api_calls"] == 0

    @pytest.mark.asyncio
    async def test_pauses_every_fifth_ai_call(self):
        client = make_supabase({
            "transactions": make_query([_untagged(f"t{i}", f"Merchant {i}", f"M{i}") for i in range(10)]),
        })

        with patch(f"{SERVICE}.tag_merchant", return_value={"merchant_name": "X", "category_tag": "Other"}), \
             patch(f"{SERVICE}.asyncio.sleep") as sleep:
            result = await run_auto_tagging(client, today=TODAY, pause_seconds=1.0)

        assert result["stats"]["api_calls"] == 10
        assert sleep.call_count == 2

    @pytest.mark.asyncio
    async def test_failed_update_is_not_counted(self):
        select = make_query([_untagged("t1", "Publix", "PUBLIX")])
        update = make_query([])
        update.execute.side_effect = Exception("timeout")
        client = make_supabase({"transactions": [select, update]})

        with patch(f"{SERVICE}.tag_merchant", return_value={"merchant_name": "Publix", "category_tag": "Groceries"}):
            result = await run_auto_tagging(client, today=TODAY, pause_seconds=0)

        assert result["success"] is True
        assert result["stats"]["processed"] == 0


class TestStatusHelpers:

    @pytest.mark.parametrize("percentage,expected", [
        (95, "EXCELLENT"), (90, "EXCELLENT"), (75, "GOOD"), (60, "NEEDS_ATTENTION"), (10, "CRITICAL"),
    ])
    def test_health(self, percentage, expected):
        assert tagging_health(percentage) == expected

    def test_recommendations(self):
        assert generate_recommendations(40, 60) == [
            "🚨 CRITICAL: AI tagging coverage is very low. Consider running bulk tagging process.",
            "🔄 Large number of recent untagged transactions. Check if auto-tagging cron is running properly.",
        ]
        assert generate_recommendations(80, 5) == []

    def test_daily_trends_cover_seven_days(self):
        trends = daily_tagging_trends([
            {"date": "2025-07-15", "ai_merchant_name": "A", "ai_category_tag": "Other"},
            {"date": "2025-07-15", "ai_merchant_name": "B", "ai_category_tag": None},
            {"date": "2025-07-09T10:00:00", "ai_merchant_name": "C", "ai_category_tag": "Gas"},
        ], TODAY)

        assert [t["date"] for t in trends] == [
            "2025-07-09", "2025-07-10", "2025-07-11", "2025-07-12", "2025-07-13", "2025-07-14", "2025-07-15",
        ]
        assert trends[0] == {"date": "2025-07-09", "total": 1, "tagged": 1, "percentage": 100}
        assert trends[1]["percentage"] == 0
        assert trends[-1] == {"date": "2025-07-15", "total": 2, "tagged": 1, "percentage": 50}


class TestGetTaggingStatus:

    @pytest.mark.asyncio
    async def test_reports_coverage(self):
        sample = make_query([
            {"ai_merchant_name": "A", "ai_category_tag": "Gas", "date": "2025-07-15"},
            {"ai_merchant_name": "B", "ai_category_tag": "Other", "date": "2025-07-14"},
            {"ai_merchant_name": "C", "ai_category_tag": "Other", "date": "2025-07-10"},
            {"ai_merchant_name": None, "ai_category_tag": None, "date": "2025-06-01"},
        ])
        recent_untagged = make_query([])
        recent = make_query([{"ai_merchant_name": "A", "ai_category_tag": "Gas", "date": "2025-07-15"}])
        client = make_supabase({
            "items": make_query([{"plaid_item_id": "item-1"}]),
            "transactions": [sample, recent_untagged, recent],
            "merchant_ai_tags": make_query([
                {"merchant_pattern": "SHELL", "ai_merchant_name": "Shell", "ai_category_tag": "Gas",
                 "is_manual_override": True, "created_at": "2025-07-10T00:00:00Z"},
            ]),
        })

        status = await get_tagging_status(client, "user-123", today=TODAY)

        assert status["overall_stats"] == {
            "total_transactions_checked": 4,
            "tagged_transactions": 3,
            "untagged_transactions": 1,
            "tagging_percentage": 75,
            "health_status": "GOOD",
        }
        assert status["recent_untagged"] == {"count": 0, "sample": []}
        assert status["cache_stats"]["manual_overrides"] == 1
        assert status["cache_stats"]["recent_additions"][0]["pattern"] == "SHELL"
        assert status["daily_trends"][-1]["percentage"] == 100
        assert status["recommendations"] == ["🎯 All recent transactions are tagged. System is working perfectly."]
        recent_untagged.gte.assert_called_once_with("date", "2025-07-08")

    @pytest.mark.asyncio
    async def test_no_accounts_reports_zero(self):
        status = await get_tagging_status(make_supabase(), "user-123", today=TODAY)

        assert status["overall_stats"]["tagging_percentage"] == 0
        assert status["overall_stats"]["health_status"] == "CRITICAL"
        assert len(status["daily_trends"]) == 7
