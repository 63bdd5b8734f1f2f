"""
AI merchant tagging jobs.

run_auto_tagging is the cron job that fills transactions.ai_merchant_name /
ai_category_tag. It runs with the service-role client across all users:
- untagged transactions from the last 90 days, newest first, at most 500
- grouped by raw merchant (merchant_name, else name)
- each group is resolved from the merchant_ai_tags cache, or tagged once by
  the AI and the new tag cached
- every transaction in a group then gets the same tag

get_tagging_status reports coverage for one user.
"""

import asyncio
import logging
from datetime import date, timedelta
from typing import Any, Dict, List, Optional

from budgenudge.agents.tagging import MerchantTaggingInput, tag_merchant
from budgenudge.services.pacing import round_half_up
from budgenudge.services.pacing_service import get_user_item_ids
from budgenudge.utils.constants import IN_FILTER_BATCH_SIZE

logger = logging.getLogger(__name__)

TAGGING_LOOKBACK_DAYS = 90
TAGGING_MAX_TRANSACTIONS = 500
RATE_LIMIT_EVERY = 5
RATE_LIMIT_PAUSE_SECONDS = 1.0

STATUS_SAMPLE_SIZE = 1000
STATUS_RECENT_DAYS = 7
STATUS_RECENT_LIMIT = 20


def _merchant_key(transaction: Dict[str, Any]) -> str:
    return transaction.get("merchant_name") or transaction.get("name") or "Unknown"


async def _load_cached_tags(supabase_client: Any, patterns: List[str]) -> Dict[str, Dict[str, Any]]:
    """Look up merchant_ai_tags in batches; a failed batch is logged and skipped."""
    cache: Dict[str, Dict[str, Any]] = {}

    for start in range(0, len(patterns), IN_FILTER_BATCH_SIZE):
        batch = patterns[start:start + IN_FILTER_BATCH_SIZE]
        try:
            result = supabase_client.table("merchant_ai_tags") \
                .select("merchant_pattern, ai_merchant_name, ai_category_tag") \
                .in_("merchant_pattern", batch) \
                .execute()
        except Exception as e:
            logger.warning(f"Failed to fetch tag cache batch {start // IN_FILTER_BATCH_SIZE + 1}: {e}")
            continue

        for tag in result.data or []:
            cache[tag["merchant_pattern"]] = tag

    return cache


async def run_auto_tagging(
    supabase_client: Any,
    today: Optional[date] = None,
    pause_seconds: float = RATE_LIMIT_PAUSE_SECONDS
) -> Dict[str, Any]:
    """
    Tag recent untagged transactions.

    Args:
        supabase_client: Service-role client
        today: Reference date for the 90-day window
        pause_seconds: Sleep after every fifth AI call

    Returns:
        {"success", "message", "stats": {total_untagged_found, processed,
        cached, api_calls, new_merchants_cached}}
    """
    today = today or date.today()
    since = today - timedelta(days=TAGGING_LOOKBACK_DAYS)

    result = supabase_client.table("transactions") \
        .select("id, merchant_name, name, amount, category, subcategory, ai_merchant_name, ai_category_tag, date") \
        .is_("ai_merchant_name", "null") \
        .gte("date", since.isoformat()) \
        .order("date", desc=True) \
        .limit(TAGGING_MAX_TRANSACTIONS) \
        .execute()

    untagged = result.data or []
    if not untagged:
        logger.info("Auto tagging: no untagged transactions found")
        return {
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

    groups: Dict[str, List[Dict[str, Any]]] = {}
    for transaction in untagged:
        groups.setdefault(_merchant_key(transaction), []).append(transaction)

    cache = await _load_cached_tags(supabase_client, list(groups))
    logger.info(f"Auto tagging: {len(untagged)} transactions, {len(groups)} merchants, {len(cache)} cached")

    updates: List[Dict[str, Any]] = []
    new_tags: List[Dict[str, Any]] = []
    api_calls = 0
    cached_count = 0

    for pattern, transactions in groups.items():
        cached = cache.get(pattern)
        if cached:
            tag = {
                "ai_merchant_name": cached["ai_merchant_name"],
                "ai_category_tag": cached["ai_category_tag"],
            }
            cached_count += len(transactions)
        else:
            sample = transactions[0]
            merchant_input: MerchantTaggingInput = {
                "merchant_name": sample.get("merchant_name"),
                "name": sample.get("name") or "",
                "amount": sample.get("amount") or 0,
                "category": sample.get("category"),
                "subcategory": sample.get("subcategory"),
            }
            try:
                ai_result = tag_merchant(merchant_input)
            except Exception as e:
                logger.warning(f"Failed to tag merchant '{pattern}', skipping: {e}")
                continue

            tag = {
                "ai_merchant_name": ai_result["merchant_name"],
                "ai_category_tag": ai_result["category_tag"],
            }
            new_tags.append({"merchant_pattern": pattern, **tag})

            api_calls += 1
            if pause_seconds > 0 and api_calls % RATE_LIMIT_EVERY == 0:
                await asyncio.sleep(pause_seconds)

        updates.extend({"id": t["id"], **tag} for t in transactions)

    if new_tags:
        try:
            supabase_client.table("merchant_ai_tags").insert(new_tags).execute()
        except Exception as e:
            logger.warning(f"Failed to cache {len(new_tags)} merchant tags: {e}")

    processed = 0
    for update in updates:
        try:
            supabase_client.table("transactions") \
                .update({
                    "ai_merchant_name": update["ai_merchant_name"],
                    "ai_category_tag": update["ai_category_tag"],
                }) \
                .eq("id", update["id"]) \
                .execute()
            processed += 1
        except Exception as e:
            logger.warning(f"Failed to update transaction {update['id']}: {e}")

    logger.info(f"Auto tagging complete: {processed} updated, {api_calls} AI calls")

    return {
        "success": True,
        "message": "Auto AI tagging completed successfully",
        "stats": {
            "total_untagged_found": len(untagged),
            "processed": processed,
            "cached": cached_count,
            "api_calls": api_calls,
            "new_merchants_cached": len(new_tags),
        },
    }


def tagging_health(percentage: int) -> str:
    if percentage >= 90:
        return "EXCELLENT"
    if percentage >= 75:
        return "GOOD"
    if percentage >= 50:
        return "NEEDS_ATTENTION"
    return "CRITICAL"


def generate_recommendations(percentage: int, recent_untagged_count: int) -> List[str]:
    recommendations = []

    if percentage < 50:
        recommendations.append("🚨 CRITICAL: AI tagging coverage is very low. Consider running bulk tagging process.")
    elif percentage < 75:
        recommendations.append("⚠️ AI tagging coverage needs improvement. Consider increasing cron frequency.")
    elif percentage >= 90:
        recommendations.append("✅ AI tagging system is performing excellently.")

    if recent_untagged_count > 50:
        recommendations.append("🔄 Large number of recent untagged transactions. Check if auto-tagging cron is running properly.")
    elif recent_untagged_count > 20:
        recommendations.append("📊 Moderate number of untagged transactions. Monitor auto-tagging process.")
    elif recent_untagged_count == 0:
        recommendations.append("🎯 All recent transactions are tagged. System is working perfectly.")

    return recommendations


def _is_tagged(transaction: Dict[str, Any]) -> bool:
    return bool(transaction.get("ai_merchant_name") and transaction.get("ai_category_tag"))


def _coverage(tagged: int, total: int) -> int:
    return round_half_up(tagged / total * 100) if total > 0 else 0


def daily_tagging_trends(transactions: List[Dict[str, Any]], today: date) -> List[Dict[str, Any]]:
    """Per-day coverage for the 7 days ending today, oldest first."""
    trends = []
    for offset in range(STATUS_RECENT_DAYS - 1, -1, -1):
        day = (today - timedelta(days=offset)).isoformat()
        day_transactions = [t for t in transactions if str(t.get("date", ""))[:10] == day]
        tagged = sum(1 for t in day_transactions if _is_tagged(t))
        trends.append({
            "date": day,
            "total": len(day_transactions),
            "tagged": tagged,
            "percentage": _coverage(tagged, len(day_transactions)),
        })
    return trends


async def get_tagging_status(
    supabase_client: Any,
    user_id: str,
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    AI tagging coverage for a user's latest 1000 transactions.

    A transaction counts as tagged when both ai_merchant_name and
    ai_category_tag are set. Users with no connected accounts report zero
    coverage.
    """
    today = today or date.today()
    item_ids = await get_user_item_ids(supabase_client, user_id)

    transactions: List[Dict[str, Any]] = []
    recent_untagged: List[Dict[str, Any]] = []
    recent: List[Dict[str, Any]] = []

    if item_ids:
        result = supabase_client.table("transactions") \
            .select("ai_merchant_name, ai_category_tag, date") \
            .in_("plaid_item_id", item_ids) \
            .order("date", desc=True) \
            .limit(STATUS_SAMPLE_SIZE) \
            .execute()
        transactions = result.data or []

        week_start = (today - timedelta(days=STATUS_RECENT_DAYS)).isoformat()

        result = supabase_client.table("transactions") \
            .select("id, name, merchant_name, amount, date") \
            .in_("plaid_item_id", item_ids) \
            .is_("ai_merchant_name", "null") \
            .gte("date", week_start) \
            .order("date", desc=True) \
            .limit(STATUS_RECENT_LIMIT) \
            .execute()
        recent_untagged = result.data or []

        result = supabase_client.table("transactions") \
            .select("ai_merchant_name, ai_category_tag, date") \
            .in_("plaid_item_id", item_ids) \
            .gte("date", (today - timedelta(days=STATUS_RECENT_DAYS - 1)).isoformat()) \
            .execute()
        recent = result.data or []

    cache_result = supabase_client.table("merchant_ai_tags") \
        .select("merchant_pattern, ai_merchant_name, ai_category_tag, is_manual_override, created_at") \
        .order("created_at", desc=True) \
        .limit(10) \
        .execute()
    cache_rows = cache_result.data or []

    total = len(transactions)
    tagged = sum(1 for t in transactions if _is_tagged(t))
    percentage = _coverage(tagged, total)

    return {
        "overall_stats": {
            "total_transactions_checked": total,
            "tagged_transactions": tagged,
            "untagged_transactions": total - tagged,
            "tagging_percentage": percentage,
            "health_status": tagging_health(percentage),
        },
        "recent_untagged": {
            "count": len(recent_untagged),
            "sample": [
                {
                    "name": t.get("name"),
                    "merchant": t.get("merchant_name"),
                    "amount": t.get("amount"),
                    "date": t.get("date"),
                }
                for t in recent_untagged[:5]
            ],
        },
        "cache_stats": {
            "total_cached_merchants": len(cache_rows),
            "manual_overrides": sum(1 for c in cache_rows if c.get("is_manual_override")),
            "recent_additions": [
                {
                    "pattern": c.get("merchant_pattern"),
                    "merchant_name": c.get("ai_merchant_name"),
                    "category": c.get("ai_category_tag"),
                    "created": c.get("created_at"),
                }
                for c in cache_rows[:5]
            ],
        },
        "daily_trends": daily_tagging_trends(recent, today),
        "recommendations": generate_recommendations(percentage, len(recent_untagged)),
    }
