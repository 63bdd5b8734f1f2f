"""
Service layer for merchant and category pacing tracking.

Users choose which AI merchant names (merchant_pacing_tracking) and AI
categories (category_pacing_tracking) appear in their pacing SMS. When a
user has not chosen any, auto-selection picks the most active ones from
their transaction history.

Transactions belong to a user through the Plaid items they connected, so
every transaction query is scoped with plaid_item_id IN (user's items).
"""

import logging
from datetime import date
from typing import Any, Dict, List, Literal, Optional

from budgenudge.services.pacing import (
    analysis_window_start,
    select_categories_for_pacing,
    select_merchants_for_pacing,
)
from budgenudge.utils.constants import PACING_EXCLUDED_CATEGORIES

logger = logging.getLogger(__name__)

PacingKind = Literal["merchant", "category"]

# kind -> (table, tracked column)
TRACKING_TABLES: Dict[str, tuple] = {
    "merchant": ("merchant_pacing_tracking", "ai_merchant_name"),
    "category": ("category_pacing_tracking", "ai_category"),
}


async def get_user_item_ids(supabase_client: Any, user_id: str) -> List[str]:
    """Return the plaid_item_id of every item the user has connected."""
    result = supabase_client.table("items") \
        .select("plaid_item_id") \
        .eq("user_id", user_id) \
        .execute()

    return [row["plaid_item_id"] for row in (result.data or []) if row.get("plaid_item_id")]


# ---------------------------------------------------------------------------
# Tracking CRUD
# ---------------------------------------------------------------------------

async def list_tracking(
    supabase_client: Any,
    user_id: str,
    kind: PacingKind,
    active_only: bool = False
) -> List[Dict[str, Any]]:
    """List tracked merchants or categories, newest first."""
    table, _ = TRACKING_TABLES[kind]
    logger.info(f"Fetching {kind} pacing tracking for user {user_id}")

    query = supabase_client.table(table) \
        .select("*") \
        .eq("user_id", user_id)

    if active_only:
        query = query.eq("is_active", True)

    result = query.order("created_at", desc=True).execute()
    return result.data if result.data else []


async def upsert_tracking(
    supabase_client: Any,
    user_id: str,
    kind: PacingKind,
    name: str,
    is_active: bool = True,
    auto_selected: bool = False
) -> Dict[str, Any]:
    """
    Start (or re-configure) tracking for a merchant or category.

    Idempotent on (user_id, name).

    Raises:
        Exception if the upsert returns no row
    """
    table, column = TRACKING_TABLES[kind]
    logger.info(f"Upserting {kind} pacing tracking for user {user_id}: {name} (active={is_active})")

    result = supabase_client.table(table) \
        .upsert(
            {
                "user_id": user_id,
                column: name,
                "is_active": is_active,
                "auto_selected": auto_selected,
            },
            on_conflict=f"user_id,{column}"
        ) \
        .execute()

    if not result.data:
        raise Exception(f"Failed to upsert {kind} pacing tracking")

    return result.data[0]


async def update_tracking(
    supabase_client: Any,
    user_id: str,
    kind: PacingKind,
    is_active: bool,
    tracking_id: Optional[str] = None,
    name: Optional[str] = None
) -> Optional[Dict[str, Any]]:
    """
    Toggle tracking for a row identified by id or by name.

    Returns:
        Updated row, or None if nothing matched
    """
    if not tracking_id and not name:
        raise ValueError("Either id or name is required")

    table, column = TRACKING_TABLES[kind]
    logger.info(f"Updating {kind} pacing tracking for user {user_id} (active={is_active})")

    query = supabase_client.table(table) \
        .update({"is_active": is_active}) \
        .eq("user_id", user_id)

    query = query.eq("id", tracking_id) if tracking_id else query.eq(column, name)
    result = query.execute()

    return result.data[0] if result.data else None


async def delete_tracking(
    supabase_client: Any,
    user_id: str,
    kind: PacingKind,
    tracking_id: Optional[str] = None,
    name: Optional[str] = None
) -> bool:
    """Stop tracking a merchant or category. Returns True if a row was removed."""
    if not tracking_id and not name:
        raise ValueError("Either id or name is required")

    table, column = TRACKING_TABLES[kind]
    logger.info(f"Deleting {kind} pacing tracking for user {user_id}")

    query = supabase_client.table(table) \
        .delete() \
        .eq("user_id", user_id)

    query = query.eq("id", tracking_id) if tracking_id else query.eq(column, name)
    result = query.execute()

    return bool(result.data)


async def get_auto_selection_status(
    supabase_client: Any,
    user_id: str,
    kind: PacingKind
) -> Dict[str, Any]:
    """Report whether the user still needs auto-selection for this kind."""
    table, column = TRACKING_TABLES[kind]

    result = supabase_client.table(table) \
        .select(f"id, {column}, auto_selected") \
        .eq("user_id", user_id) \
        .execute()

    rows = result.data or []
    return {
        "needs_auto_selection": len(rows) == 0,
        "has_tracking": len(rows) > 0,
        "total_tracked": len(rows),
        "auto_selected_count": sum(1 for r in rows if r.get("auto_selected")),
    }


# ---------------------------------------------------------------------------
# Auto-selection
# ---------------------------------------------------------------------------

async def _has_tracking(supabase_client: Any, user_id: str, kind: PacingKind) -> bool:
    table, _ = TRACKING_TABLES[kind]
    result = supabase_client.table(table) \
        .select("id") \
        .eq("user_id", user_id) \
        .limit(1) \
        .execute()
    return bool(result.data)


def _skipped(message: str) -> Dict[str, Any]:
    return {"success": False, "message": message, "auto_selected": [], "analysis": []}


async def _insert_auto_selected(
    supabase_client: Any,
    user_id: str,
    kind: PacingKind,
    names: List[str]
) -> List[Dict[str, Any]]:
    table, column = TRACKING_TABLES[kind]
    rows = [
        {"user_id": user_id, column: name, "is_active": True, "auto_selected": True}
        for name in names
    ]

    result = supabase_client.table(table) \
        .insert(rows) \
        .execute()

    if not result.data:
        raise Exception(f"Failed to save auto-selected {kind} tracking")

    return result.data


async def auto_select_merchants(
    supabase_client: Any,
    user_id: str
) -> Dict[str, Any]:
    """
    Choose up to three merchants to track for a user with no merchant tracking.

    Only transactions with an ai_merchant_name are considered. Nothing is
    written when the user already tracks merchants or nothing qualifies.

    Returns:
        {"success", "message", "auto_selected": inserted rows, "analysis"}
    """
    logger.info(f"Running merchant pacing auto-selection for user {user_id}")

    if await _has_tracking(supabase_client, user_id, "merchant"):
        return _skipped("User already has merchant tracking configured")

    item_ids = await get_user_item_ids(supabase_client, user_id)
    if not item_ids:
        return _skipped("No connected accounts found")

    result = supabase_client.table("transactions") \
        .select("ai_merchant_name, amount, date") \
        .in_("plaid_item_id", item_ids) \
        .not_.is_("ai_merchant_name", "null") \
        .gte("amount", 0) \
        .order("date", desc=True) \
        .execute()

    transactions = result.data or []
    if not transactions:
        return _skipped("No AI-tagged transactions found for analysis")

    selected = select_merchants_for_pacing(transactions)
    if not selected:
        return _skipped(
            "No qualifying merchants found for auto-selection "
            "(need $50+ monthly avg, monthly frequency, 3+ transactions)"
        )

    inserted = await _insert_auto_selected(
        supabase_client, user_id, "merchant", [m.merchant for m in selected]
    )

    logger.info(f"Auto-selected {len(selected)} merchants for user {user_id}")
    return {
        "success": True,
        "message": f"Auto-selected {len(selected)} merchants for pacing tracking",
        "auto_selected": inserted,
        "analysis": [m.to_analysis() for m in selected],
    }


async def auto_select_categories(
    supabase_client: Any,
    user_id: str,
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Choose up to five categories to track for a user with no category tracking.

    Analyses spending since the first day of the month three months ago,
    ignoring Income, Transfer and Uncategorized.
    """
    today = today or date.today()
    logger.info(f"Running category pacing auto-selection for user {user_id}")

    if await _has_tracking(supabase_client, user_id, "category"):
        return _skipped("User already has category pacing tracking configured")

    item_ids = await get_user_item_ids(supabase_client, user_id)
    if not item_ids:
        return _skipped("No connected accounts found")

    result = supabase_client.table("transactions") \
        .select("amount, ai_category_tag, date") \
        .in_("plaid_item_id", item_ids) \
        .gte("amount", 0) \
        .gte("date", analysis_window_start(today).isoformat()) \
        .not_.is_("ai_category_tag", "null") \
        .not_.in_("ai_category_tag", list(PACING_EXCLUDED_CATEGORIES)) \
        .execute()

    transactions = result.data or []
    if not transactions:
        return _skipped("No categorized transactions found for analysis")

    selected = select_categories_for_pacing(transactions, today)
    if not selected:
        return _skipped("No categories met auto-selection criteria")

    inserted = await _insert_auto_selected(
        supabase_client, user_id, "category", [c.category for c in selected]
    )

    logger.info(f"Auto-selected {len(selected)} categories for user {user_id}")
    return {
        "success": True,
        "message": f"Auto-selected {len(inserted)} categories for pacing tracking",
        "auto_selected": inserted,
        "analysis": [c.to_analysis() for c in selected],
    }


async def run_pacing_auto_selection(
    supabase_client: Any,
    user_id: str,
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Run merchant and category auto-selection, typically right after a user
    connects an account.

    A failure in one half is logged and reported as a null result; the other
    half still runs.
    """
    item_ids = await get_user_item_ids(supabase_client, user_id)
    if not item_ids:
        return {
            "success": True,
            "message": "No accounts connected yet - auto-selection skipped",
            "merchant_result": None,
            "category_result": None,
            "summary": {"merchants_selected": 0, "categories_selected": 0, "total_selected": 0},
        }

    merchant_result: Optional[Dict[str, Any]] = None
    try:
        merchant_result = await auto_select_merchants(supabase_client, user_id)
    except Exception as e:
        logger.warning(f"Merchant auto-selection failed for user {user_id}: {e}", exc_info=True)

    category_result: Optional[Dict[str, Any]] = None
    try:
        category_result = await auto_select_categories(supabase_client, user_id, today=today)
    except Exception as e:
        logger.warning(f"Category auto-selection failed for user {user_id}: {e}", exc_info=True)

    merchants_selected = len(merchant_result["auto_selected"]) if merchant_result else 0
    categories_selected = len(category_result["auto_selected"]) if category_result else 0
    total = merchants_selected + categories_selected

    return {
        "success": True,
        "message": f"Auto-selection completed: {total} items selected",
        "merchant_result": merchant_result,
        "category_result": category_result,
        "summary": {
            "merchants_selected": merchants_selected,
            "categories_selected": categories_selected,
            "total_selected": total,
        },
    }
