"""
SMS message templates.

Each template has a pure formatter (data in, text out) and an async builder
that loads the user's data from Supabase and calls the formatter. Builders
raise on database errors; routes turn those into 500s.

Shared formatting:
- dates render as "Jul 15"
- amounts render as "$12.34" (category pacing uses whole dollars)
- merchant names are cut to 18 characters
- a message never exceeds SMS_MAX_LENGTH (918) characters
"""

import calendar
import logging
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional

from budgenudge.config import settings
from budgenudge.services.pacing import (
    CategoryPacing,
    MerchantPacing,
    analysis_window_start,
    compute_category_pacing,
    compute_merchant_pacing,
    month_progress,
    round_half_up,
)
from budgenudge.services.pacing_service import get_user_item_ids
from budgenudge.services.recurring_bill_service import select_upcoming_bills, upcoming_totals
from budgenudge.utils.constants import RENDERABLE_TEMPLATE_TYPES

logger = logging.getLogger(__name__)

MERCHANT_NAME_MAX = 18
MAX_RECURRING_LINES = 20
MERCHANT_PACING_BODY_LIMIT = 780
CATEGORY_PACING_BODY_LIMIT = 750
CATEGORY_PACING_SEPARATOR_LIMIT = 700

EMPTY_RECURRING = "💳 RECURRING BILLS\n\nNo upcoming recurring bills found."
EMPTY_RECENT = "📱 YESTERDAY'S ACTIVITY\n\nNo transactions yesterday."
NO_ACCOUNTS_RECENT = "📱 RECENT ACTIVITY\n\nNo bank accounts connected."
NO_MERCHANTS_TRACKED = "📊 MERCHANT PACING\n\nNo merchants are being tracked for pacing analysis."
NO_ACCOUNTS_MERCHANT = "📊 MERCHANT PACING\n\nNo bank accounts connected."
NO_CATEGORIES_TRACKED = "📊 CATEGORY PACING\n\nNo categories selected for tracking."
NO_ACCOUNTS_CATEGORY = "📊 CATEGORY PACING\n\nNo accounts connected."
NO_CATEGORY_DATA = "📊 CATEGORY PACING\n\nNo transaction data found for tracked categories."


def format_short_date(value: Any) -> str:
    d = value if isinstance(value, date) else date.fromisoformat(str(value)[:10])
    return f"{calendar.month_abbr[d.month]} {d.day}"


def format_month_year(today: date) -> str:
    return f"{calendar.month_name[today.month]} {today.year}"


def truncate_sms(message: str, limit: Optional[int] = None) -> str:
    """Cut a message to the SMS limit, ending in '...' when shortened."""
    limit = limit or settings.SMS_MAX_LENGTH
    if len(message) <= limit:
        return message
    return message[:limit - 3] + "..."


def _amount(value: Any) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (ValueError, TypeError):
        return 0.0


# ---------------------------------------------------------------------------
# Pure formatters
# ---------------------------------------------------------------------------

def format_recurring_bills_message(merchants: Iterable[Dict[str, Any]], today: date) -> str:
    """Upcoming bills (at most 20 lines) followed by 7/14/30-day totals."""
    upcoming = select_upcoming_bills(merchants, today)
    if not upcoming:
        return EMPTY_RECURRING

    lines = [f"⭐ Recurring Bills\n{len(upcoming)} upcoming\n"]
    for bill in upcoming[:MAX_RECURRING_LINES]:
        merchant = str(bill.get("merchant_name") or "")[:MERCHANT_NAME_MAX]
        lines.append(
            f"{format_short_date(bill['next_predicted_date'])}: {merchant} - "
            f"${_amount(bill.get('expected_amount')):.2f}"
        )

    totals = upcoming_totals(upcoming, today)
    lines.append("")
    lines.append(f"NEXT 7 DAYS: ${totals[7]:.2f}")
    lines.append(f"NEXT 14 DAYS: ${totals[14]:.2f}")
    lines.append(f"NEXT 30 DAYS: ${totals[30]:.2f}")

    return truncate_sms("\n".join(lines).strip())


def format_recent_activity_message(transactions: Iterable[Dict[str, Any]]) -> str:
    """Yesterday's spending, most expensive first, with a total."""
    spending = sorted(
        (t for t in transactions if _amount(t.get("amount")) > 0),
        key=lambda t: _amount(t.get("amount")),
        reverse=True
    )
    if not spending:
        return EMPTY_RECENT

    message = "📱 YESTERDAY'S ACTIVITY\n\n"
    for t in spending:
        merchant = str(t.get("merchant_name") or t.get("name") or "")[:MERCHANT_NAME_MAX]
        message += f"{format_short_date(t['date'])}: {merchant} - ${_amount(t.get('amount')):.2f}\n"

    total = sum(_amount(t.get("amount")) for t in spending)
    message += f"\n💰 Yesterday's Total: ${total:.2f}"

    return truncate_sms(message)


def format_merchant_pacing_message(pacings: Iterable[MerchantPacing], today: date) -> str:
    """
    One block per tracked merchant.

    Blocks are appended in order until the message passes 780 characters.
    """
    results = list(pacings)
    if not results:
        return f"📊 MERCHANT PACING\n{format_month_year(today)}\n\nNo spending data found for tracked merchants."

    message = (
        f"📊 MERCHANT PACING\n{format_month_year(today)}\n"
        f"Month Progress: {month_progress(today) * 100:.0f}% (Day {today.day})\n\n"
    )

    for pacing in results:
        if len(message) > MERCHANT_PACING_BODY_LIMIT:
            break
        icon, label = pacing.status
        message += f"{icon} {pacing.merchant}:\n"
        message += f"   Month to date: ${pacing.current_month_spend:.2f}\n"
        message += f"   Expected by now: ${pacing.expected_spend_to_date:.2f}\n"
        message += f"   Avg monthly: ${pacing.avg_monthly_spend:.2f}\n"
        message += f"   Pacing: {pacing.pacing_percentage:.0f}%\n"
        message += f"   Status: {label}\n\n"

    return truncate_sms(message.strip())


def format_category_pacing_message(pacings: Iterable[CategoryPacing], today: date) -> str:
    """
    One block per tracked category, highest current spend first.

    Blocks stop once the message passes 750 characters and the result is
    hard-truncated to the SMS limit.
    """
    results = list(pacings)
    if not results:
        return NO_CATEGORY_DATA

    progress = round_half_up(month_progress(today) * 100)
    message = (
        f"📊 CATEGORY PACING\n{format_month_year(today)}\n"
        f"Month Progress: {progress}% (Day {today.day})\n\n"
    )

    for index, pacing in enumerate(results):
        if len(message) > CATEGORY_PACING_BODY_LIMIT:
            continue
        icon, label = pacing.status
        message += f"{icon} {pacing.category}:\n"
        message += f"   Month to date: ${round_half_up(pacing.current_month_spend)}\n"
        message += f"   Expected by now: ${round_half_up(pacing.expected_spend_to_date)}\n"
        message += f"   Avg monthly: ${round_half_up(pacing.avg_monthly_spend)}\n"
        message += f"   Pacing: {pacing.pacing_percentage}%\n"
        message += f"   Status: {label}"

        if index < len(results) - 1 and len(message) < CATEGORY_PACING_SEPARATOR_LIMIT:
            message += "\n\n"

    return truncate_sms(message)


# ---------------------------------------------------------------------------
# Builders
# ---------------------------------------------------------------------------

async def build_recurring_bills_message(supabase_client: Any, user_id: str, today: date) -> str:
    result = supabase_client.table("tagged_merchants") \
        .select("merchant_name, expected_amount, next_predicted_date, confidence_score, prediction_frequency, is_active") \
        .eq("user_id", user_id) \
        .eq("is_active", True) \
        .order("next_predicted_date") \
        .execute()

    return format_recurring_bills_message(result.data or [], today)


async def build_recent_activity_message(supabase_client: Any, user_id: str, today: date) -> str:
    item_ids = await get_user_item_ids(supabase_client, user_id)
    if not item_ids:
        return NO_ACCOUNTS_RECENT

    yesterday = today - timedelta(days=1)
    result = supabase_client.table("transactions") \
        .select("date, merchant_name, name, amount") \
        .in_("plaid_item_id", item_ids) \
        .eq("date", yesterday.isoformat()) \
        .gt("amount", 0) \
        .order("amount", desc=True) \
        .execute()

    return format_recent_activity_message(result.data or [])


async def _active_tracked_names(supabase_client: Any, user_id: str, table: str, column: str) -> List[str]:
    result = supabase_client.table(table) \
        .select(column) \
        .eq("user_id", user_id) \
        .eq("is_active", True) \
        .execute()
    return [row[column] for row in (result.data or []) if row.get(column)]


async def build_merchant_pacing_message(supabase_client: Any, user_id: str, today: date) -> str:
    merchants = await _active_tracked_names(
        supabase_client, user_id, "merchant_pacing_tracking", "ai_merchant_name"
    )
    if not merchants:
        return NO_MERCHANTS_TRACKED

    item_ids = await get_user_item_ids(supabase_client, user_id)
    if not item_ids:
        return NO_ACCOUNTS_MERCHANT

    result = supabase_client.table("transactions") \
        .select("ai_merchant_name, amount, date") \
        .in_("plaid_item_id", item_ids) \
        .in_("ai_merchant_name", merchants) \
        .gt("amount", 0) \
        .execute()

    by_merchant: Dict[str, List[Dict[str, Any]]] = {m: [] for m in merchants}
    for t in result.data or []:
        if t.get("ai_merchant_name") in by_merchant:
            by_merchant[t["ai_merchant_name"]].append(t)

    pacings = []
    for merchant in merchants:
        pacing = compute_merchant_pacing(merchant, by_merchant[merchant], today)
        if pacing:
            pacings.append(pacing)

    return format_merchant_pacing_message(pacings, today)


async def build_category_pacing_message(supabase_client: Any, user_id: str, today: date) -> str:
    categories = await _active_tracked_names(
        supabase_client, user_id, "category_pacing_tracking", "ai_category"
    )
    if not categories:
        return NO_CATEGORIES_TRACKED

    item_ids = await get_user_item_ids(supabase_client, user_id)
    if not item_ids:
        return NO_ACCOUNTS_CATEGORY

    result = supabase_client.table("transactions") \
        .select("amount, ai_category_tag, date") \
        .in_("plaid_item_id", item_ids) \
        .gte("amount", 0) \
        .gte("date", analysis_window_start(today).isoformat()) \
        .in_("ai_category_tag", categories) \
        .execute()

    pacings = compute_category_pacing(categories, result.data or [], today)
    return format_category_pacing_message(pacings, today)


_BUILDERS = {
    "recurring": build_recurring_bills_message,
    "recent": build_recent_activity_message,
    "merchant-pacing": build_merchant_pacing_message,
    "category-pacing": build_category_pacing_message,
}


async def generate_sms_message(
    supabase_client: Any,
    user_id: str,
    template_type: str,
    today: Optional[date] = None
) -> str:
    """
    Render one of the recurring, recent, merchant-pacing or category-pacing
    templates for a user.

    Raises:
        ValueError: for any other template type
    """
    if template_type not in RENDERABLE_TEMPLATE_TYPES:
        raise ValueError(f"Invalid template type: {template_type}")

    today = today or date.today()
    logger.info(f"Generating {template_type} SMS for user {user_id}")

    return await _BUILDERS[template_type](supabase_client, user_id, today)
