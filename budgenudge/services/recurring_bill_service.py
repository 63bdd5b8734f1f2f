"""
Recurring bill prediction and detection over tagged_merchants.

A tagged merchant is a bill the user expects to recur: a merchant name, an
expected amount, a frequency and the next predicted charge date. Rows are
created by hand or by auto_detect_recurring_bills, and their predictions are
rolled forward from the latest matching transaction by update_predictions.

Date arithmetic:
- weekly / bi-weekly steps add 7 / 14 days
- monthly / bi-monthly / quarterly steps add 1 / 2 / 3 calendar months,
  clamped to the last day of shorter months
- unknown frequencies step monthly
"""

import calendar
import logging
import statistics
from collections import defaultdict
from datetime import date, timedelta
from typing import Any, Dict, Iterable, List, Optional, TypedDict

from budgenudge.services.pacing import round_half_up
from budgenudge.services.pacing_service import get_user_item_ids

logger = logging.getLogger(__name__)

DAY_STEPS = {"weekly": 7, "bi-weekly": 14}
MONTH_STEPS = {"monthly": 1, "bi-monthly": 2, "quarterly": 3}

DETECTION_LOOKBACK_DAYS = 90
DETECTION_MIN_AMOUNT = 5
DEFAULT_CONFIDENCE_THRESHOLD = 85
DEFAULT_CONFIDENCE_SCORE = 75
UPCOMING_WINDOWS = (7, 14, 30)


class DetectedBill(TypedDict):
    merchant_name: str
    expected_amount: float
    next_predicted_date: str
    confidence_score: int
    prediction_frequency: str
    transaction_count: int


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


# ---------------------------------------------------------------------------
# Date prediction
# ---------------------------------------------------------------------------

def add_months(d: date, months: int) -> date:
    """Add calendar months, clamping the day to the target month's length."""
    month_index = d.year * 12 + (d.month - 1) + months
    year, month = divmod(month_index, 12)
    month += 1
    day = min(d.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def advance_date(d: date, frequency: Optional[str], steps: int = 1) -> date:
    """Move d forward by `steps` periods of the given frequency."""
    if frequency in DAY_STEPS:
        return d + timedelta(days=DAY_STEPS[frequency] * steps)
    return add_months(d, MONTH_STEPS.get(frequency or "", 1) * steps)


def predict_next_date(last_date: date, frequency: Optional[str], today: date) -> date:
    """
    First occurrence after `today` in the series anchored at last_date.

    Always advances at least one period. Each candidate is computed from the
    anchor (last_date + n periods) so that a clamp in a short month does not
    pull every later date earlier.
    """
    steps = 1
    candidate = advance_date(last_date, frequency, steps)
    while candidate <= today:
        steps += 1
        candidate = advance_date(last_date, frequency, steps)
    return candidate


# ---------------------------------------------------------------------------
# Pattern detection
# ---------------------------------------------------------------------------

def classify_interval(days_between: float) -> str:
    if 25 <= days_between <= 35:
        return "monthly"
    if 12 <= days_between <= 16:
        return "bi-weekly"
    if 6 <= days_between <= 8:
        return "weekly"
    return "irregular"


def detect_recurring_patterns(
    transactions: Iterable[Dict[str, Any]],
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    today: Optional[date] = None
) -> List[DetectedBill]:
    """
    Find merchants that look like recurring bills.

    Transactions are grouped by merchant_name (falling back to name). A group
    needs at least two charges. Confidence combines amount consistency
    (100 for identical amounts, never below 60 otherwise), 5 points per
    charge, and 15 points when the mean interval is weekly, bi-weekly or
    monthly, capped at 100. Bills averaging under $10 are ignored.
    """
    today = today or date.today()

    groups: Dict[str, List[Dict[str, Any]]] = defaultdict(list)
    for t in transactions:
        key = t.get("merchant_name") or t.get("name")
        if key and t.get("date") is not None and t.get("amount") is not None:
            groups[key].append(t)

    detected: List[DetectedBill] = []
    for merchant, group in groups.items():
        if len(group) < 2:
            continue

        amounts = [float(t["amount"]) for t in group]
        mean_amount = statistics.fmean(amounts)
        std_dev = statistics.pstdev(amounts)
        if std_dev == 0:
            consistency = 100.0
        else:
            consistency = max(60.0, 100 - (std_dev / mean_amount) * 100)

        dates = sorted(_parse_date(t["date"]) for t in group)
        days_between = (dates[-1] - dates[0]).days / (len(dates) - 1)

        frequency = classify_interval(days_between)
        regular_bonus = 15 if frequency != "irregular" else 0
        confidence = min(100.0, consistency + len(group) * 5 + regular_bonus)

        if confidence < confidence_threshold or mean_amount < 10:
            continue

        detected.append({
            "merchant_name": merchant,
            "expected_amount": round(mean_amount, 2),
            "next_predicted_date": (today + timedelta(days=round_half_up(days_between))).isoformat(),
            "confidence_score": round_half_up(confidence),
            "prediction_frequency": frequency,
            "transaction_count": len(group),
        })

    detected.sort(key=lambda b: b["confidence_score"], reverse=True)
    return detected


# ---------------------------------------------------------------------------
# Upcoming bills
# ---------------------------------------------------------------------------

def select_upcoming_bills(merchants: Iterable[Dict[str, Any]], today: date) -> List[Dict[str, Any]]:
    """Active bills predicted strictly after today, soonest first."""
    upcoming = [
        m for m in merchants
        if m.get("is_active", True)
        and m.get("next_predicted_date")
        and _parse_date(m["next_predicted_date"]) > today
    ]
    upcoming.sort(key=lambda m: _parse_date(m["next_predicted_date"]))
    return upcoming


def upcoming_totals(upcoming: Iterable[Dict[str, Any]], today: date) -> Dict[int, float]:
    """Expected spend on bills due within 7, 14 and 30 days of today."""
    bills = list(upcoming)
    totals: Dict[int, float] = {}
    for days in UPCOMING_WINDOWS:
        horizon = today + timedelta(days=days)
        totals[days] = sum(
            float(m.get("expected_amount") or 0)
            for m in bills
            if today < _parse_date(m["next_predicted_date"]) <= horizon
        )
    return totals


# ---------------------------------------------------------------------------
# tagged_merchants CRUD
# ---------------------------------------------------------------------------

async def get_tagged_merchants(
    supabase_client: Any,
    user_id: str,
    active_only: bool = False
) -> List[Dict[str, Any]]:
    """List the user's recurring bills, most confident first."""
    logger.info(f"Fetching tagged merchants for user {user_id}")

    query = supabase_client.table("tagged_merchants") \
        .select("*") \
        .eq("user_id", user_id)

    if active_only:
        query = query.eq("is_active", True)

    result = query.order("confidence_score", desc=True).execute()
    return result.data if result.data else []


async def create_tagged_merchant(
    supabase_client: Any,
    user_id: str,
    merchant_name: str,
    expected_amount: float,
    prediction_frequency: str,
    confidence_score: int = DEFAULT_CONFIDENCE_SCORE,
    auto_detected: bool = False,
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Tag a merchant as a recurring bill.

    The first prediction is one period after today. Duplicate merchants
    surface as a postgrest APIError with code 23505.
    """
    today = today or date.today()
    logger.info(f"Tagging merchant for user {user_id}: {merchant_name} ({prediction_frequency})")

    result = supabase_client.table("tagged_merchants") \
        .insert({
            "user_id": user_id,
            "merchant_name": merchant_name,
            "merchant_pattern": merchant_name,
            "expected_amount": expected_amount,
            "prediction_frequency": prediction_frequency,
            "confidence_score": confidence_score,
            "auto_detected": auto_detected,
            "is_active": True,
            "next_predicted_date": advance_date(today, prediction_frequency).isoformat(),
        }) \
        .execute()

    if not result.data:
        raise Exception("Failed to create tagged merchant")

    return result.data[0]


async def update_tagged_merchant(
    supabase_client: Any,
    user_id: str,
    merchant_id: str,
    today: Optional[date] = None,
    **updates
) -> Optional[Dict[str, Any]]:
    """
    Partially update a tagged merchant.

    Changing prediction_frequency re-predicts the next date from today unless
    an explicit next_predicted_date is supplied in the same update.
    """
    today = today or date.today()

    if "prediction_frequency" in updates and not updates.get("next_predicted_date"):
        updates["next_predicted_date"] = advance_date(today, updates["prediction_frequency"]).isoformat()

    logger.info(f"Updating tagged merchant {merchant_id} for user {user_id}: {sorted(updates)}")

    result = supabase_client.table("tagged_merchants") \
        .update(updates) \
        .eq("id", merchant_id) \
        .eq("user_id", user_id) \
        .execute()

    return result.data[0] if result.data else None


async def delete_tagged_merchant(
    supabase_client: Any,
    user_id: str,
    merchant_id: str
) -> Optional[Dict[str, Any]]:
    """Delete a tagged merchant, returning the removed row (None if absent)."""
    logger.info(f"Deleting tagged merchant {merchant_id} for user {user_id}")

    result = supabase_client.table("tagged_merchants") \
        .delete() \
        .eq("id", merchant_id) \
        .eq("user_id", user_id) \
        .execute()

    return result.data[0] if result.data else None


async def get_upcoming_bills(
    supabase_client: Any,
    user_id: str,
    today: Optional[date] = None
) -> Dict[str, Any]:
    """Active bills due after today plus 7/14/30-day totals."""
    today = today or date.today()

    result = supabase_client.table("tagged_merchants") \
        .select("*") \
        .eq("user_id", user_id) \
        .eq("is_active", True) \
        .order("next_predicted_date") \
        .execute()

    upcoming = select_upcoming_bills(result.data or [], today)
    totals = upcoming_totals(upcoming, today)

    return {
        "bills": upcoming,
        "count": len(upcoming),
        "total_next_7_days": round(totals[7], 2),
        "total_next_14_days": round(totals[14], 2),
        "total_next_30_days": round(totals[30], 2),
    }


# ---------------------------------------------------------------------------
# Prediction refresh and detection
# ---------------------------------------------------------------------------

def _ilike_value(text: str) -> str:
    # PostgREST or() filters are comma separated; parentheses group terms
    return "".join(ch for ch in text if ch not in ",()")


async def update_predictions(
    supabase_client: Any,
    user_id: str,
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Re-anchor every active bill on its most recent matching transaction.

    For each active tagged merchant the latest transaction whose
    merchant_name or name contains the merchant name becomes
    last_transaction_date, its absolute amount becomes expected_amount, and
    the next date is predicted from it. Merchants without any matching
    transaction are left alone.
    """
    today = today or date.today()

    merchants = await get_tagged_merchants(supabase_client, user_id, active_only=True)
    if not merchants:
        return {"message": "No active merchants found", "updated_count": 0, "updates": []}

    updates: List[Dict[str, Any]] = []
    for merchant in merchants:
        name = merchant.get("merchant_name") or ""
        pattern = _ilike_value(name)
        if not pattern:
            continue

        latest = supabase_client.table("transactions") \
            .select("date, amount") \
            .or_(f"merchant_name.ilike.%{pattern}%,name.ilike.%{pattern}%") \
            .order("date", desc=True) \
            .limit(1) \
            .execute()

        if not latest.data:
            logger.info(f"No transactions found for {name}, skipping")
            continue

        last_date = _parse_date(latest.data[0]["date"])
        last_amount = abs(float(latest.data[0]["amount"]))
        frequency = merchant.get("prediction_frequency")
        next_date = predict_next_date(last_date, frequency, today)

        supabase_client.table("tagged_merchants") \
            .update({
                "last_transaction_date": last_date.isoformat(),
                "next_predicted_date": next_date.isoformat(),
                "expected_amount": last_amount,
            }) \
            .eq("id", merchant["id"]) \
            .eq("user_id", user_id) \
            .execute()

        updates.append({
            "merchant_name": name,
            "old_next_date": merchant.get("next_predicted_date"),
            "new_next_date": next_date.isoformat(),
            "last_transaction_date": last_date.isoformat(),
            "frequency": frequency,
            "expected_amount": last_amount,
            "days_until_next": (next_date - today).days,
        })

    updates.sort(key=lambda u: u["new_next_date"])
    logger.info(f"Updated predictions for {len(updates)} merchants for user {user_id}")

    return {
        "message": f"Updated predictions for {len(updates)} merchants based on most recent transactions",
        "updated_count": len(updates),
        "updates": updates,
    }


async def auto_detect_recurring_bills(
    supabase_client: Any,
    user_id: str,
    confidence_threshold: float = DEFAULT_CONFIDENCE_THRESHOLD,
    today: Optional[date] = None
) -> Dict[str, Any]:
    """
    Detect recurring bills in the last 90 days and tag them.

    Only settled transactions over $5 are analysed. Each detected bill is
    inserted on its own; a failed insert (usually an already tagged
    merchant) is logged and skipped.
    """
    today = today or date.today()
    logger.info(f"Starting recurring bill detection for user {user_id}")

    item_ids = await get_user_item_ids(supabase_client, user_id)
    if not item_ids:
        return {
            "message": "No connected accounts found",
            "bills_detected": 0,
            "total_monthly_amount": 0.0,
            "bills": [],
        }

    since = today - timedelta(days=DETECTION_LOOKBACK_DAYS)
    result = supabase_client.table("transactions") \
        .select("name, merchant_name, amount, date") \
        .in_("plaid_item_id", item_ids) \
        .gt("amount", DETECTION_MIN_AMOUNT) \
        .eq("pending", False) \
        .gte("date", since.isoformat()) \
        .order("date") \
        .execute()

    candidates = detect_recurring_patterns(result.data or [], confidence_threshold, today)

    inserted: List[DetectedBill] = []
    for bill in candidates:
        try:
            supabase_client.table("tagged_merchants") \
                .insert({
                    "user_id": user_id,
                    "merchant_name": bill["merchant_name"],
                    "merchant_pattern": bill["merchant_name"],
                    "expected_amount": bill["expected_amount"],
                    "next_predicted_date": bill["next_predicted_date"],
                    "confidence_score": bill["confidence_score"],
                    "prediction_frequency": bill["prediction_frequency"],
                    "is_active": True,
                    "auto_detected": True,
                }) \
                .execute()
        except Exception as e:
            logger.warning(f"Skipped recurring bill {bill['merchant_name']}: {e}")
            continue
        inserted.append(bill)

    total = round(sum(b["expected_amount"] for b in inserted), 2)
    logger.info(f"Recurring bill detection complete for user {user_id}: {len(inserted)} bills, ${total:.2f}")

    return {
        "message": f"Auto-detected {len(inserted)} recurring bills",
        "bills_detected": len(inserted),
        "total_monthly_amount": total,
        "bills": inserted,
    }
