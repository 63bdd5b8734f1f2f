"""
Spending pacing calculations.

Pure functions shared by pacing auto-selection (pacing_service) and the
pacing SMS templates (sms_template_service). Amounts are positive for
spending; callers filter out credits before passing transactions in.
"""

import calendar
import math
from collections import defaultdict
from dataclasses import dataclass, field
from datetime import date
from typing import Any, Dict, Iterable, List, Optional, Tuple

from budgenudge.utils.constants import PACING_EXCLUDED_CATEGORIES

MERCHANT_AUTO_SELECT_LIMIT = 3
CATEGORY_AUTO_SELECT_LIMIT = 5
CATEGORY_ANALYSIS_MONTHS = 3


def _parse_date(value: Any) -> date:
    if isinstance(value, date):
        return value
    return date.fromisoformat(str(value)[:10])


def _as_float(value: Any) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (ValueError, TypeError):
        return 0.0


# ---------------------------------------------------------------------------
# Calendar helpers
# ---------------------------------------------------------------------------

def days_in_month(today: date) -> int:
    return calendar.monthrange(today.year, today.month)[1]


def month_progress(today: date) -> float:
    """Fraction of the current month elapsed, counting today (0 < p <= 1)."""
    return today.day / days_in_month(today)


def month_start(today: date) -> date:
    return today.replace(day=1)


def analysis_window_start(today: date, months: int = CATEGORY_ANALYSIS_MONTHS) -> date:
    """First day of the month `months` months before today's month."""
    month_index = today.year * 12 + (today.month - 1) - months
    return date(month_index // 12, month_index % 12 + 1, 1)


# ---------------------------------------------------------------------------
# Status
# ---------------------------------------------------------------------------

def pacing_status(pacing_percentage: float, on_track_label: str = "On track") -> Tuple[str, str]:
    """
    Map a pacing percentage to (emoji, label).

    Below 90% is under pace, above 110% is over pace, anything between
    (inclusive) is on track.
    """
    if pacing_percentage < 90:
        return "🟢", "Under pace"
    if pacing_percentage <= 110:
        return "🟡", on_track_label
    return "🔴", "Over pace"


def round_half_up(value: float) -> int:
    """Round halves up: 2.5 -> 3, 3.5 -> 4."""
    return math.floor(value + 0.5)


def pacing_percentage(current_spend: float, expected_spend: float) -> float:
    if expected_spend <= 0:
        return 0.0
    return current_spend / expected_spend * 100


# ---------------------------------------------------------------------------
# Merchant pacing
# ---------------------------------------------------------------------------

@dataclass
class MerchantPacing:
    merchant: str
    current_month_spend: float
    avg_monthly_spend: float
    expected_spend_to_date: float
    pacing_percentage: float
    days_into_month: int

    @property
    def status(self) -> Tuple[str, str]:
        return pacing_status(self.pacing_percentage)


def compute_merchant_pacing(
    merchant: str,
    transactions: Iterable[Dict[str, Any]],
    today: date
) -> Optional[MerchantPacing]:
    """
    Pace this month's spend at a merchant against its full history.

    The monthly average is the total spend divided by the inclusive day span
    of the history, scaled to 30 days. Expected spend to date assumes a
    30-day month. Returns None when there is no history.
    """
    history = [t for t in transactions if t.get("date")]
    if not history:
        return None

    total = sum(_as_float(t.get("amount")) for t in history)
    dates = [_parse_date(t["date"]) for t in history]
    span_days = max(1, (max(dates) - min(dates)).days + 1)
    avg_monthly = total / span_days * 30

    first_of_month = month_start(today)
    current = sum(
        _as_float(t.get("amount"))
        for t, d in zip(history, dates)
        if d >= first_of_month
    )

    expected = avg_monthly * (today.day / 30)

    return MerchantPacing(
        merchant=merchant,
        current_month_spend=current,
        avg_monthly_spend=avg_monthly,
        expected_spend_to_date=expected,
        pacing_percentage=pacing_percentage(current, expected),
        days_into_month=today.day,
    )


# ---------------------------------------------------------------------------
# Category pacing
# ---------------------------------------------------------------------------

@dataclass
class CategoryPacing:
    category: str
    current_month_spend: float
    avg_monthly_spend: float
    expected_spend_to_date: float
    pacing_percentage: int

    @property
    def status(self) -> Tuple[str, str]:
        return pacing_status(self.pacing_percentage, on_track_label="On pace")


def compute_category_pacing(
    categories: Iterable[str],
    transactions: Iterable[Dict[str, Any]],
    today: date
) -> List[CategoryPacing]:
    """
    Pace each tracked category over the three-month analysis window.

    transactions must already be limited to the window and carry
    ai_category_tag. Month progress is rounded to a whole percent before
    computing the expected spend, and the pacing percentage is rounded.
    Categories with no transactions are omitted. Results are sorted by
    current-month spend, highest first.
    """
    first_of_month = month_start(today)
    progress = round_half_up(month_progress(today) * 100) / 100

    totals: Dict[str, float] = defaultdict(float)
    current: Dict[str, float] = defaultdict(float)
    for t in transactions:
        category = t.get("ai_category_tag")
        if not category:
            continue
        amount = _as_float(t.get("amount"))
        totals[category] += amount
        if t.get("date") and _parse_date(t["date"]) >= first_of_month:
            current[category] += amount

    results: List[CategoryPacing] = []
    for category in categories:
        if category not in totals:
            continue
        avg_monthly = totals[category] / CATEGORY_ANALYSIS_MONTHS
        expected = avg_monthly * progress
        results.append(CategoryPacing(
            category=category,
            current_month_spend=current[category],
            avg_monthly_spend=avg_monthly,
            expected_spend_to_date=expected,
            pacing_percentage=round_half_up(pacing_percentage(current[category], expected)),
        ))

    results.sort(key=lambda r: r.current_month_spend, reverse=True)
    return results


# ---------------------------------------------------------------------------
# Auto-selection
# ---------------------------------------------------------------------------

@dataclass
class MerchantActivity:
    merchant: str
    total_spending: float = 0.0
    transaction_count: int = 0
    transaction_dates: List[date] = field(default_factory=list)

    @property
    def avg_monthly_spending(self) -> float:
        # Average per transaction scaled by 30
        return self.total_spending / max(1, len(self.transaction_dates)) * 30

    @property
    def frequency_days(self) -> float:
        """Mean whole-day gap between consecutive transactions (30 for one)."""
        if len(self.transaction_dates) < 2:
            return 30.0
        ordered = sorted(self.transaction_dates)
        gaps = [
            (later - earlier).days
            for earlier, later in zip(ordered, ordered[1:])
        ]
        return sum(gaps) / (len(ordered) - 1)

    @property
    def selection_score(self) -> float:
        avg = self.avg_monthly_spending
        frequency_score = max(0.0, 30 - self.frequency_days)
        high_activity_bonus = 100 if avg >= 200 else 0
        return avg * 0.6 + frequency_score * 0.3 + high_activity_bonus * 0.1

    def qualifies(self) -> bool:
        return (
            self.avg_monthly_spending >= 50
            and self.frequency_days <= 30
            and self.transaction_count >= 3
        )

    def to_analysis(self) -> Dict[str, Any]:
        return {
            "merchant": self.merchant,
            "avg_monthly_spending": self.avg_monthly_spending,
            "transaction_count": self.transaction_count,
            "frequency_days": self.frequency_days,
        }


def summarize_merchant_activity(transactions: Iterable[Dict[str, Any]]) -> List[MerchantActivity]:
    """Group spending transactions by ai_merchant_name."""
    activity: Dict[str, MerchantActivity] = {}
    for t in transactions:
        merchant = t.get("ai_merchant_name")
        if not merchant or not t.get("date"):
            continue
        entry = activity.setdefault(merchant, MerchantActivity(merchant=merchant))
        entry.total_spending += _as_float(t.get("amount"))
        entry.transaction_count += 1
        entry.transaction_dates.append(_parse_date(t["date"]))
    return list(activity.values())


def select_merchants_for_pacing(
    transactions: Iterable[Dict[str, Any]],
    limit: int = MERCHANT_AUTO_SELECT_LIMIT
) -> List[MerchantActivity]:
    """Pick the highest-scoring qualifying merchants."""
    candidates = [m for m in summarize_merchant_activity(transactions) if m.qualifies()]
    candidates.sort(key=lambda m: m.selection_score, reverse=True)
    return candidates[:limit]


@dataclass
class CategoryActivity:
    category: str
    total_spending: float = 0.0
    transaction_count: int = 0
    current_month_spending: float = 0.0
    current_month_transactions: int = 0

    @property
    def avg_monthly_spending(self) -> float:
        return self.total_spending / CATEGORY_ANALYSIS_MONTHS

    @property
    def avg_monthly_transactions(self) -> float:
        return self.transaction_count / CATEGORY_ANALYSIS_MONTHS

    @property
    def selection_score(self) -> float:
        avg = self.avg_monthly_spending
        avg_tx = self.avg_monthly_transactions
        frequency_score = avg_tx * 20 if avg_tx >= 2.5 else 0
        current_activity_score = 50 if self.current_month_spending > 0 else 0
        high_activity_score = 100 if avg >= 200 else 0
        return avg + frequency_score + current_activity_score + high_activity_score

    def qualifies(self) -> bool:
        return (
            self.avg_monthly_spending >= 25
            and self.avg_monthly_transactions >= 1.5
            and (self.current_month_spending > 0 or self.avg_monthly_spending >= 75)
        )

    def to_analysis(self) -> Dict[str, Any]:
        return {
            "category": self.category,
            "avg_monthly_spending": round(self.avg_monthly_spending, 2),
            "avg_monthly_transactions": round(self.avg_monthly_transactions, 1),
            "current_month_spending": self.current_month_spending,
            "current_month_transactions": self.current_month_transactions,
            "selection_score": round(self.selection_score),
        }


def summarize_category_activity(
    transactions: Iterable[Dict[str, Any]],
    today: date
) -> List[CategoryActivity]:
    """Group spending transactions by ai_category_tag, skipping excluded categories."""
    first_of_month = month_start(today)
    activity: Dict[str, CategoryActivity] = {}
    for t in transactions:
        category = t.get("ai_category_tag")
        if not category or category in PACING_EXCLUDED_CATEGORIES:
            continue
        amount = _as_float(t.get("amount"))
        entry = activity.setdefault(category, CategoryActivity(category=category))
        entry.total_spending += amount
        entry.transaction_count += 1
        if t.get("date") and _parse_date(t["date"]) >= first_of_month:
            entry.current_month_spending += amount
            entry.current_month_transactions += 1
    return list(activity.values())


def select_categories_for_pacing(
    transactions: Iterable[Dict[str, Any]],
    today: date,
    limit: int = CATEGORY_AUTO_SELECT_LIMIT
) -> List[CategoryActivity]:
    """Pick the highest-scoring qualifying categories."""
    candidates = [c for c in summarize_category_activity(transactions, today) if c.qualifies()]
    candidates.sort(key=lambda c: c.selection_score, reverse=True)
    return candidates[:limit]
