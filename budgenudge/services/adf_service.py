"""
ADF (Available Discretionary Funds) classification.

A transaction is ADF-eligible when it is discretionary: spending the user
controls through daily choices. Fixed expenses (rent, utilities, loans,
insurance, locked-in subscriptions) are not.

Classification tries Gemini first and falls back to keyword rules on any
failure, so callers always get a result.
"""

import asyncio
import logging
from typing import Any, Dict, List, Literal, Optional, Sequence, TypedDict

from budgenudge.agents.adf import run_adf_classifier
from budgenudge.config import settings
from budgenudge.services.pacing import round_half_up

logger = logging.getLogger(__name__)

ExpenseType = Literal["fixed_expense", "discretionary"]

DEFAULT_AI_CONFIDENCE = 80
BATCH_DELAY_SECONDS = 0.5

# Predictable, hard to control
FIXED_EXPENSE_KEYWORDS = (
    # Housing
    "rent", "mortgage", "property tax", "hoa", "homeowners",
    # Utilities
    "electric", "electricity", "water", "sewer", "gas", "internet", "cable", "phone bill",
    "verizon", "at&t", "comcast", "spectrum", "duke energy", "florida power",
    # Transportation
    "car payment", "auto loan", "car insurance", "registration", "lease payment",
    # Insurance
    "health insurance", "life insurance", "auto insurance", "home insurance",
    # Loans and debt
    "student loan", "credit card payment", "loan payment", "mortgage payment",
    # Fixed services
    "gym membership", "netflix", "spotify", "amazon prime", "hulu", "adobe",
)

# Variable, controllable
DISCRETIONARY_KEYWORDS = (
    # Food and dining
    "restaurant", "fast food", "coffee", "starbucks", "mcdonald", "dining",
    "groceries", "publix", "walmart", "target", "whole foods", "grocery",
    # Transportation
    "gas", "fuel", "gasoline", "circle k", "wawa", "shell", "chevron",
    "uber", "lyft", "taxi", "parking",
    # Shopping
    "amazon", "shopping", "retail", "clothing", "shoes", "electronics",
    "home depot", "lowes", "best buy", "apple store",
    # Entertainment
    "entertainment", "movie", "concert", "sports", "hobby", "books",
    # Personal care
    "haircut", "salon", "spa", "pharmacy", "medical", "doctor",
)


class ADFClassificationInput(TypedDict, total=False):
    merchant_name: Optional[str]
    name: str
    amount: float
    category: Optional[List[str]]
    subcategory: Optional[str]
    ai_merchant_name: Optional[str]
    ai_category_tag: Optional[str]


class ADFClassificationResult(TypedDict):
    merchant_name: str
    category_tag: str
    expense_type: ExpenseType
    adf_eligible: bool
    confidence: int
    reasoning: str


def _amount(value: Any) -> float:
    try:
        return float(value) if value is not None else 0.0
    except (TypeError, ValueError):
        return 0.0


def _result(
    merchant_name: str,
    category_tag: str,
    expense_type: ExpenseType,
    confidence: int,
    reasoning: str
) -> ADFClassificationResult:
    return {
        "merchant_name": merchant_name,
        "category_tag": category_tag,
        "expense_type": expense_type,
        "adf_eligible": expense_type == "discretionary",
        "confidence": confidence,
        "reasoning": reasoning,
    }


def classify_with_rules(merchant_name: str, category_tag: str, amount: float) -> ADFClassificationResult:
    """
    Keyword classification.

    Order: fixed keywords (75), discretionary keywords (75), then defaults:
    discretionary (60), amount over $200 -> fixed (65), a utilities or
    insurance category -> fixed (80).
    """
    category_lower = (category_tag or "").lower()
    search_text = f"{(merchant_name or '').lower()} {category_lower}"

    if any(keyword in search_text for keyword in FIXED_EXPENSE_KEYWORDS):
        return _result(merchant_name, category_tag, "fixed_expense", 75,
                       "Rule-based: matched fixed expense pattern")

    if any(keyword in search_text for keyword in DISCRETIONARY_KEYWORDS):
        return _result(merchant_name, category_tag, "discretionary", 75,
                       "Rule-based: matched discretionary pattern")

    expense_type: ExpenseType = "discretionary"
    confidence = 60
    reasoning = "Default: discretionary (unknown pattern)"

    if amount > 200:
        expense_type = "fixed_expense"
        confidence = 65
        reasoning = "Heuristic: large amount suggests fixed expense"

    if "utilities" in category_lower or "insurance" in category_lower:
        expense_type = "fixed_expense"
        confidence = 80
        reasoning = "Category-based: utilities/insurance classification"

    return _result(merchant_name, category_tag, expense_type, confidence, reasoning)


def _clamp_confidence(value: Any) -> int:
    try:
        confidence = float(value) if value else DEFAULT_AI_CONFIDENCE
    except (TypeError, ValueError):
        confidence = DEFAULT_AI_CONFIDENCE
    return round_half_up(min(100, max(0, confidence)))


def classify_for_adf(classification_input: ADFClassificationInput) -> ADFClassificationResult:
    """
    Classify one transaction as fixed or discretionary.

    Existing AI tags (ai_merchant_name, ai_category_tag) are preferred over the
    raw Plaid fields. Any model failure, including a missing API key, falls
    back to classify_with_rules.
    """
    raw_name = classification_input.get("name") or ""
    merchant_name = (
        classification_input.get("ai_merchant_name")
        or classification_input.get("merchant_name")
        or raw_name
    )
    category_tag = classification_input.get("ai_category_tag") or ""
    amount = _amount(classification_input.get("amount"))

    try:
        ai_result = run_adf_classifier(
            merchant_name,
            raw_name,
            amount,
            category_tag,
            classification_input.get("category")
        )

        expense_type: ExpenseType = (
            "fixed_expense" if ai_result.get("expense_type") == "fixed_expense" else "discretionary"
        )
        result = _result(
            merchant_name,
            category_tag,
            expense_type,
            _clamp_confidence(ai_result.get("confidence")),
            str(ai_result.get("reasoning") or "AI classification")
        )
        logger.info(f"ADF classified '{merchant_name}' -> {expense_type} ({result['confidence']}% confidence)")
        return result

    except Exception as e:
        logger.warning(f"ADF AI classification failed for '{merchant_name}', using rules: {e}")
        result = classify_with_rules(merchant_name, category_tag, amount)
        logger.info(f"ADF fallback '{merchant_name}' -> {result['expense_type']}")
        return result


async def classify_multiple_for_adf(
    inputs: Sequence[ADFClassificationInput],
    delay_seconds: float = BATCH_DELAY_SECONDS
) -> List[ADFClassificationResult]:
    """
    Classify transactions one at a time, in order.

    Each call runs in a worker thread. Pauses delay_seconds between model
    calls when an API key is configured.
    An item that errors gets its rule-based result.
    """
    results: List[ADFClassificationResult] = []

    for index, classification_input in enumerate(inputs):
        if index > 0 and delay_seconds > 0 and settings.GOOGLE_API_KEY:
            await asyncio.sleep(delay_seconds)

        try:
            results.append(await asyncio.to_thread(classify_for_adf, classification_input))
        except Exception as e:
            logger.error(f"Failed to classify transaction '{classification_input.get('name')}': {e}", exc_info=True)
            results.append(classify_with_rules(
                classification_input.get("merchant_name") or classification_input.get("name") or "",
                classification_input.get("ai_category_tag") or "",
                _amount(classification_input.get("amount"))
            ))

    return results


def summarize_adf(
    transactions: Sequence[Dict[str, Any]],
    results: Sequence[ADFClassificationResult],
    days: int = 30,
    top_n: int = 10
) -> Dict[str, Any]:
    """
    Aggregate classified spending.

    Only positive amounts (money out) count. daily_adf is the ADF total spread
    over `days`. Percentages are of total spending, one decimal place.

    Raises:
        ValueError: if days < 1 or the two sequences differ in length
    """
    if days < 1:
        raise ValueError("days must be at least 1")
    if len(transactions) != len(results):
        raise ValueError("transactions and results must be the same length")

    adf_total = 0.0
    fixed_total = 0.0
    adf_count = 0
    fixed_count = 0
    merchant_totals: Dict[str, float] = {}
    category_totals: Dict[str, float] = {}

    for transaction, result in zip(transactions, results):
        amount = _amount(transaction.get("amount"))
        if amount <= 0:
            continue

        if result["adf_eligible"]:
            adf_total += amount
            adf_count += 1
            merchant = result["merchant_name"] or "Unknown"
            merchant_totals[merchant] = merchant_totals.get(merchant, 0.0) + amount
            category = result["category_tag"] or "Unknown"
            category_totals[category] = category_totals.get(category, 0.0) + amount
        else:
            fixed_total += amount
            fixed_count += 1

    total_spending = adf_total + fixed_total

    def _share(part: float) -> float:
        return round(part / total_spending * 100, 1) if total_spending > 0 else 0.0

    def _top(totals: Dict[str, float], key: str) -> List[Dict[str, Any]]:
        ranked = sorted(totals.items(), key=lambda item: item[1], reverse=True)[:top_n]
        return [
            {key: name, "total": round(total, 2), "daily_adf": round(total / days, 2)}
            for name, total in ranked
        ]

    return {
        "total_spending": round(total_spending, 2),
        "adf_total": round(adf_total, 2),
        "fixed_total": round(fixed_total, 2),
        "adf_count": adf_count,
        "fixed_count": fixed_count,
        "adf_percentage": _share(adf_total),
        "fixed_percentage": _share(fixed_total),
        "days": days,
        "daily_adf": round(adf_total / days, 2),
        "top_merchants": _top(merchant_totals, "merchant"),
        "top_categories": _top(category_totals, "category"),
    }
