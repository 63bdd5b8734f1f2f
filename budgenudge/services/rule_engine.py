"""
Transaction rule engine.

Applies user-defined rules to raw merchant strings to normalize merchant
names and override categories. Pure functions only: loading rules from
transaction_rules is done by transaction_rule_service.

Matching semantics:
- All pattern types are case-insensitive
- Active rules are evaluated by priority (highest first), then created_at
  (oldest first)
- Only the first matching rule is applied
- Regex rules may reference capture groups as $1, $2, ... in
  normalized_merchant_name
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Literal, Optional, TypedDict

logger = logging.getLogger(__name__)

RuleType = Literal["merchant_normalize", "category_override", "combined"]
PatternType = Literal["exact", "contains", "starts_with", "ends_with", "regex"]

NORMALIZING_RULE_TYPES = ("merchant_normalize", "combined")
OVERRIDING_RULE_TYPES = ("category_override", "combined")

_GROUP_REFERENCE = re.compile(r"\$(\d+)")


class ProcessedTransaction(TypedDict):
    """Outcome of running the rule engine over one merchant string."""
    original_merchant_name: str
    original_category: str
    effective_merchant_name: str
    effective_category: str
    applied_rule_ids: List[str]
    applied_rule_names: List[str]
    rule_applied: bool


class RuleTestResult(TypedDict, total=False):
    matches: bool
    result_merchant: Optional[str]
    result_category: Optional[str]
    error: str


class RuleSuggestion(TypedDict, total=False):
    type: Literal["normalize", "categorize", "combined"]
    pattern_type: PatternType
    pattern_value: str
    action: str
    category: str
    description: str
    confidence: int


# Chains recognised by generate_rule_suggestions: (pattern, display name, category)
CHAIN_STORES = (
    ("STARBUCKS", "Starbucks", "Food and Drink"),
    ("MCDONALDS", "McDonald's", "Restaurants"),
    ("AMAZON", "Amazon", "Shopping"),
    ("WALMART", "Walmart", "Shopping"),
    ("TARGET", "Target", "Shopping"),
    ("SHELL", "Shell", "Gas"),
    ("EXXON", "Exxon", "Gas"),
    ("UBER", "Uber", "Transportation"),
)


def matches_pattern(text: str, pattern_type: str, pattern_value: str) -> bool:
    """
    Check whether text matches a rule pattern.

    An invalid regex or unknown pattern type never matches.
    """
    text = text or ""
    lower_text = text.lower()
    lower_pattern = (pattern_value or "").lower()

    if pattern_type == "exact":
        return lower_text == lower_pattern
    if pattern_type == "contains":
        return lower_pattern in lower_text
    if pattern_type == "starts_with":
        return lower_text.startswith(lower_pattern)
    if pattern_type == "ends_with":
        return lower_text.endswith(lower_pattern)
    if pattern_type == "regex":
        try:
            return re.search(pattern_value, text, re.IGNORECASE) is not None
        except re.error as e:
            logger.warning(f"Invalid regex pattern {pattern_value!r}: {e}")
            return False
    return False


def _substitute_groups(template: str, match: "re.Match[str]") -> str:
    """Replace $N references with the match's capture groups ('' if absent)."""
    def _group(ref: "re.Match[str]") -> str:
        index = int(ref.group(1))
        if index > (match.re.groups or 0):
            return ""
        return match.group(index) or ""

    return _GROUP_REFERENCE.sub(_group, template)


def _normalize_merchant(merchant_name: str, rule: Dict[str, Any]) -> str:
    normalized = rule.get("normalized_merchant_name")
    if not normalized:
        return merchant_name

    if rule.get("pattern_type") == "regex":
        try:
            match = re.search(rule["pattern_value"], merchant_name, re.IGNORECASE)
        except re.error as e:
            logger.warning(f"Regex error in rule {rule.get('rule_name')!r}: {e}")
            return normalized
        if match:
            return _substitute_groups(normalized, match)

    return normalized


class RuleEngine:
    """Evaluates a user's transaction rules in priority order."""

    def __init__(self, rules: Iterable[Dict[str, Any]]):
        active = [r for r in rules if r.get("is_active", True)]
        # Stable sorts: created_at ascending first, then priority descending
        active.sort(key=lambda r: str(r.get("created_at") or ""))
        active.sort(key=lambda r: int(r.get("priority") or 0), reverse=True)
        self.rules: List[Dict[str, Any]] = active

    def apply_rules(
        self,
        original_merchant_name: str,
        original_category: Optional[str] = None
    ) -> ProcessedTransaction:
        merchant_name = original_merchant_name or ""
        category = original_category
        applied_rule_ids: List[str] = []
        applied_rule_names: List[str] = []

        for rule in self.rules:
            if not matches_pattern(merchant_name, rule.get("pattern_type", ""), rule.get("pattern_value", "")):
                continue

            rule_type = rule.get("rule_type")
            if rule.get("normalized_merchant_name") and rule_type in NORMALIZING_RULE_TYPES:
                merchant_name = _normalize_merchant(merchant_name, rule)
                applied_rule_ids.append(rule["id"])
                applied_rule_names.append(rule.get("rule_name", ""))

            if rule.get("override_category") and rule_type in OVERRIDING_RULE_TYPES:
                category = rule["override_category"]
                if rule["id"] not in applied_rule_ids:
                    applied_rule_ids.append(rule["id"])
                    applied_rule_names.append(rule.get("rule_name", ""))

            # Highest priority match wins
            break

        return {
            "original_merchant_name": original_merchant_name,
            "original_category": original_category or "",
            "effective_merchant_name": merchant_name,
            "effective_category": category or "",
            "applied_rule_ids": applied_rule_ids,
            "applied_rule_names": applied_rule_names,
            "rule_applied": len(applied_rule_ids) > 0,
        }


def evaluate_rule(
    merchant_name: str,
    pattern_type: str,
    pattern_value: str,
    normalized_merchant_name: Optional[str] = None,
    override_category: Optional[str] = None
) -> RuleTestResult:
    """Dry-run a single rule definition against a sample merchant string."""
    if pattern_type == "regex":
        try:
            re.compile(pattern_value)
        except re.error as e:
            return {"matches": False, "error": str(e)}

    if not matches_pattern(merchant_name, pattern_type, pattern_value):
        return {"matches": False}

    result_merchant = merchant_name
    if normalized_merchant_name:
        result_merchant = _normalize_merchant(
            merchant_name,
            {
                "pattern_type": pattern_type,
                "pattern_value": pattern_value,
                "normalized_merchant_name": normalized_merchant_name,
            },
        )

    return {
        "matches": True,
        "result_merchant": result_merchant,
        "result_category": override_category,
    }


def generate_rule_suggestions(merchant_name: str) -> List[RuleSuggestion]:
    """
    Suggest rules for a raw merchant string, most confident first.

    Detects store numbers ("STARBUCKS #1234"), date codes ("STORE 240719"),
    embedded transaction IDs ("PAYMENT TXN123456") and well-known chains.
    """
    suggestions: List[RuleSuggestion] = []

    if not merchant_name or not merchant_name.strip():
        return suggestions

    store_number = re.match(r"^(.+?)\s*#\d+", merchant_name, re.IGNORECASE)
    if store_number:
        base_name = store_number.group(1).strip()
        suggestions.append({
            "type": "normalize",
            "pattern_type": "starts_with",
            "pattern_value": base_name,
            "action": base_name,
            "description": f"Normalize all {base_name} locations (remove store numbers)",
            "confidence": 90,
        })

    date_code = re.match(r"^(.+?)\s+\d{6,8}", merchant_name)
    if date_code:
        base_name = date_code.group(1).strip()
        suggestions.append({
            "type": "normalize",
            "pattern_type": "starts_with",
            "pattern_value": base_name,
            "action": base_name,
            "description": f"Remove date codes from {base_name} transactions",
            "confidence": 85,
        })

    if re.search(r"TXN\d+|PAYMENT\s+\d+|ID\d+", merchant_name, re.IGNORECASE):
        clean_name = re.sub(r"\s*(TXN|ID)\d+", "", merchant_name, flags=re.IGNORECASE).strip()
        if len(clean_name) > 3:
            suggestions.append({
                "type": "normalize",
                "pattern_type": "contains",
                "pattern_value": clean_name,
                "action": clean_name,
                "description": f"Remove transaction IDs from {clean_name}",
                "confidence": 75,
            })

    upper_name = merchant_name.upper()
    for pattern, name, category in CHAIN_STORES:
        if pattern in upper_name:
            suggestions.append({
                "type": "combined",
                "pattern_type": "contains",
                "pattern_value": pattern,
                "action": name,
                "category": category,
                "description": f"Normalize {name} and categorize as {category}",
                "confidence": 95,
            })
            break

    suggestions.sort(key=lambda s: s["confidence"], reverse=True)
    return suggestions


def apply_rules_to_transactions(
    transactions: Iterable[Dict[str, Any]],
    rules: Iterable[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """Merge each transaction with the ProcessedTransaction fields for it."""
    engine = RuleEngine(rules)
    processed = []
    for transaction in transactions:
        merchant_name = transaction.get("merchant_name") or transaction.get("name") or ""
        result = engine.apply_rules(merchant_name, transaction.get("subcategory"))
        processed.append({**transaction, **result})
    return processed


def validate_rule_definition(
    rule_type: str,
    pattern_type: str,
    pattern_value: str,
    normalized_merchant_name: Optional[str] = None,
    override_category: Optional[str] = None
) -> None:
    """
    Check the cross-field requirements of a rule.

    Raises:
        ValueError: with a user-facing message when the rule is incomplete
    """
    if not pattern_value:
        raise ValueError("pattern_value must not be empty")

    if rule_type in NORMALIZING_RULE_TYPES and not normalized_merchant_name:
        raise ValueError(
            "normalized_merchant_name is required for merchant_normalize and combined rules"
        )

    if rule_type in OVERRIDING_RULE_TYPES and not override_category:
        raise ValueError(
            "override_category is required for category_override and combined rules"
        )

    if pattern_type == "regex":
        try:
            re.compile(pattern_value)
        except re.error as e:
            raise ValueError(f"Invalid regex pattern: {e}") from e
