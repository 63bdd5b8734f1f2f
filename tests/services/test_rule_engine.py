"""
Tests for the transaction rule engine (pure functions).
"""

import pytest

from budgenudge.services.rule_engine import (
    RuleEngine,
    apply_rules_to_transactions,
    evaluate_rule,
    generate_rule_suggestions,
    matches_pattern,
    validate_rule_definition,
)


def _rule(**overrides):
    rule = {
        "id": "rule-1",
        "rule_name": "Starbucks",
        "rule_type": "merchant_normalize",
        "pattern_type": "contains",
        "pattern_value": "starbucks",
        "normalized_merchant_name": "Starbucks",
        "override_category": None,
        "priority": 100,
        "is_active": True,
        "created_at": "2025-01-01T00:00:00Z",
    }
    rule.update(overrides)
    return rule


class TestMatchesPattern:

    @pytest.mark.parametrize("pattern_type,pattern_value,expected", [
        ("exact", "starbucks #123", True),
        ("exact", "starbucks", False),
        ("contains", "BUCKS", True),
        ("starts_with", "star", True),
        ("starts_with", "bucks", False),
        ("ends_with", "#123", True),
        ("regex", r"^star\w+", True),
        ("regex", r"^dunkin", False),
    ])
    def test_pattern_types_are_case_insensitive(self, pattern_type, pattern_value, expected):
        assert matches_pattern("STARBUCKS #123", pattern_type, pattern_value) is expected

    def test_invalid_regex_never_matches(self):
        assert matches_pattern("anything", "regex", "([unclosed") is False

    def test_unknown_pattern_type_never_matches(self):
        assert matches_pattern("anything", "fuzzy", "any") is False


class TestRuleEngine:

    def test_highest_priority_rule_wins(self):
        engine = RuleEngine([
            _rule(id="low", rule_name="Low", priority=10, normalized_merchant_name="Low"),
            _rule(id="high", rule_name="High", priority=200, normalized_merchant_name="High"),
        ])

        result = engine.apply_rules("STARBUCKS #123")

        assert result["effective_merchant_name"] == "High"
        assert result["applied_rule_ids"] == ["high"]
        assert result["rule_applied"] is True

    def test_equal_priority_prefers_oldest_rule(self):
        engine = RuleEngine([
            _rule(id="newer", normalized_merchant_name="Newer", created_at="2025-02-01T00:00:00Z"),
            _rule(id="older", normalized_merchant_name="Older", created_at="2025-01-01T00:00:00Z"),
        ])

        assert engine.apply_rules("starbucks")["effective_merchant_name"] == "Older"

    def test_only_first_match_is_applied(self):
        engine = RuleEngine([
            _rule(id="a", priority=200, rule_type="merchant_normalize"),
            _rule(id="b", priority=100, rule_type="category_override",
                  normalized_merchant_name=None, override_category="Coffee"),
        ])

        result = engine.apply_rules("STARBUCKS", "Food")

        assert result["effective_category"] == "Food"
        assert result["applied_rule_ids"] == ["a"]

    def test_inactive_rules_are_ignored(self):
        engine = RuleEngine([_rule(is_active=False)])

        result = engine.apply_rules("STARBUCKS")

        assert result["rule_applied"] is False
        assert result["effective_merchant_name"] == "STARBUCKS"

    def test_combined_rule_records_id_once(self):
        engine = RuleEngine([
            _rule(rule_type="combined", override_category="Coffee"),
        ])

        result = engine.apply_rules("STARBUCKS #9", "Food and Drink")

        assert result["effective_merchant_name"] == "Starbucks"
        assert result["effective_category"] == "Coffee"
        assert result["applied_rule_ids"] == ["rule-1"]
        assert result["applied_rule_names"] == ["Starbucks"]

    def test_regex_rule_substitutes_capture_groups(self):
        engine = RuleEngine([
            _rule(pattern_type="regex", pattern_value=r"^(\w+) STORE", normalized_merchant_name="$1 Inc $2"),
        ])

        result = engine.apply_rules("ACME STORE 55")

        assert result["effective_merchant_name"] == "ACME Inc "

    def test_no_rules_returns_original_values(self):
        result = RuleEngine([]).apply_rules("Shell Oil", None)

        assert result == {
            "original_merchant_name": "Shell Oil",
            "original_category": "",
            "effective_merchant_name": "Shell Oil",
            "effective_category": "",
            "applied_rule_ids": [],
            "applied_rule_names": [],
            "rule_applied": False,
        }


class TestEvaluateRule:

    def test_match_returns_normalized_merchant_and_category(self):
        result = evaluate_rule("STARBUCKS #123", "starts_with", "starbucks", "Starbucks", "Coffee")

        assert result == {"matches": True, "result_merchant": "Starbucks", "result_category": "Coffee"}

    def test_no_match(self):
        assert evaluate_rule("DUNKIN", "contains", "starbucks") == {"matches": False}

    def test_invalid_regex_reports_error(self):
        result = evaluate_rule("DUNKIN", "regex", "(")

        assert result["matches"] is False
        assert "error" in result


class TestGenerateRuleSuggestions:

    def test_store_number_and_chain(self):
        suggestions = generate_rule_suggestions("STARBUCKS #1234")

        assert [s["confidence"] for s in suggestions] == [95, 90]
        assert suggestions[0]["type"] == "combined"
        assert suggestions[0]["action"] == "Starbucks"
        assert suggestions[1]["pattern_value"] == "STARBUCKS"

    def test_date_code(self):
        suggestions = generate_rule_suggestions("LOCAL DELI 240719")

        assert len(suggestions) == 1
        assert suggestions[0]["pattern_value"] == "LOCAL DELI"
        assert suggestions[0]["confidence"] == 85

    def test_transaction_id(self):
        suggestions = generate_rule_suggestions("PAYMENT TXN123456")

        assert suggestions[0]["pattern_value"] == "PAYMENT"
        assert suggestions[0]["confidence"] == 75

    def test_short_cleaned_name_is_not_suggested(self):
        assert generate_rule_suggestions("AB TXN99") == []

    def test_only_first_chain_matches(self):
        suggestions = generate_rule_suggestions("AMAZON WALMART")

        assert len(suggestions) == 1
        assert suggestions[0]["action"] == "Amazon"

    @pytest.mark.parametrize("merchant", ["", "   "])
    def test_empty_input(self, merchant):
        assert generate_rule_suggestions(merchant) == []


def test_apply_rules_to_transactions_uses_name_and_subcategory():
    transactions = [
        {"id": "t1", "merchant_name": None, "name": "STARBUCKS 0042", "subcategory": "Coffee Shop"},
        {"id": "t2", "merchant_name": "Publix", "name": "PUBLIX #1", "subcategory": None},
    ]

    processed = apply_rules_to_transactions(transactions, [_rule()])

    assert processed[0]["id"] == "t1"
    assert processed[0]["effective_merchant_name"] == "Starbucks"
    assert processed[0]["original_category"] == "Coffee Shop"
    assert processed[1]["rule_applied"] is False
    assert processed[1]["effective_merchant_name"] == "Publix"


class TestValidateRuleDefinition:

    def test_normalize_requires_merchant_name(self):
        with pytest.raises(ValueError, match="normalized_merchant_name"):
            validate_rule_definition("merchant_normalize", "contains", "x")

    def test_override_requires_category(self):
        with pytest.raises(ValueError, match="override_category"):
            validate_rule_definition("category_override", "contains", "x")

    def test_combined_requires_both(self):
        with pytest.raises(ValueError, match="override_category"):
            validate_rule_definition("combined", "contains", "x", normalized_merchant_name="X")

    def test_regex_must_compile(self):
        with pytest.raises(ValueError, match="Invalid regex"):
            validate_rule_definition("merchant_normalize", "regex", "(", normalized_merchant_name="X")

    def test_valid_rule_passes(self):
        validate_rule_definition("combined", "regex", r"^shell", "Shell", "Gas")
