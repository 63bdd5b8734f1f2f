"""
Tests for the merchant tagging agent.

The Gemini client is mocked; no network calls are made.
"""

from unittest.mock import MagicMock, patch

import pytest

from budgenudge.agents.tagging import clean_merchant_name, fallback_category, tag_merchant
from budgenudge.agents.tagging.agent import to_title_case
from budgenudge.agents.tagging.prompts import build_merchant_tagging_prompt
from budgenudge.config import settings

AGENT = "budgenudge.agents.tagging.agent"


def _mock_genai(response_text):
    mock_genai = MagicMock()
    mock_genai.Client.return_value.models.generate_content.return_value = MagicMock(text=response_text)
    return mock_genai


class TestCleanMerchantName:

    @pytest.mark.parametrize("raw,expected", [
        ("PUBLIX SUPER MARKET #1234", "Publix Super Market"),
        ("LOCAL DELI 240719", "Local Deli"),
        ("Zelle payment ~ Tran: ABC123", "Zelle Payment"),
        ("WAWA 8123 TAMPA FL", "Wawa 8123 Tampa"),
        ("CIRCLE K, FL", "Circle K"),
        ("mcdonald's", "Mcdonald's"),
        ("  SHELL   OIL  ", "Shell Oil"),
        ("", "Unknown Merchant"),
        ("   ", "Unknown Merchant"),
    ])
    def test_cleanup(self, raw, expected):
        assert clean_merchant_name(raw) == expected

    def test_title_case(self):
        assert to_title_case("AMAZON prime VIDEO") == "Amazon Prime Video"


class TestFallbackCategory:

    @pytest.mark.parametrize("merchant_input,expected", [
        ({"amount": -1500}, "Income"),
        ({"amount": 950}, "Utilities"),
        ({"amount": 12, "category": ["Food and Drink", "Food"]}, "Restaurant"),
        ({"amount": 40, "category": ["Travel", "Gas"]}, "Gas"),
        ({"amount": 9.99, "subcategory": "Music Subscription"}, "Subscription"),
        ({"amount": 25, "category": None}, "Other"),
        ({"amount": "not a number"}, "Other"),
    ])
    def test_rules(self, merchant_input, expected):
        assert fallback_category(merchant_input) == expected


class TestTagMerchant:

    def test_without_api_key_uses_fallback(self):
        with patch(f"{AGENT}.genai") as mock_genai:
            result = tag_merchant({"merchant_name": "PUBLIX #1", "name": "PUBLIX #1", "amount": 50})

        mock_genai.Client.assert_not_called()
        assert result == {"merchant_name": "Publix", "category_tag": "Other"}

    def test_uses_model_response(self):
        mock_genai = _mock_genai('{"merchant_name": "publix", "category_tag": "groceries"}')

        with patch.object(settings, "GOOGLE_API_KEY", "test-key"), \
             patch(f"{AGENT}.genai", mock_genai):
            result = tag_merchant({"merchant_name": "PUBLIX #1", "name": "PUBLIX #1", "amount": 50})

        assert result == {"merchant_name": "Publix", "category_tag": "Groceries"}
        mock_genai.Client.assert_called_once_with(api_key="test-key")
        kwargs = mock_genai.Client.return_value.models.generate_content.call_args.kwargs
        assert kwargs["model"] == settings.GEMINI_MODEL
        assert kwargs["config"].temperature == 0.3
        assert kwargs["config"].response_mime_type == "application/json"

    @pytest.mark.parametrize("response_text", [
        "",
        "not json",
        "[]",
        '{"merchant_name": "Publix"}',
    ])
    def test_bad_responses_fall_back(self, response_text):
        with patch.object(settings, "GOOGLE_API_KEY", "test-key"), \
             patch(f"{AGENT}.genai", _mock_genai(response_text)):
            result = tag_merchant({"name": "SHELL OIL 57444", "amount": 30, "category": ["Travel", "Gas"]})

        assert result == {"merchant_name": "Shell Oil 57444", "category_tag": "Gas"}

    def test_sdk_error_falls_back(self):
        mock_genai = MagicMock()
        mock_genai.Client.return_value.models.generate_content.side_effect = RuntimeError("503")

        with patch.object(settings, "GOOGLE_API_KEY", "test-key"), \
             patch(f"{AGENT}.genai", mock_genai):
            result = tag_merchant({"name": "NETFLIX.COM", "amount": 15.49, "subcategory": "Subscription"})

        assert result == {"merchant_name": "Netflix.com", "category_tag": "Subscription"}


def test_prompt_includes_transaction_fields():
    prompt = build_merchant_tagging_prompt({
        "merchant_name": "PUBLIX",
        "name": "PUBLIX SUPER MARKET #1234",
        "amount": 54.21,
        "category": ["Shops", "Supermarkets and Groceries"],
    })

    assert "PUBLIX SUPER MARKET #1234" in prompt
    assert "54.21" in prompt
    assert "Supermarkets and Groceries" in prompt
