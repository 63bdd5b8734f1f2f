"""
Tests for the ADF classifier runner (Gemini mocked).
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from budgenudge.agents.adf import run_adf_classifier
from budgenudge.agents.adf.prompts import build_adf_prompt
from budgenudge.config import settings

AGENT = "budgenudge.agents.adf.agent"


def _mock_genai(response_text):
    mock_genai = MagicMock()
    mock_genai.Client.return_value.models.generate_content.return_value = MagicMock(text=response_text)
    return mock_genai


def test_missing_api_key_raises():
    with pytest.raises(ValueError, match="GOOGLE_API_KEY"):
        run_adf_classifier("Publix", "PUBLIX #1", 54.0, "Groceries")


def test_returns_parsed_verdict():
    verdict = {"expense_type": "discretionary", "confidence": 88, "reasoning": "Groceries vary week to week"}
    mock_genai = _mock_genai(json.dumps(verdict))

    with patch.object(settings, "GOOGLE_API_KEY", "test-key"), \
         patch(f"{AGENT}.genai", mock_genai):
        result = run_adf_classifier("Publix", "PUBLIX #1", 54.0, "Groceries", ["Shops"])

    assert result == verdict
    kwargs = mock_genai.Client.return_value.models.generate_content.call_args.kwargs
    assert kwargs["config"].temperature == 0.2
    assert '"Publix"' in kwargs["contents"]


@pytest.mark.parametrize("response_text,error", [
    ("", ValueError),
    ("[1, 2]", ValueError),
    ("{oops", json.JSONDecodeError),
])
def test_bad_responses_raise(response_text, error):
    with patch.object(settings, "GOOGLE_API_KEY", "test-key"), \
         patch(f"{AGENT}.genai", _mock_genai(response_text)):
        with pytest.raises(error):
            run_adf_classifier("Publix", "PUBLIX #1", 54.0, "Groceries")


def test_prompt_uses_absolute_amount():
    prompt = build_adf_prompt("Refund Co", "REFUND", -25.5, "Other")

    assert "Amount: $25.5" in prompt
    assert "Plaid Category: null" in prompt
