"""
ADF classifier runner.

Single Gemini call returning the model's raw verdict. Unlike the tagging
agent this raises on failure; budgenudge.services.adf_service owns the
rule-based fallback.
"""

import json
import logging
from typing import Any, Dict, List, Optional

from google import genai
from google.genai import types

from budgenudge.agents.adf.prompts import ADF_SYSTEM_PROMPT, build_adf_prompt
from budgenudge.config import settings

logger = logging.getLogger(__name__)


def run_adf_classifier(
    merchant_name: str,
    raw_name: str,
    amount: float,
    category_tag: str,
    plaid_category: Optional[List[str]] = None
) -> Dict[str, Any]:
    """
    Ask Gemini whether a transaction is fixed or discretionary.

    Returns:
        The parsed JSON object (expense_type, confidence, reasoning)

    Raises:
        ValueError: if GOOGLE_API_KEY is missing or the response is empty or not an object
        json.JSONDecodeError: if the response is not JSON
    """
    if not settings.GOOGLE_API_KEY:
        raise ValueError("GOOGLE_API_KEY is not configured")

    client = genai.Client(api_key=settings.GOOGLE_API_KEY)

    config = types.GenerateContentConfig(
        system_instruction=ADF_SYSTEM_PROMPT,
        temperature=0.2,
        response_mime_type="application/json"
    )

    response = client.models.generate_content(
        model=settings.GEMINI_MODEL,
        contents=build_adf_prompt(merchant_name, raw_name, amount, category_tag, plaid_category),
        config=config
    )

    response_text = (response.text or "").strip()
    if not response_text:
        raise ValueError("Model did not return a response")

    logger.debug(f"Raw ADF response: {response_text[:200]}")

    result = json.loads(response_text)
    if not isinstance(result, dict):
        raise ValueError("Model response is not a JSON object")

    return result
