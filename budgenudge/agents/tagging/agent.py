"""
Merchant tagging runner.

One Gemini call per merchant with a JSON response. Any failure (missing API
key, empty or malformed response, SDK error) falls back to deterministic
cleanup so callers always get a usable tag.
"""

import json
import logging
import re
from typing import Any

from google import genai
from google.genai import types

from budgenudge.agents.tagging.prompts import (
    MERCHANT_TAGGING_SYSTEM_PROMPT,
    build_merchant_tagging_prompt,
)
from budgenudge.agents.tagging.types import MerchantTaggingInput, MerchantTaggingResult
from budgenudge.config import settings

logger = logging.getLogger(__name__)

UNKNOWN_MERCHANT = "Unknown Merchant"


def to_title_case(text: str) -> str:
    """Upper-case the first character of each word, lower-case the rest."""
    return re.sub(r"\w\S*", lambda m: m.group(0)[0].upper() + m.group(0)[1:].lower(), text)


def clean_merchant_name(raw_name: str) -> str:
    """
    Strip store numbers, date codes, transfer ids and a trailing FL state.

    "PUBLIX SUPER MARKET #1234" -> "Publix Super Market"
    """
    if not raw_name:
        return UNKNOWN_MERCHANT

    cleaned = raw_name.strip()
    cleaned = re.sub(r"\s+#\d+", "", cleaned)
    cleaned = re.sub(r"\s+\d{6}", "", cleaned)
    cleaned = re.sub(r"\s*~\s*Tran:\s*\w+", "", cleaned)
    cleaned = re.sub(r"\s+FL$|,\s*FL$", "", cleaned, flags=re.IGNORECASE)
    cleaned = re.sub(r"\s+", " ", cleaned).strip()

    return to_title_case(cleaned) or UNKNOWN_MERCHANT


def fallback_category(merchant_input: MerchantTaggingInput) -> str:
    """Category from amount and Plaid hints when the model is unavailable."""
    try:
        amount = float(merchant_input.get("amount") or 0)
    except (TypeError, ValueError):
        amount = 0.0

    # Plaid amounts are positive for money out
    if amount < 0:
        return "Income"
    if amount > 200:
        return "Utilities"

    category = merchant_input.get("category") or []
    if "Food" in category:
        return "Restaurant"
    if "Gas" in category:
        return "Gas"

    subcategory = merchant_input.get("subcategory") or ""
    if "subscription" in subcategory.lower():
        return "Subscription"

    return "Other"


def fallback_tag(merchant_input: MerchantTaggingInput) -> MerchantTaggingResult:
    raw_merchant = merchant_input.get("merchant_name") or merchant_input.get("name") or ""
    return {
        "merchant_name": clean_merchant_name(raw_merchant),
        "category_tag": fallback_category(merchant_input),
    }


def _parse_tag(response_text: str) -> MerchantTaggingResult:
    result: Any = json.loads(response_text)
    if not isinstance(result, dict):
        raise ValueError("Model response is not a JSON object")

    merchant_name = str(result.get("merchant_name") or "").strip()
    category_tag = str(result.get("category_tag") or "").strip()
    if not merchant_name or not category_tag:
        raise ValueError("Model response missing merchant_name or category_tag")

    return {
        "merchant_name": to_title_case(merchant_name),
        "category_tag": to_title_case(category_tag),
    }


def tag_merchant(merchant_input: MerchantTaggingInput) -> MerchantTaggingResult:
    """
    Normalize a transaction's merchant and category with Gemini.

    Args:
        merchant_input: Raw merchant_name/name/amount/category/subcategory

    Returns:
        MerchantTaggingResult; the rule-based fallback if the model call fails
    """
    raw_merchant = merchant_input.get("merchant_name") or merchant_input.get("name") or ""

    if not settings.GOOGLE_API_KEY:
        logger.warning("GOOGLE_API_KEY not configured; using fallback merchant tagging")
        return fallback_tag(merchant_input)

    try:
        client = genai.Client(api_key=settings.GOOGLE_API_KEY)

        config = types.GenerateContentConfig(
            system_instruction=MERCHANT_TAGGING_SYSTEM_PROMPT,
            temperature=0.3,
            response_mime_type="application/json"
        )

        response = client.models.generate_content(
            model=settings.GEMINI_MODEL,
            contents=build_merchant_tagging_prompt(merchant_input),
            config=config
        )

        response_text = (response.text or "").strip()
        if not response_text:
            raise ValueError("Model did not return a response")

        result = _parse_tag(response_text)
        logger.info(f"AI tagged '{raw_merchant}' -> '{result['merchant_name']}' ({result['category_tag']})")
        return result

    except Exception as e:
        logger.error(f"Merchant tagging failed for '{raw_merchant}': {e}", exc_info=True)
        result = fallback_tag(merchant_input)
        logger.info(f"Fallback tagged '{raw_merchant}' -> '{result['merchant_name']}' ({result['category_tag']})")
        return result
