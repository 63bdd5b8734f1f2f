"""
Merchant tagging prompt templates.

Single-shot JSON workflow:
- Model: Gemini (settings.GEMINI_MODEL)
- Temperature: 0.3
- Output: {"merchant_name": "...", "category_tag": "..."}
"""

import json
from typing import Optional

from budgenudge.agents.tagging.types import MerchantTaggingInput
from budgenudge.utils.constants import AI_CATEGORY_TAGS

MERCHANT_TAGGING_SYSTEM_PROMPT = """You are a transaction data normalizer for BudgeNudge, a personal budgeting app that sends spending alerts by SMS.

<role>
You turn raw bank transaction descriptors into a clean merchant name and a single budgeting category.
</role>

<output_format>
Always respond with a single valid JSON object containing exactly two fields:
{"merchant_name": "<clean name>", "category_tag": "<category>"}
No markdown, no commentary.
</output_format>"""


def _format_amount(amount: Optional[float]) -> str:
    try:
        return f"{abs(float(amount or 0)):g}"
    except (TypeError, ValueError):
        return "0"


def build_merchant_tagging_prompt(merchant_input: MerchantTaggingInput) -> str:
    """Build the user turn for one transaction."""
    raw_merchant = merchant_input.get("merchant_name") or merchant_input.get("name") or ""
    category = merchant_input.get("category")
    subcategory = merchant_input.get("subcategory")

    return f"""Normalize this transaction data into clean merchant name and logical category:

<transaction>
Raw Merchant: "{raw_merchant}"
Description: "{merchant_input.get("name") or ""}"
Amount: ${_format_amount(merchant_input.get("amount"))}
Plaid Category: {json.dumps(category) if category else "null"}
Plaid Subcategory: "{subcategory or "null"}"
</transaction>

<guidelines>
- Merchant name: Clean, branded name (remove locations, transaction codes, numbers)
- Category: Single logical word for budgeting ({", ".join(AI_CATEGORY_TAGS)})
- Use Title Case for both
- Be consistent - same merchant should always get same name/category
</guidelines>

<examples>
"APPLE.COM/BILL" -> {{"merchant_name": "Apple", "category_tag": "Subscription"}}
"PUBLIX SUPER MARKET #1234" -> {{"merchant_name": "Publix", "category_tag": "Groceries"}}
"TRINITY COMMONS COF Trinity" -> {{"merchant_name": "Trinity Commons Coffee", "category_tag": "Restaurant"}}
</examples>

Return only valid JSON."""
