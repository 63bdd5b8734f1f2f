"""
Merchant tagging agent.

Turns raw Plaid descriptors ("PUBLIX SUPER MARKET #1234") into a clean
merchant name and one budgeting category using a single Gemini call, with a
rule-based fallback.

Usage:
    from budgenudge.agents.tagging import tag_merchant

    result = tag_merchant({"merchant_name": "APPLE.COM/BILL", "name": "APPLE.COM/BILL", "amount": 9.99})
"""

from budgenudge.agents.tagging.agent import (
    clean_merchant_name,
    fallback_category,
    fallback_tag,
    tag_merchant,
    to_title_case,
)
from budgenudge.agents.tagging.prompts import MERCHANT_TAGGING_SYSTEM_PROMPT
from budgenudge.agents.tagging.types import MerchantTaggingInput, MerchantTaggingResult

__all__ = [
    "tag_merchant",
    "clean_merchant_name",
    "fallback_category",
    "fallback_tag",
    "to_title_case",
    "MerchantTaggingInput",
    "MerchantTaggingResult",
    "MERCHANT_TAGGING_SYSTEM_PROMPT",
]
