"""
Merchant tagging type definitions.

Inputs mirror the raw Plaid columns on a transactions row; outputs are what
gets written to transactions.ai_merchant_name / ai_category_tag and cached
in merchant_ai_tags.
"""

from typing import List, Optional, TypedDict


class MerchantTaggingInput(TypedDict, total=False):
    """Raw transaction fields used to normalize a merchant."""
    merchant_name: Optional[str]
    name: str
    amount: float
    category: Optional[List[str]]  # Plaid category hierarchy
    subcategory: Optional[str]


class MerchantTaggingResult(TypedDict):
    """Normalized merchant name and budgeting category (both Title Case)."""
    merchant_name: str
    category_tag: str
