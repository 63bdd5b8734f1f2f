"""
AI components for the BudgeNudge backend.

Both are single-shot Gemini JSON workflows (Google Gen AI SDK), not
tool-calling agents:

1. Merchant tagging (agents.tagging)
   - Raw Plaid descriptor -> clean merchant name + budgeting category
   - Falls back to regex cleanup and amount/category heuristics

2. ADF classification (agents.adf)
   - Transaction -> fixed_expense or discretionary
   - Fallback rules live in services/adf_service.py
"""

from budgenudge.agents.adf import run_adf_classifier
from budgenudge.agents.tagging import (
    MerchantTaggingInput,
    MerchantTaggingResult,
    tag_merchant,
)

__all__ = [
    "tag_merchant",
    "MerchantTaggingInput",
    "MerchantTaggingResult",
    "run_adf_classifier",
]
