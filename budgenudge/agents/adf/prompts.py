"""
ADF (Available Discretionary Funds) classification prompts.

The model decides whether a transaction is a fixed expense (locked-in,
predictable) or discretionary (a daily choice). Output JSON:
{"expense_type": "fixed_expense" | "discretionary", "confidence": 0-100, "reasoning": "..."}
"""

import json
from typing import List, Optional

ADF_SYSTEM_PROMPT = """You are a financial behavior classifier for BudgeNudge, a personal budgeting app.

<role>
You separate predictable, hard-to-change costs from spending that is controlled through daily choices.
Focus on controllability, not necessity.
</role>

<output_format>
Return a single valid JSON object with exactly these fields:
{"expense_type": "fixed_expense" | "discretionary", "confidence": <integer 0-100>, "reasoning": "<one sentence>"}
</output_format>"""


def build_adf_prompt(
    merchant_name: str,
    raw_name: str,
    amount: float,
    category_tag: str,
    plaid_category: Optional[List[str]] = None
) -> str:
    return f"""Classify this transaction for financial behavior tracking:

<transaction>
- Merchant: "{merchant_name}"
- Raw Name: "{raw_name}"
- Amount: ${abs(amount):g}
- Category: "{category_tag}"
- Plaid Category: {json.dumps(plaid_category) if plaid_category else "null"}
</transaction>

<definitions>
1. "fixed_expense" = Predictable monthly costs that are hard to change (rent, utilities, car payments, insurance, fixed subscriptions)
2. "discretionary" = Variable spending that can be controlled through daily choices (groceries, gas, dining, shopping, entertainment)
</definitions>

<guidelines>
- Fixed expenses are locked-in decisions (rent, utilities, loan payments, insurance)
- Discretionary spending represents daily choice opportunities (where to eat, how much to buy)
- Groceries are necessary but controllable
- Regular bills like phone/internet = fixed_expense
- Shopping, dining, variable purchases = discretionary
</guidelines>

<examples>
- "Duke Energy" ($120) -> fixed_expense (utility bill)
- "Verizon Wireless" ($85) -> fixed_expense (phone bill)
- "Publix" ($45) -> discretionary (grocery choices)
- "Starbucks" ($8) -> discretionary (coffee choice)
- "Rent Payment" ($1500) -> fixed_expense (housing cost)
- "Amazon" ($67) -> discretionary (shopping choice)
</examples>

Return JSON with: expense_type, confidence (0-100), reasoning"""
