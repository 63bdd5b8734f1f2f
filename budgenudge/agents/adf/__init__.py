"""
ADF classifier agent: fixed expense vs discretionary, via Gemini.
"""

from budgenudge.agents.adf.agent import run_adf_classifier
from budgenudge.agents.adf.prompts import ADF_SYSTEM_PROMPT

__all__ = ["run_adf_classifier", "ADF_SYSTEM_PROMPT"]
