"""
Service layer for the BudgeNudge backend.

Pure calculation modules (rule_engine, pacing) take rows and dates and
return results. The *_service modules query Supabase through the client
passed in by the route, so Row Level Security applies to every call made
with a user client.
"""

from .pacing_service import run_pacing_auto_selection
from .recurring_bill_service import (
    auto_detect_recurring_bills,
    get_upcoming_bills,
    update_predictions,
)
from .sms_dedup_service import can_send_sms, check_and_log_sms, log_sms_send
from .sms_template_service import generate_sms_message
from .tagging_service import get_tagging_status, run_auto_tagging
from .transaction_rule_service import get_user_rules

__all__ = [
    "get_user_rules",
    "run_pacing_auto_selection",
    "auto_detect_recurring_bills",
    "get_upcoming_bills",
    "update_predictions",
    "can_send_sms",
    "log_sms_send",
    "check_and_log_sms",
    "generate_sms_message",
    "run_auto_tagging",
    "get_tagging_status",
]
