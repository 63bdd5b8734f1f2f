"""
SMS deduplication against the sms_send_log table.

Each (phone number, template type, day) may be sent at most once. Both the
check and the log go through Postgres functions so the unique index on
sms_send_log is the final arbiter when two senders race:

    can_send_sms(p_phone_number, p_template_type, p_check_date) -> boolean
    log_sms_send(p_phone_number, p_template_type, p_user_id,
                 p_source_endpoint, p_message_id, p_success) -> bigint

The log is keyed by phone number, not user, so callers pass the
service-role client.
"""

import logging
from dataclasses import dataclass
from datetime import date, datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

from budgenudge.utils.constants import SMS_SOURCE_ENDPOINTS, SMS_TEMPLATE_TYPES
from budgenudge.utils.logging import mask_phone

logger = logging.getLogger(__name__)


@dataclass
class SMSSendRecord:
    phone_number: str
    template_type: str
    user_id: str
    source_endpoint: str
    success: bool = True
    message_id: Optional[str] = None

    def __post_init__(self):
        if self.template_type not in SMS_TEMPLATE_TYPES:
            raise ValueError(f"Unknown SMS template type: {self.template_type}")
        if self.source_endpoint not in SMS_SOURCE_ENDPOINTS:
            raise ValueError(f"Unknown SMS source endpoint: {self.source_endpoint}")


@dataclass
class DedupResult:
    """
    Outcome of a dedup check.

    can_send is False with a reason when the message was already sent
    today, or when the send could not be logged.
    """
    can_send: bool
    reason: Optional[str] = None
    log_id: Optional[int] = None
    error: Optional[str] = None


@dataclass
class LogResult:
    success: bool
    log_id: Optional[int] = None
    error: Optional[str] = None


async def can_send_sms(
    supabase_client: Any,
    phone_number: str,
    template_type: str,
    check_date: Optional[date] = None
) -> DedupResult:
    """
    Ask the database whether this template may go to this phone today.

    Fails open: if the RPC errors the send is allowed and the reason says so.
    """
    target = check_date or datetime.now(timezone.utc).date()
    logger.info(f"Checking SMS dedup: {mask_phone(phone_number)} + {template_type} on {target}")

    try:
        result = supabase_client.rpc(
            "can_send_sms",
            {
                "p_phone_number": phone_number,
                "p_template_type": template_type,
                "p_check_date": target.isoformat(),
            }
        ).execute()
    except Exception as e:
        logger.error(f"SMS dedup check failed, allowing send: {e}", exc_info=True)
        return DedupResult(can_send=True, reason="Deduplication check failed, allowing send")

    if result.data is True:
        return DedupResult(can_send=True)

    logger.info(f"SMS already sent: {mask_phone(phone_number)} + {template_type}")
    return DedupResult(
        can_send=False,
        reason=f"Already sent {template_type} to {mask_phone(phone_number)} today"
    )


async def log_sms_send(supabase_client: Any, record: SMSSendRecord) -> LogResult:
    """
    Record a send in sms_send_log.

    Errors (including the unique-index violation raised when another sender
    already logged today's message) are returned, not raised.
    """
    logger.info(
        f"Logging SMS send: {mask_phone(record.phone_number)} + {record.template_type} "
        f"via {record.source_endpoint}"
    )

    try:
        result = supabase_client.rpc(
            "log_sms_send",
            {
                "p_phone_number": record.phone_number,
                "p_template_type": record.template_type,
                "p_user_id": record.user_id,
                "p_source_endpoint": record.source_endpoint,
                "p_message_id": record.message_id,
                "p_success": record.success,
            }
        ).execute()
    except Exception as e:
        logger.error(f"Failed to log SMS send: {e}", exc_info=True)
        return LogResult(success=False, error=str(e))

    return LogResult(success=True, log_id=result.data)


async def check_and_log_sms(supabase_client: Any, record: SMSSendRecord) -> DedupResult:
    """
    Check, then immediately log, before the message is handed off.

    Logging before sending closes the race window between two senders; a
    send that cannot be logged is refused.
    """
    check = await can_send_sms(supabase_client, record.phone_number, record.template_type)
    if not check.can_send:
        return check

    logged = await log_sms_send(supabase_client, record)
    if not logged.success:
        return DedupResult(can_send=False, reason="Failed to log SMS send", error=logged.error)

    return DedupResult(can_send=True, log_id=logged.log_id)


async def get_sms_send_history(
    supabase_client: Any,
    phone_number: str,
    days: int = 7
) -> List[Dict[str, Any]]:
    """Sends logged for a phone number in the last `days` days, newest first."""
    since = datetime.now(timezone.utc) - timedelta(days=days)

    result = supabase_client.table("sms_send_log") \
        .select("*") \
        .eq("phone_number", phone_number) \
        .gte("sent_at", since.isoformat()) \
        .order("sent_at", desc=True) \
        .execute()

    return result.data if result.data else []
