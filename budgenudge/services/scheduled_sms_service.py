"""
Service layer for the scheduled_sms queue.

Rows move pending -> sent | failed | cancelled. This service only creates
pending rows and cancels them; delivery is handled by the external sender
that drains the queue.
"""

import logging
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from budgenudge.utils.logging import mask_phone

logger = logging.getLogger(__name__)

SCHEDULED_SMS_STATUSES = ("pending", "sent", "failed", "cancelled")


def _as_utc(value: datetime) -> datetime:
    # Naive datetimes are taken as UTC
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


async def schedule_sms(
    supabase_client: Any,
    user_id: str,
    phone_number: str,
    message: str,
    scheduled_time: datetime,
    now: Optional[datetime] = None
) -> Dict[str, Any]:
    """
    Queue a message for delivery at scheduled_time.

    Raises:
        ValueError: if scheduled_time is not in the future
        Exception: if the insert returns no row
    """
    scheduled_utc = _as_utc(scheduled_time)
    now_utc = _as_utc(now) if now else datetime.now(timezone.utc)

    if scheduled_utc <= now_utc:
        raise ValueError("Scheduled time must be in the future")

    logger.info(f"Scheduling SMS to {mask_phone(phone_number)} for user {user_id} at {scheduled_utc.isoformat()}")

    result = supabase_client.table("scheduled_sms") \
        .insert({
            "user_id": user_id,
            "phone_number": phone_number,
            "message": message,
            "scheduled_time": scheduled_utc.isoformat(),
            "status": "pending",
        }) \
        .execute()

    if not result.data:
        raise Exception("Failed to schedule SMS")

    return result.data[0]


async def enqueue_sms_now(
    supabase_client: Any,
    user_id: str,
    phone_number: str,
    message: str
) -> Dict[str, Any]:
    """Queue a message for the sender's next pass."""
    logger.info(f"Queueing immediate SMS to {mask_phone(phone_number)} for user {user_id}")

    result = supabase_client.table("scheduled_sms") \
        .insert({
            "user_id": user_id,
            "phone_number": phone_number,
            "message": message,
            "scheduled_time": datetime.now(timezone.utc).isoformat(),
            "status": "pending",
        }) \
        .execute()

    if not result.data:
        raise Exception("Failed to queue SMS")

    return result.data[0]


async def list_scheduled_sms(
    supabase_client: Any,
    user_id: str,
    status: Optional[str] = None
) -> List[Dict[str, Any]]:
    """List queued messages, earliest first, optionally filtered by status."""
    query = supabase_client.table("scheduled_sms") \
        .select("*") \
        .eq("user_id", user_id)

    if status:
        query = query.eq("status", status)

    result = query.order("scheduled_time").execute()
    return result.data if result.data else []


async def cancel_scheduled_sms(
    supabase_client: Any,
    user_id: str,
    message_id: str
) -> Optional[Dict[str, Any]]:
    """
    Cancel a message that has not been processed yet.

    Returns:
        The cancelled row, or None if it does not exist or is no longer pending
    """
    logger.info(f"Cancelling scheduled SMS {message_id} for user {user_id}")

    result = supabase_client.table("scheduled_sms") \
        .update({"status": "cancelled"}) \
        .eq("id", message_id) \
        .eq("user_id", user_id) \
        .eq("status", "pending") \
        .execute()

    return result.data[0] if result.data else None
