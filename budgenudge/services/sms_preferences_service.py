"""
Service layer for user_sms_preferences.

Every user has one row per SMS type (see SMS_PREFERENCE_TYPES). Rows are
created lazily the first time preferences are read.
"""

import logging
import re
from typing import Any, Dict, Iterable, List, Optional

from budgenudge.utils.constants import SMS_PREFERENCE_TYPES
from budgenudge.utils.logging import mask_phone

logger = logging.getLogger(__name__)

DEFAULT_FREQUENCY = "daily"


def normalize_phone_number(phone_number: Optional[str]) -> Optional[str]:
    """Keep digits only; empty input becomes None."""
    if not phone_number:
        return None
    digits = re.sub(r"\D", "", phone_number)
    return digits or None


async def _fetch_preferences(supabase_client: Any, user_id: str) -> List[Dict[str, Any]]:
    result = supabase_client.table("user_sms_preferences") \
        .select("*") \
        .eq("user_id", user_id) \
        .order("sms_type") \
        .execute()
    return result.data if result.data else []


async def get_sms_preferences(supabase_client: Any, user_id: str) -> List[Dict[str, Any]]:
    """
    Return the user's preferences, creating defaults for any missing type.

    Defaults are enabled with daily frequency. Missing rows are inserted one
    at a time; an insert that fails (typically a concurrent request created
    the row first) is logged and skipped.
    """
    preferences = await _fetch_preferences(supabase_client, user_id)

    existing = {p.get("sms_type") for p in preferences}
    missing = [t for t in SMS_PREFERENCE_TYPES if t not in existing]
    if not missing:
        return preferences

    logger.info(f"Creating {len(missing)} default SMS preferences for user {user_id}")
    for sms_type in missing:
        try:
            supabase_client.table("user_sms_preferences") \
                .insert({
                    "user_id": user_id,
                    "sms_type": sms_type,
                    "enabled": True,
                    "frequency": DEFAULT_FREQUENCY,
                }) \
                .execute()
        except Exception as e:
            logger.warning(f"Preference for {sms_type} may already exist, skipping: {e}")

    return await _fetch_preferences(supabase_client, user_id)


async def update_sms_preferences(
    supabase_client: Any,
    user_id: str,
    preferences: Iterable[Dict[str, Any]]
) -> List[Dict[str, Any]]:
    """
    Upsert preferences keyed on (user_id, sms_type).

    Raises:
        ValueError: for an unknown sms_type
    """
    rows = []
    for pref in preferences:
        sms_type = pref.get("sms_type")
        if sms_type not in SMS_PREFERENCE_TYPES:
            raise ValueError(f"Unknown sms_type: {sms_type}")
        rows.append({
            "user_id": user_id,
            "sms_type": sms_type,
            "enabled": bool(pref.get("enabled", True)),
            "frequency": pref.get("frequency") or DEFAULT_FREQUENCY,
            "phone_number": normalize_phone_number(pref.get("phone_number")),
        })

    if not rows:
        return []

    logger.info(f"Updating {len(rows)} SMS preferences for user {user_id}")

    result = supabase_client.table("user_sms_preferences") \
        .upsert(rows, on_conflict="user_id,sms_type") \
        .execute()

    return result.data if result.data else []


async def get_user_phone_number(supabase_client: Any, user_id: str) -> Optional[str]:
    """First phone number on any of the user's preference rows, or None."""
    result = supabase_client.table("user_sms_preferences") \
        .select("phone_number") \
        .eq("user_id", user_id) \
        .not_.is_("phone_number", "null") \
        .limit(1) \
        .execute()

    if not result.data:
        return None

    phone_number = result.data[0].get("phone_number")
    logger.debug(f"Resolved phone {mask_phone(phone_number)} for user {user_id}")
    return phone_number

