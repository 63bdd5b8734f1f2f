"""
Service layer for transaction_rules CRUD.

Rules are evaluated by budgenudge.services.rule_engine; this module only
persists them. Rule names are unique per user (checked before insert).
"""

import logging
from typing import Any, Dict, List, Optional

logger = logging.getLogger(__name__)

DEFAULT_RULE_PRIORITY = 100


async def get_user_rules(
    supabase_client: Any,
    user_id: str,
    active_only: bool = False
) -> List[Dict[str, Any]]:
    """
    Retrieve a user's rules in evaluation order (priority desc, created_at asc).

    Security:
        RLS enforces user_id = auth.uid() automatically
    """
    logger.info(f"Fetching transaction rules for user {user_id} (active_only={active_only})")

    query = supabase_client.table("transaction_rules") \
        .select("*") \
        .eq("user_id", user_id)

    if active_only:
        query = query.eq("is_active", True)

    result = query \
        .order("priority", desc=True) \
        .order("created_at") \
        .execute()

    return result.data if result.data else []


async def get_rule_by_id(
    supabase_client: Any,
    user_id: str,
    rule_id: str
) -> Optional[Dict[str, Any]]:
    """Retrieve a single rule, or None if it does not exist for this user."""
    logger.info(f"Fetching transaction rule {rule_id} for user {user_id}")

    result = supabase_client.table("transaction_rules") \
        .select("*") \
        .eq("id", rule_id) \
        .eq("user_id", user_id) \
        .execute()

    if result.data:
        return result.data[0]

    return None


async def rule_name_exists(
    supabase_client: Any,
    user_id: str,
    rule_name: str,
    exclude_rule_id: Optional[str] = None
) -> bool:
    """Check whether the user already has a rule with this name."""
    result = supabase_client.table("transaction_rules") \
        .select("id") \
        .eq("user_id", user_id) \
        .eq("rule_name", rule_name) \
        .execute()

    rows = result.data or []
    return any(row.get("id") != exclude_rule_id for row in rows)


async def create_rule(
    supabase_client: Any,
    user_id: str,
    rule_name: str,
    rule_type: str,
    pattern_type: str,
    pattern_value: str,
    normalized_merchant_name: Optional[str] = None,
    override_category: Optional[str] = None,
    priority: Optional[int] = None,
    description: Optional[str] = None
) -> Dict[str, Any]:
    """
    Create a user-authored rule.

    Rules created here are always active and never marked auto_generated.

    Raises:
        Exception if the insert returns no row
    """
    logger.info(f"Creating transaction rule for user {user_id}: {rule_name}")

    insert_data = {
        "user_id": user_id,
        "rule_name": rule_name,
        "rule_type": rule_type,
        "pattern_type": pattern_type,
        "pattern_value": pattern_value,
        "normalized_merchant_name": normalized_merchant_name,
        "override_category": override_category,
        "priority": priority if priority is not None else DEFAULT_RULE_PRIORITY,
        "description": description,
        "is_active": True,
        "auto_generated": False,
    }

    result = supabase_client.table("transaction_rules") \
        .insert(insert_data) \
        .execute()

    if not result.data:
        raise Exception("Failed to create transaction rule")

    created: Dict[str, Any] = result.data[0]
    logger.info(f"Transaction rule created: {created.get('id')}")
    return created


async def update_rule(
    supabase_client: Any,
    user_id: str,
    rule_id: str,
    **updates
) -> Optional[Dict[str, Any]]:
    """
    Partially update a rule.

    Returns:
        Updated rule dict, or None if the rule does not exist
    """
    logger.info(f"Updating transaction rule {rule_id} for user {user_id}: {sorted(updates)}")

    result = supabase_client.table("transaction_rules") \
        .update(updates) \
        .eq("id", rule_id) \
        .eq("user_id", user_id) \
        .execute()

    if not result.data:
        return None

    return result.data[0]


async def delete_rule(
    supabase_client: Any,
    user_id: str,
    rule_id: str
) -> bool:
    """
    Delete a rule.

    Returns:
        True if a row was deleted
    """
    logger.info(f"Deleting transaction rule {rule_id} for user {user_id}")

    result = supabase_client.table("transaction_rules") \
        .delete() \
        .eq("id", rule_id) \
        .eq("user_id", user_id) \
        .execute()

    return bool(result.data)
