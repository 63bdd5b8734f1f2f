"""
Database access layer for the BudgeNudge backend.

All durability, uniqueness and access rules (SMS dedup unique index, RLS
policies, upsert conflict targets) live in the Supabase schema. This layer
only hands out clients.
"""

from .client import get_service_role_client, get_supabase_client

__all__ = ["get_supabase_client", "get_service_role_client"]
