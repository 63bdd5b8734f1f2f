"""
Supabase client factory with RLS enforcement.

Two kinds of clients exist:
1. Per-request user clients built from the caller's JWT. All queries are
   subject to Row Level Security (user_id = auth.uid()).
2. A service-role client for cron jobs and the SMS send log, which must see
   rows across users. NEVER use it for user-initiated CRUD.
"""

import logging

from budgenudge.config import settings
from supabase import Client, create_client

logger = logging.getLogger(__name__)


def get_supabase_client(access_token: str) -> Client:
    """
    Create an authenticated Supabase client for a specific user.

    Args:
        access_token: The user's JWT access token from Supabase Auth
            (verified in budgenudge/auth/dependencies.py).

    Returns:
        An authenticated Supabase client that enforces RLS.
    """
    client: Client = create_client(
        supabase_url=settings.SUPABASE_URL,
        supabase_key=settings.SUPABASE_PUBLISHABLE_KEY
    )

    # The token's 'sub' claim is what auth.uid() resolves to in RLS policies
    client.auth.set_session(access_token, access_token)

    logger.debug("Created authenticated Supabase client with user token (RLS enforced)")

    return client


def get_service_role_client() -> Client:
    """
    Create a Supabase client with service_role privileges.

    WARNING: This bypasses RLS and should ONLY be used for:
    - Cron jobs (AI tagging across all users)
    - The sms_send_log RPCs (dedup is keyed by phone number, not user)

    Returns:
        A Supabase client with service_role privileges.

    Raises:
        ValueError: If SUPABASE_SECRET_KEY is not configured.
    """
    if not settings.SUPABASE_SECRET_KEY:
        raise ValueError(
            "SUPABASE_SECRET_KEY is not configured. "
            "Service-role operations are unavailable."
        )

    client: Client = create_client(
        supabase_url=settings.SUPABASE_URL,
        supabase_key=settings.SUPABASE_SECRET_KEY
    )
    logger.debug("Created service-role Supabase client (RLS bypassed)")
    return client
