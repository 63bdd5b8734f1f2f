"""
Authentication for the BudgeNudge backend.

ALL PROTECTED ENDPOINTS MUST depend on get_authenticated_user; cron endpoints
depend on verify_cron_secret instead.
"""

from .dependencies import AuthenticatedUser, get_authenticated_user, verify_cron_secret, verify_token

__all__ = ["AuthenticatedUser", "get_authenticated_user", "verify_cron_secret", "verify_token"]
