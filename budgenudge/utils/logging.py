"""
Logging utilities for the BudgeNudge backend.

Provides standardized logger configuration following privacy rules.

PRIVACY RULES:
- NEVER log full phone numbers (use mask_phone, last 4 digits only)
- NEVER log SMS message bodies (they contain balances and spending)
- NEVER log Supabase Auth tokens, API keys, or the cron secret

Acceptable logging:
- High-level events (e.g., "Auto-selected 3 merchants", "Dedup check")
- Non-sensitive metadata (e.g., template_type, merchant names, counts)
- Error messages from Supabase or Gemini (no secrets)
"""

import logging
from typing import Optional


def get_logger(name: str, level: Optional[int] = None) -> logging.Logger:
    """
    Get a configured logger for the specified module.

    Args:
        name: Module name (typically __name__)
        level: Optional logging level (defaults to INFO)

    Returns:
        Configured logger instance
    """
    logger = logging.getLogger(name)

    if level is None:
        level = logging.INFO

    logger.setLevel(level)

    # Add handler if not already configured (avoid duplicate handlers)
    if not logger.handlers:
        handler = logging.StreamHandler()
        formatter = logging.Formatter(
            fmt='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
            datefmt='%Y-%m-%d %H:%M:%S'
        )
        handler.setFormatter(formatter)
        logger.addHandler(handler)

    return logger


def mask_phone(phone_number: Optional[str]) -> str:
    """
    Render a phone number safe for logs.

    >>> mask_phone("+15551234567")
    '***4567'
    """
    if not phone_number:
        return "<none>"
    return f"***{phone_number[-4:]}"
