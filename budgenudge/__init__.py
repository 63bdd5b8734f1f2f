"""BudgeNudge backend: spending nudges over SMS, built on Supabase."""

__version__ = "0.1.0"
