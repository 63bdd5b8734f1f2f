"""
Shared constants for SMS templates, preferences and AI tagging.

Values mirror DB CHECK constraints and RPC parameters; keep them in sync with
the Supabase schema.
"""

# template_type values accepted by the can_send_sms / log_sms_send RPCs
SMS_TEMPLATE_TYPES = (
    'recurring',
    'recent',
    'merchant-pacing',
    'category-pacing',
    'weekly-summary',
    'monthly-summary',
    'cash-flow-runway',
    'onboarding-immediate',
    'onboarding-analysis-complete',
    'onboarding-day-before',
    '415pm-special',
)

# Templates that generate_sms_message can render
RENDERABLE_TEMPLATE_TYPES = ('recurring', 'recent', 'merchant-pacing', 'category-pacing')

# source_endpoint values recorded in sms_send_log
SMS_SOURCE_ENDPOINTS = ('scheduled', 'test', 'manual', 'webhook', 'debug')

# user_sms_preferences.sms_type values; every user gets one row per type
SMS_PREFERENCE_TYPES = (
    'bills',
    'activity',
    'merchant-pacing',
    'category-pacing',
    'weekly-summary',
    'monthly-summary',
    'paycheck-efficiency',
    'cash-flow-runway',
)

# Categories the AI tagger may assign
AI_CATEGORY_TAGS = (
    'Restaurant',
    'Groceries',
    'Gas',
    'Utilities',
    'Subscription',
    'Shopping',
    'Transfer',
    'Income',
    'Healthcare',
    'Entertainment',
    'Other',
)

# Never auto-selected for category pacing
PACING_EXCLUDED_CATEGORIES = ('Income', 'Transfer', 'Uncategorized')

# Supabase .in_() filters are sent in the URL; larger lists hit 414 errors
IN_FILTER_BATCH_SIZE = 50
