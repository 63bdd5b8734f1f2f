"""
Pytest configuration for BudgeNudge backend tests.

Sets up the test environment and a chainable Supabase mock.
"""
import os
import pytest
from typing import Any, Dict, List, Optional
from unittest.mock import MagicMock

# Disable config validation during tests
os.environ["VALIDATE_CONFIG"] = "false"

# Set test environment variables
os.environ.setdefault("ENVIRONMENT", "testing")
os.environ.setdefault("SUPABASE_URL", "http://localhost:54321")
os.environ.setdefault("SUPABASE_PUBLISHABLE_KEY", "test-publishable-key")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("CRON_SECRET", "test-cron-secret")
# Empty key: AI helpers take their rule-based fallbacks unless a test patches them
os.environ["GOOGLE_API_KEY"] = ""

BUILDER_METHODS = (
    "select", "insert", "update", "upsert", "delete",
    "eq", "neq", "gt", "gte", "lt", "lte", "in_", "is_", "ilike", "or_",
    "order", "limit",
)


def make_query(data: Optional[List[Dict[str, Any]]] = None) -> MagicMock:
    """
    A Supabase query builder mock: every filter returns the same builder and
    execute() returns an object whose .data is `data`.
    """
    query = MagicMock()
    for method in BUILDER_METHODS:
        getattr(query, method).return_value = query
    query.not_ = query
    query.execute.return_value = MagicMock(data=data)
    return query


def make_supabase(tables: Optional[Dict[str, Any]] = None, rpc_data: Any = None) -> MagicMock:
    """
    Supabase client mock routing .table(name) to per-table query mocks.

    A table mapped to a list gets one query per call, in order (for services
    that hit the same table several times).
    """
    tables = tables or {}
    calls: Dict[str, int] = {}
    client = MagicMock()

    def _table(name: str) -> MagicMock:
        entry = tables.get(name)
        if isinstance(entry, list):
            index = calls.get(name, 0)
            calls[name] = index + 1
            return entry[min(index, len(entry) - 1)]
        if entry is None:
            entry = make_query([])
            tables[name] = entry
        return entry

    client.table.side_effect = _table
    client.rpc.return_value.execute.return_value = MagicMock(data=rpc_data)
    return client


@pytest.fixture
def supabase_client():
    """Bare MagicMock Supabase client."""
    return MagicMock()
