"""
Shared fixtures for route tests: a TestClient and an authenticated user.
"""

import pytest
from fastapi.testclient import TestClient

from budgenudge.auth.dependencies import AuthenticatedUser, get_authenticated_user
from budgenudge.main import app

TEST_USER_ID = "test-user-uuid-123"


@pytest.fixture
def client():
    """Create test client for FastAPI app."""
    return TestClient(app)


@pytest.fixture
def auth_user():
    """Override get_authenticated_user for the duration of a test."""
    user = AuthenticatedUser(user_id=TEST_USER_ID, access_token="fake-test-token")

    async def _override() -> AuthenticatedUser:
        return user

    app.dependency_overrides[get_authenticated_user] = _override
    yield user
    app.dependency_overrides.clear()
