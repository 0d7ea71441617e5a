"""Shared fixtures for cognito-session tests."""

from __future__ import annotations

import pytest

from cognito_session.auth_providers.memory import InMemoryProvider
from cognito_session.config import Settings
from cognito_session.core.orchestrator import Authenticator

POOL_ID = "us-east-1_TEST"
CLIENT_ID = "TEST"


@pytest.fixture
def test_settings():
    """Settings pinned to the test pool, independent of the environment."""
    return Settings(
        pool_id=POOL_ID,
        client_id=CLIENT_ID,
        authentication_flow_type="USER_PASSWORD_AUTH",
        provider="memory",
    )


@pytest.fixture
def provider():
    """In-memory provider with one ordinary user."""
    p = InMemoryProvider(POOL_ID, CLIENT_ID)
    p.add_user("testuser", "password")
    return p


@pytest.fixture
def authenticator(provider, test_settings):
    return Authenticator(provider, test_settings)


@pytest.fixture
def record():
    return {"poolId": POOL_ID, "clientId": CLIENT_ID}
