"""Shared fixtures for integration tests."""

import pytest
from fastapi.testclient import TestClient

from openheart.config import Settings
from openheart.gates.state import MemorySessionStore
from openheart.web.app import create_app
from openheart.web.middleware import reset_rate_limiter
from openheart.web.tokens import generate_access_token


@pytest.fixture(autouse=True)
def reset_login_rate_limiter():
    """Reset the login rate limiter between tests."""
    reset_rate_limiter()
    yield
    reset_rate_limiter()


@pytest.fixture
def access_token():
    return generate_access_token()


@pytest.fixture
def session_store():
    return MemorySessionStore()


@pytest.fixture
def site_client(session_store, access_token):
    """Test client with an in-memory session store and a fixed token."""
    app = create_app(
        settings=Settings(),
        store=session_store,
        token_provider=lambda: access_token,
    )
    with TestClient(app) as client:
        yield client


@pytest.fixture
def logged_in_client(site_client, access_token):
    """Client whose session has passed the login form."""
    response = site_client.post(
        "/login",
        data={"token": access_token, "redirect": "/reviews/new"},
        follow_redirects=False,
    )
    assert response.status_code == 303
    return site_client


@pytest.fixture
def no_login_client(session_store):
    """Test client with login disabled (auth gate always blocks)."""
    app = create_app(
        settings=Settings(login_enabled=False),
        store=session_store,
        token_provider=lambda: "unused",
    )
    with TestClient(app) as client:
        yield client
