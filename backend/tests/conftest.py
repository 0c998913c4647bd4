"""Pytest configuration and fixtures."""

import os
import secrets

import pytest

# Generate a unique test secret for this test run to prevent token forgery
_TEST_JWT_SECRET = f"test-only-{secrets.token_urlsafe(32)}"

# Unit tests run against the in-memory store; nothing touches Supabase
os.environ.setdefault("SUPABASE_URL", "https://test.supabase.co")
os.environ.setdefault("SUPABASE_SECRET_KEY", "test-secret-key")
os.environ.setdefault("JWT_SECRET_KEY", _TEST_JWT_SECRET)
os.environ["STORE_BACKEND"] = "memory"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["COOKIE_SECURE"] = "false"
os.environ["PASSWORD_HASH_ROUNDS"] = "4"
os.environ["NOTIFY_TIMEOUT_SECONDS"] = "0.5"

from app.main import app  # noqa: E402
from fastapi.testclient import TestClient  # noqa: E402


@pytest.fixture
def client():
    """Create a test client with the lifespan running (fresh store per test)."""
    with TestClient(app) as test_client:
        yield test_client


@pytest.fixture
def register(client):
    """Factory: register an account and return (account, auth headers)."""
    counter = {"n": 0}

    def _register(name: str = "Test User", role: str = "both", password: str = "s3cret-pass"):
        counter["n"] += 1
        email = f"user{counter['n']}-{secrets.token_hex(4)}@example.com"
        response = client.post(
            "/api/auth/register",
            json={"name": name, "email": email, "password": password, "role": role},
        )
        assert response.status_code == 201, response.text
        data = response.json()["data"]
        # Drop the cookie so each caller authenticates by header only
        client.cookies.clear()
        return data["account"], {"Authorization": f"Bearer {data['access_token']}"}

    return _register


@pytest.fixture
def owner(register):
    """A client account that posts gigs."""
    return register("Olive Owner", role="client")


@pytest.fixture
def worker(register):
    """A freelancer account that bids."""
    return register("Walt Worker", role="freelancer")


@pytest.fixture
def posted_gig(client, owner):
    """An open gig posted through the API by ``owner``."""
    _, headers = owner
    response = client.post(
        "/api/gigs",
        json={
            "title": "Logo for a coffee shop",
            "description": "Need a modern, minimal logo with two colour variants.",
            "budget": 300,
            "category": "Design",
        },
        headers=headers,
    )
    assert response.status_code == 201, response.text
    return response.json()["data"]
