"""Tests for main API endpoints."""

import pytest
from fastapi.testclient import TestClient

from src.neighbors.config import settings
from src.neighbors.main import app


def test_health_check(client: TestClient) -> None:
    """Test health check endpoint returns healthy status."""
    response = client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "healthy"}


def test_api_prefix() -> None:
    """Test that API v1 prefix is configured correctly."""
    assert settings.api_v1_prefix == "/api/v1"


@pytest.mark.parametrize(
    ("method", "path"),
    [
        ("GET", "/api/v1/auth/email-status"),
        ("POST", "/api/v1/auth/magic-link"),
        ("POST", "/api/v1/auth/continuation"),
        ("POST", "/api/v1/auth/callback"),
        ("POST", "/api/v1/auth/events"),
        ("POST", "/api/v1/onboarding/signup"),
        ("POST", "/api/v1/onboarding/complete-profile"),
        ("GET", "/api/v1/consent/status"),
        ("POST", "/api/v1/consent"),
    ],
)
def test_routes_registered(method: str, path: str) -> None:
    """Test every onboarding endpoint is mounted under the API prefix."""
    paths = app.openapi()["paths"]
    assert path in paths
    assert method.lower() in paths[path]


def test_rate_limiter_attached() -> None:
    """Test slowapi can find the limiter on the app state."""
    assert app.state.limiter is not None
