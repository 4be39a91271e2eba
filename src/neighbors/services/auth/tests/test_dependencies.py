"""Tests for the session dependencies."""

from unittest.mock import AsyncMock, Mock
from uuid import uuid4

import pytest
from fastapi import HTTPException
from jose import JWTError

from src.neighbors.features.onboarding.dependencies import get_terms_gate
from src.neighbors.main import app
from src.neighbors.services.auth import dependencies
from src.neighbors.services.auth.dependencies import session_from_token, set_jwt_validator
from src.neighbors.services.auth.models import ProviderKind
from src.neighbors.services.auth.revocation import get_revocation_list


@pytest.fixture
def claims() -> dict:
    return {
        "sub": str(uuid4()),
        "email": "Resident@Example.com",
        "iat": 1_700_000_000,
        "session_id": "session-1",
        "app_metadata": {"provider": "google"},
        "user_metadata": {"full_name": "Jane Doe"},
    }


@pytest.fixture
def validator(claims):
    mock = Mock()
    mock.verify_token = AsyncMock(return_value=claims)
    set_jwt_validator(mock)
    yield mock
    set_jwt_validator(None)


@pytest.mark.asyncio
class TestSessionFromToken:
    async def test_builds_session_from_claims(self, validator, claims):
        session = await session_from_token("token")

        assert str(session.subject) == claims["sub"]
        assert session.email == "resident@example.com"
        assert session.provider == ProviderKind.OAUTH_GOOGLE
        assert session.session_key == "session-1"
        assert session.access_token == "token"

    async def test_invalid_token_is_401(self, validator):
        validator.verify_token.side_effect = JWTError("Signature verification failed")

        with pytest.raises(HTTPException) as exc_info:
            await session_from_token("token")

        assert exc_info.value.status_code == 401

    async def test_missing_email_is_401(self, validator, claims):
        del claims["email"]

        with pytest.raises(HTTPException) as exc_info:
            await session_from_token("token")

        assert exc_info.value.detail == "Invalid token: missing email"

    async def test_revoked_session_is_401(self, validator):
        get_revocation_list().revoke("session-1")

        with pytest.raises(HTTPException) as exc_info:
            await session_from_token("token")

        assert exc_info.value.detail == "Session has been signed out"

    async def test_uninitialized_validator_is_401(self):
        set_jwt_validator(None)
        assert dependencies._jwt_validator is None

        with pytest.raises(HTTPException) as exc_info:
            await session_from_token("token")

        assert exc_info.value.status_code == 401


def test_revoked_session_rejected_over_http(client, validator):
    """A signed-out session can no longer call authenticated endpoints."""
    app.dependency_overrides[get_terms_gate] = lambda: Mock()
    get_revocation_list().revoke("session-1")

    response = client.get(
        "/api/v1/consent/status", headers={"Authorization": "Bearer token"}
    )

    assert response.status_code == 401
