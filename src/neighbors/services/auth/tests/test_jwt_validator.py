"""Tests for JWT validator module."""

import time
from unittest.mock import AsyncMock, Mock

import pytest
from jose import JWTError, jwk

from src.neighbors.services.auth.jwt_validator import JWTValidator

ISSUER = "https://test.supabase.co/auth/v1"


@pytest.fixture
def mock_jwks_cache(public_jwk):
    """JWKS cache that serves the test signing key."""
    cache = Mock()
    cache.get_signing_key = AsyncMock(return_value=jwk.construct(public_jwk, "RS256"))
    return cache


@pytest.mark.asyncio
class TestJWTValidator:
    """Tests for JWTValidator class."""

    async def test_initialization(self, mock_jwks_cache):
        """Test JWT validator initialization."""
        validator = JWTValidator(
            jwks_cache=mock_jwks_cache,
            issuer=ISSUER,
            audience="authenticated",
            leeway=10,
        )

        assert validator.jwks_cache == mock_jwks_cache
        assert validator.issuer == ISSUER
        assert validator.audience == "authenticated"
        assert validator.leeway == 10

    async def test_verify_token_returns_claims(self, mock_jwks_cache, sign_token):
        validator = JWTValidator(jwks_cache=mock_jwks_cache, issuer=ISSUER)
        token = sign_token(email="jane@example.com")

        claims = await validator.verify_token(token)

        assert claims["email"] == "jane@example.com"
        mock_jwks_cache.get_signing_key.assert_awaited_once_with("key-1")

    async def test_verify_token_missing_kid(self, mock_jwks_cache, sign_token):
        validator = JWTValidator(jwks_cache=mock_jwks_cache, issuer=ISSUER)

        with pytest.raises(JWTError, match="kid"):
            await validator.verify_token(sign_token(kid=None))

    async def test_verify_token_expired(self, mock_jwks_cache, sign_token):
        validator = JWTValidator(jwks_cache=mock_jwks_cache, issuer=ISSUER, leeway=0)
        now = int(time.time())

        with pytest.raises(JWTError):
            await validator.verify_token(sign_token(iat=now - 7200, exp=now - 3600))

    async def test_verify_token_wrong_issuer(self, mock_jwks_cache, sign_token):
        validator = JWTValidator(jwks_cache=mock_jwks_cache, issuer=ISSUER)

        with pytest.raises(JWTError):
            await validator.verify_token(sign_token(iss="https://evil.example.com/auth/v1"))

    async def test_verify_token_unknown_key_wrapped(self, sign_token):
        """A lookup failure in the cache surfaces as JWTError."""
        cache = Mock()
        cache.get_signing_key = AsyncMock(side_effect=ValueError("Key ID 'key-1' not found in JWKS"))
        validator = JWTValidator(jwks_cache=cache, issuer=ISSUER)

        with pytest.raises(JWTError, match="not found"):
            await validator.verify_token(sign_token())

    async def test_verify_token_malformed(self, mock_jwks_cache):
        validator = JWTValidator(jwks_cache=mock_jwks_cache, issuer=ISSUER)

        with pytest.raises(JWTError):
            await validator.verify_token("not-a-jwt")

    async def test_verify_token_rejects_non_session_role(self, mock_jwks_cache, sign_token):
        validator = JWTValidator(jwks_cache=mock_jwks_cache, issuer=ISSUER)

        with pytest.raises(JWTError, match="service_role"):
            await validator.verify_token(sign_token(role="service_role"))

    async def test_verify_token_accepts_authenticated_role(self, mock_jwks_cache, sign_token):
        validator = JWTValidator(jwks_cache=mock_jwks_cache, issuer=ISSUER)

        claims = await validator.verify_token(sign_token(role="authenticated"))

        assert claims["role"] == "authenticated"
