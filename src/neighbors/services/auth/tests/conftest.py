"""Fixtures for signing real Supabase-style access tokens."""

import time
from uuid import uuid4

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import rsa
from jose import jwk, jwt

ISSUER = "https://test.supabase.co/auth/v1"
KID = "key-1"


@pytest.fixture(scope="session")
def rsa_private_pem() -> bytes:
    key = rsa.generate_private_key(public_exponent=65537, key_size=2048)
    return key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    )


@pytest.fixture(scope="session")
def public_jwk(rsa_private_pem: bytes) -> dict:
    """Public half of the signing key, as it appears in the JWKS document."""
    public = jwk.construct(rsa_private_pem, "RS256").public_key().to_dict()
    return {**public, "kid": KID, "use": "sig"}


@pytest.fixture
def sign_token(rsa_private_pem: bytes):
    """Factory that signs access tokens like Supabase Auth does."""

    def _sign(kid: str | None = KID, **overrides) -> str:
        now = int(time.time())
        claims = {
            "sub": str(uuid4()),
            "email": "resident@example.com",
            "aud": "authenticated",
            "iss": ISSUER,
            "iat": now,
            "exp": now + 3600,
            "session_id": str(uuid4()),
            "app_metadata": {"provider": "email"},
            "user_metadata": {},
        }
        claims.update(overrides)
        headers = {"kid": kid} if kid else None
        return jwt.encode(claims, rsa_private_pem.decode(), algorithm="RS256", headers=headers)

    return _sign
