"""Local verification of Supabase access tokens using JWKS."""

import logging
from typing import Any

from jose import JWTError, jwt

from src.neighbors.services.auth.jwks import JWKSCache

logger = logging.getLogger(__name__)

SUPPORTED_ALGORITHMS = ["RS256", "ES256"]

# Only end-user sessions may drive onboarding; anon and service_role keys are refused
SESSION_ROLE = "authenticated"


class JWTValidator:
    """
    Verifies Supabase access tokens without a network round trip.

    Signature, expiry, issuer and audience are checked against keys held in
    a JWKSCache. The verified claims become the AuthSession that the session
    observer and the onboarding finalizer work with.

    Attributes:
        jwks_cache: Source of signing keys
        issuer: Supabase auth URL expected in the iss claim
        audience: Expected aud claim
        leeway: Clock skew tolerance in seconds
    """

    def __init__(
        self,
        jwks_cache: JWKSCache,
        issuer: str,
        audience: str = "authenticated",
        leeway: int = 10,
    ):
        self.jwks_cache = jwks_cache
        self.issuer = issuer
        self.audience = audience
        self.leeway = leeway

    async def _key_for(self, token: str):
        kid = jwt.get_unverified_header(token).get("kid")
        if not kid:
            raise JWTError("JWT header missing 'kid' (key ID)")
        return kid, await self.jwks_cache.get_signing_key(kid)

    async def verify_token(self, token: str) -> dict[str, Any]:
        """
        Verify a Supabase access token and return its claims.

        Args:
            token: JWT string (without "Bearer " prefix)

        Returns:
            Claims including sub, email, app_metadata, user_metadata and session_id

        Raises:
            JWTError: If the token is malformed, expired, signed by an unknown
                key, or was not issued for an end-user session
        """
        try:
            kid, signing_key = await self._key_for(token)
            claims = jwt.decode(
                token,
                signing_key,
                algorithms=SUPPORTED_ALGORITHMS,
                audience=self.audience,
                issuer=self.issuer,
                options={"require_exp": True, "require_iat": True, "leeway": self.leeway},
            )
        except JWTError as e:
            logger.warning(
                f"Access token rejected: {e}",
                extra={"error_type": "jwt_verification_failed", "error": str(e)},
            )
            raise
        except Exception as e:
            logger.error(
                f"Unexpected error verifying access token: {e}",
                exc_info=True,
                extra={"error_type": "jwt_verification_error"},
            )
            raise JWTError(f"JWT verification error: {e}") from e

        role = claims.get("role", SESSION_ROLE)
        if role != SESSION_ROLE:
            logger.warning(f"Access token with role '{role}' refused", extra={"kid": kid})
            raise JWTError(f"Token role '{role}' is not a user session")

        logger.debug(
            "Access token verified",
            extra={"user_id": claims.get("sub"), "session_id": claims.get("session_id"), "kid": kid},
        )
        return claims
