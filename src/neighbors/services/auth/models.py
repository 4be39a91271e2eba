"""Data models for provider-issued sessions."""

import logging
from datetime import UTC, datetime
from enum import Enum
from typing import Any
from uuid import UUID

from jose import JWTError, jwt
from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


class ProviderKind(str, Enum):
    """How the visitor authenticated with the provider."""

    PASSWORD_OTP = "password-otp"
    OAUTH_GOOGLE = "oauth:google"

    @classmethod
    def from_provider_name(cls, name: str | None) -> "ProviderKind":
        """Map Supabase's app_metadata.provider value to a ProviderKind."""
        if name == "google":
            return cls.OAUTH_GOOGLE
        if name not in (None, "email", "magiclink", "otp"):
            logger.warning(f"Unknown auth provider '{name}', treating as password-otp")
        return cls.PASSWORD_OTP

    @property
    def is_oauth(self) -> bool:
        return self.value.startswith("oauth:")


def _timestamp(value: Any) -> datetime | None:
    if value is None:
        return None
    if isinstance(value, datetime):
        return value if value.tzinfo else value.replace(tzinfo=UTC)
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value, tz=UTC)
    return datetime.fromisoformat(str(value).replace("Z", "+00:00"))


class AuthSession(BaseModel):
    """
    Session issued by the authentication provider.

    The service only ever reads sessions; they are rebuilt on each request from
    the verified access token (or from a sign-up response) and never stored.

    Attributes:
        subject: Provider user id ('sub' claim)
        email: Email on the provider identity
        provider: How the visitor authenticated
        issued_at: Token issue time ('iat' claim)
        email_verified_at: When the provider confirmed the email, if known
        session_id: Provider session id ('session_id' claim)
        access_token: Raw bearer token, needed to sign the session out
        user_metadata: OAuth/sign-up metadata (full_name, signup_source, ...)
    """

    subject: UUID
    email: str
    provider: ProviderKind = ProviderKind.PASSWORD_OTP
    issued_at: datetime = Field(default_factory=lambda: datetime.now(UTC))
    email_verified_at: datetime | None = None
    session_id: str | None = None
    access_token: str | None = Field(default=None, repr=False)
    user_metadata: dict[str, Any] = {}

    @property
    def session_key(self) -> str:
        """Stable key for this particular session (used for dedup and revocation)."""
        if self.session_id:
            return self.session_id
        return f"{self.subject}:{int(self.issued_at.timestamp())}"

    @property
    def subject_key(self) -> str:
        return str(self.subject)

    @classmethod
    def from_claims(cls, claims: dict[str, Any], access_token: str | None = None) -> "AuthSession":
        """
        Build a session from verified Supabase JWT claims.

        Args:
            claims: Verified claims (must contain sub and email)
            access_token: The bearer token the claims came from

        Returns:
            AuthSession for the claims
        """
        app_metadata = claims.get("app_metadata") or {}
        user_metadata = claims.get("user_metadata") or {}
        return cls(
            subject=UUID(str(claims["sub"])),
            email=str(claims["email"]).strip().lower(),
            provider=ProviderKind.from_provider_name(app_metadata.get("provider")),
            issued_at=_timestamp(claims.get("iat")) or datetime.now(UTC),
            email_verified_at=_timestamp(user_metadata.get("email_verified_at")),
            session_id=claims.get("session_id"),
            access_token=access_token,
            user_metadata=user_metadata,
        )

    @classmethod
    def from_supabase(cls, session: Any) -> "AuthSession":
        """
        Build a session from a supabase-py Session object (e.g. after sign_up).

        The access token was just minted by the provider for us, so its claims
        are read without re-verifying the signature.
        """
        user = session.user
        claims: dict[str, Any] = {}
        try:
            claims = jwt.get_unverified_claims(session.access_token)
        except JWTError as e:
            logger.warning(f"Could not read claims from provider session: {e}")

        app_metadata = getattr(user, "app_metadata", None) or {}
        return cls(
            subject=UUID(str(user.id)),
            email=str(user.email).strip().lower(),
            provider=ProviderKind.from_provider_name(app_metadata.get("provider")),
            issued_at=_timestamp(claims.get("iat")) or datetime.now(UTC),
            email_verified_at=_timestamp(getattr(user, "email_confirmed_at", None)),
            session_id=claims.get("session_id"),
            access_token=session.access_token,
            user_metadata=getattr(user, "user_metadata", None) or {},
        )
