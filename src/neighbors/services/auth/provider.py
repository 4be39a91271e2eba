"""Supabase Auth adapter used by signup, orphan repair and session discard."""

import logging
import secrets
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

import httpx
from pydantic import BaseModel
from supabase import AuthApiError, AuthError, Client

from src.neighbors.services.auth.exceptions import ProviderError
from src.neighbors.services.auth.models import AuthSession, ProviderKind
from src.neighbors.services.auth.revocation import SessionRevocationList, get_revocation_list
from src.neighbors.services.database import (
    SupabaseQueryBuilder,
    TransientStoreError,
    UniqueConflictError,
    get_query_builder,
    get_supabase_admin_client,
    get_supabase_auth_client,
)

logger = logging.getLogger(__name__)

# Messages/codes Supabase Auth uses when the email already has an identity
CONFLICT_MARKERS = (
    "user already registered",
    "already been taken",
    "already exists",
    "duplicate key",
    "unique constraint",
)
CONFLICT_CODES = {"user_already_exists", "email_exists", "identity_already_exists"}


def is_conflict_error(error: AuthError) -> bool:
    """Check whether a provider error means 'an identity with this email already exists'."""
    if getattr(error, "code", None) in CONFLICT_CODES:
        return True
    message = (getattr(error, "message", None) or str(error)).lower()
    return any(marker in message for marker in CONFLICT_MARKERS)


class ProvisionedAccount(BaseModel):
    """Identity created by a successful sign-up."""

    user_id: UUID
    email: str
    session: AuthSession | None = None


class OrphanedIdentity(BaseModel):
    """Provider identity that has no matching profile row."""

    user_id: UUID
    email: str
    created_at: datetime | None = None
    provider: ProviderKind = ProviderKind.PASSWORD_OTP

    def age_minutes(self, now: datetime | None = None) -> float | None:
        if self.created_at is None:
            return None
        now = now or datetime.now(UTC)
        return (now - self.created_at).total_seconds() / 60


class AuthProviderClient:
    """
    Thin wrapper over Supabase Auth.

    End-user flows (sign_up, magic links) run on a fresh anon client so the
    resulting session never lands on a shared client. Repair and sign-out use
    the service-role admin API.
    """

    def __init__(
        self,
        admin_client: Client | None = None,
        db: SupabaseQueryBuilder | None = None,
        client_factory: Callable[[], Client] = get_supabase_auth_client,
        revocations: SessionRevocationList | None = None,
    ) -> None:
        self.admin_client = admin_client or get_supabase_admin_client()
        self.db = db or get_query_builder()
        self.client_factory = client_factory
        self.revocations = revocations or get_revocation_list()

    def sign_up(
        self, email: str, metadata: dict[str, Any], redirect_to: str
    ) -> ProvisionedAccount:
        """
        Create a provider identity for a password-less signup.

        A random throwaway password is generated; residents only ever sign in
        with magic links or Google.

        Args:
            email: Normalized email address
            metadata: user_metadata stored on the identity (name, address, signup_source)
            redirect_to: Where the confirmation email should send the visitor

        Returns:
            ProvisionedAccount (with a session when the project auto-confirms)

        Raises:
            UniqueConflictError: If an identity already exists for the email
            ProviderError: If the provider rejects the request
            TransientStoreError: If the provider cannot be reached
        """
        client = self.client_factory()
        try:
            response = client.auth.sign_up(
                {
                    "email": email,
                    "password": secrets.token_urlsafe(24),
                    "options": {"data": metadata, "email_redirect_to": redirect_to},
                }
            )
        except AuthError as e:
            if is_conflict_error(e):
                logger.info(f"Sign-up conflict for {email}: {e}")
                raise UniqueConflictError(str(e)) from e
            logger.warning(f"Provider rejected sign-up for {email}: {e}")
            raise ProviderError(getattr(e, "message", None) or str(e)) from e
        except httpx.HTTPError as e:
            logger.error(f"Provider unavailable during sign-up for {email}: {e}")
            raise TransientStoreError(f"sign_up failed: {e}") from e

        user = response.user
        if user is None:
            raise ProviderError("Could not create user account")

        # With email confirmation on, Supabase answers a repeat sign-up with an
        # obfuscated user that has no identities instead of an error.
        if getattr(user, "identities", None) == []:
            logger.info(f"Sign-up for {email} returned an existing identity")
            raise UniqueConflictError("User already registered")

        session = AuthSession.from_supabase(response.session) if response.session else None
        logger.info(
            f"Provider identity created for {email}",
            extra={"user_id": str(user.id), "has_session": session is not None},
        )
        return ProvisionedAccount(user_id=UUID(str(user.id)), email=email, session=session)

    def send_magic_link(self, email: str, redirect_to: str) -> None:
        """
        Email a one-time sign-in link to an existing identity.

        Raises:
            ProviderError: If the provider refuses to send the link
            TransientStoreError: If the provider cannot be reached
        """
        client = self.client_factory()
        try:
            client.auth.sign_in_with_otp(
                {
                    "email": email,
                    "options": {"email_redirect_to": redirect_to, "should_create_user": False},
                }
            )
        except AuthError as e:
            logger.warning(f"Magic link request failed for {email}: {e}")
            raise ProviderError(getattr(e, "message", None) or str(e)) from e
        except httpx.HTTPError as e:
            logger.error(f"Provider unavailable sending magic link to {email}: {e}")
            raise TransientStoreError(f"sign_in_with_otp failed: {e}") from e
        logger.info(f"Magic link sent to {email}", extra={"redirect_to": redirect_to})

    def sign_out(self, session: AuthSession) -> None:
        """
        Discard a session: revoke it locally and end it at the provider.

        Local revocation always happens first so the bearer token is refused
        even if the provider call fails.
        """
        self.revocations.revoke(session.session_key)
        if not session.access_token:
            return
        try:
            self.admin_client.auth.admin.sign_out(session.access_token, "global")
            logger.info(f"Signed out session for {session.subject}")
        except (AuthError, httpx.HTTPError) as e:
            logger.error(
                f"Provider sign-out failed for {session.subject}: {e}",
                extra={"error_type": "provider_sign_out_failed"},
            )

    def find_orphaned_identity(self, email: str) -> OrphanedIdentity | None:
        """
        Find the provider identity for an email that has no profile row.

        Returns:
            OrphanedIdentity or None when the provider holds no orphan for the email
        """
        rows = self.db.rpc("check_orphaned_users") or []
        match = next(
            (
                row
                for row in rows
                if str(row.get("auth_email", "")).lower() == email
                and not row.get("public_user_exists")
            ),
            None,
        )
        if match is None:
            return None

        user_id = UUID(str(match["auth_user_id"]))
        created_at = match.get("auth_created_at")
        provider = ProviderKind.PASSWORD_OTP
        try:
            user = self.admin_client.auth.admin.get_user_by_id(str(user_id)).user
            provider = ProviderKind.from_provider_name((user.app_metadata or {}).get("provider"))
            created_at = created_at or user.created_at
        except (AuthError, httpx.HTTPError) as e:
            logger.warning(f"Could not load orphaned identity {user_id}: {e}")

        return OrphanedIdentity(
            user_id=user_id,
            email=email,
            created_at=_parse_datetime(created_at),
            provider=provider,
        )

    def delete_identity(self, user_id: UUID) -> bool:
        """
        Delete a provider identity (fast-path orphan cleanup).

        Returns:
            True if the identity was deleted
        """
        try:
            self.admin_client.auth.admin.delete_user(str(user_id))
        except AuthApiError as e:
            logger.warning(f"Provider refused to delete identity {user_id}: {e}")
            return False
        except (AuthError, httpx.HTTPError) as e:
            logger.error(f"Identity deletion failed for {user_id}: {e}")
            return False
        logger.info(f"Deleted orphaned identity {user_id}")
        return True


def _parse_datetime(value: Any) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=UTC)
