"""Tests for auth session models."""

from datetime import UTC, datetime
from types import SimpleNamespace
from uuid import uuid4

from jose import jwt

from src.neighbors.services.auth.models import AuthSession, ProviderKind


class TestProviderKind:
    def test_google_is_oauth(self):
        assert ProviderKind.from_provider_name("google") == ProviderKind.OAUTH_GOOGLE
        assert ProviderKind.OAUTH_GOOGLE.is_oauth is True

    def test_email_and_unknown_are_password_otp(self):
        assert ProviderKind.from_provider_name("email") == ProviderKind.PASSWORD_OTP
        assert ProviderKind.from_provider_name(None) == ProviderKind.PASSWORD_OTP
        assert ProviderKind.from_provider_name("github") == ProviderKind.PASSWORD_OTP
        assert ProviderKind.PASSWORD_OTP.is_oauth is False


class TestAuthSession:
    def test_session_key_falls_back_to_subject_and_iat(self):
        subject = uuid4()
        issued_at = datetime(2024, 1, 1, tzinfo=UTC)

        session = AuthSession(subject=subject, email="a@example.com", issued_at=issued_at)

        assert session.session_key == f"{subject}:{int(issued_at.timestamp())}"

    def test_from_supabase_reads_session_claims(self):
        subject = uuid4()
        token = jwt.encode(
            {"sub": str(subject), "iat": 1_700_000_000, "session_id": "abc"}, "secret", algorithm="HS256"
        )
        user = SimpleNamespace(
            id=subject,
            email="New@Example.com",
            app_metadata={"provider": "email"},
            user_metadata={"name": "New"},
            email_confirmed_at=None,
        )

        session = AuthSession.from_supabase(SimpleNamespace(user=user, access_token=token))

        assert session.subject == subject
        assert session.email == "new@example.com"
        assert session.session_id == "abc"
        assert session.issued_at == datetime.fromtimestamp(1_700_000_000, tz=UTC)
        assert session.user_metadata == {"name": "New"}
