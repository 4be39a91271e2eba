"""Session state shared by everything that reacts to authentication."""

from datetime import UTC, datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field

from src.neighbors.services.auth.models import ProviderKind


class SessionEventType(str, Enum):
    """Provider auth-state-change events (plus the page-load session check)."""

    INITIAL_SESSION = "INITIAL_SESSION"
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"
    USER_UPDATED = "USER_UPDATED"


class OnboardingState(str, Enum):
    ANONYMOUS = "anonymous"
    AUTHENTICATING = "authenticating"
    SESSION_ESTABLISHED = "session-established"
    PROFILE_CHECK = "profile-check"
    NEEDS_PROFILE_COMPLETION = "needs-profile-completion"
    CONSENT_CHECK = "consent-check"
    NEEDS_CONSENT = "needs-consent"
    RESOLVED = "resolved"
    LANDED = "landed"


class AuthIntent(str, Enum):
    SIGNUP = "signup"
    SIGNIN = "signin"


class TriggerContext(BaseModel):
    """Request context that came back with the session."""

    model_config = ConfigDict(frozen=True)

    intent: AuthIntent | None = None
    community: str | None = None
    continuation: str | None = None


class SessionState(BaseModel):
    """
    The one place a subject's onboarding progress lives.

    Replaced (never mutated) on every transition so readers always see a
    consistent snapshot.
    """

    model_config = ConfigDict(frozen=True)

    subject: UUID
    email: str
    provider: ProviderKind
    session_key: str
    state: OnboardingState = OnboardingState.SESSION_ESTABLISHED
    community: str | None = None
    target: str | None = None
    updated_at: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @property
    def is_landed(self) -> bool:
        return self.state == OnboardingState.LANDED

    def advance(self, state: OnboardingState, **changes) -> "SessionState":
        return self.model_copy(update={"state": state, "updated_at": datetime.now(UTC), **changes})
