"""Pydantic models for the onboarding feature."""

from enum import Enum
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from src.neighbors.features.communities.address import starts_with_house_number
from src.neighbors.features.session.models import OnboardingState


def _valid_email(value: str) -> str:
    value = value.strip().lower()
    local, _, domain = value.partition("@")
    if not local or "." not in domain:
        raise ValueError("Please enter a valid email address")
    return value


class OutcomeKind(str, Enum):
    """Machine-readable kind of an onboarding outcome."""

    LANDED = "landed"
    COMMUNITY_MISMATCH = "community-mismatch"
    NEEDS_PROFILE_COMPLETION = "needs-profile-completion"
    NEEDS_CONSENT = "needs-consent"
    MAGIC_LINK_SENT = "magic-link-sent"
    CHECK_EMAIL = "check-email"
    ACCOUNT_RECOVERED = "account-recovered"
    PENDING_REVIEW = "pending-review"
    ALREADY_HANDLED = "already-handled"
    PROVIDER_REJECTED = "provider-rejected"
    NOT_ORPHAN_CONFLICT = "not-orphan-conflict"
    ORPHAN_UNREPAIRABLE = "orphan-unrepairable"
    NO_ACCOUNT_FOR_SIGNIN = "no-account-for-signin"
    ACCOUNT_DISABLED = "account-disabled"
    UNEXPECTED_ERROR = "unexpected-error"


class OnboardingOutcome(BaseModel):
    """The single decision returned to the client after an onboarding step."""

    state: OnboardingState = Field(description="Where the visitor now is in onboarding")
    kind: OutcomeKind = Field(description="Machine-readable outcome kind")
    target: str | None = Field(None, description="Path (with query) to navigate to")
    message: str | None = Field(None, description="Short user-facing status message")
    notice: str | None = Field(None, description="Informational notice to show on arrival")
    community: str | None = Field(None, description="Resolved community slug")
    retryable: bool = Field(False, description="Whether retrying the same step may succeed")

    class Config:
        """Pydantic config."""

        json_schema_extra = {
            "example": {
                "state": "landed",
                "kind": "community-mismatch",
                "target": "/communities/the-oaks?welcome=true",
                "notice": "We've directed you to The Oaks based on your registration.",
                "community": "the-oaks",
                "retryable": False,
            }
        }


class SignupRequest(BaseModel):
    """Request model for the resident signup form."""

    name: str = Field(min_length=1, max_length=255, description="Full name")
    email: str = Field(min_length=3, max_length=320, description="Email address")
    address: str = Field(min_length=1, max_length=500, description="Full home address")
    resident: bool = Field(description="Visitor confirmed they live in the community")
    community: str | None = Field(None, description="Community from the page URL")
    continuation: str | None = Field(None, description="Continuation token, if any")
    accept_terms: bool = Field(False, description="Visitor accepted the terms on the form")

    @field_validator("name", "address")
    @classmethod
    def _strip(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("must not be blank")
        return value

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return _valid_email(value)

    @field_validator("resident")
    @classmethod
    def _residents_only(cls, value: bool) -> bool:
        if not value:
            raise ValueError("This directory is currently for residents only")
        return value

    class Config:
        """Pydantic config."""

        json_schema_extra = {
            "example": {
                "name": "Jane Doe",
                "email": "jane@example.com",
                "address": "123 Oak St, Boca Raton, FL",
                "resident": True,
                "community": "boca-bridges",
            }
        }


class MagicLinkRequest(BaseModel):
    """Request model for the sign-in form."""

    email: str = Field(min_length=3, max_length=320, description="Email address")
    community: str | None = Field(None, description="Community from the page URL")
    continuation: str | None = Field(None, description="Continuation token, if any")

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return _valid_email(value)


class CompleteProfileRequest(BaseModel):
    """Request model for finishing a profile after Google sign-up."""

    name: str | None = Field(None, max_length=255, description="Full name (defaults to the Google name)")
    address: str = Field(max_length=500, description="Full home address")
    community: str | None = Field(None, description="Community from the page URL")
    continuation: str | None = Field(None, description="Continuation token, if any")
    accept_terms: bool = Field(False, description="Visitor accepted the terms on the form")

    @field_validator("address")
    @classmethod
    def _house_number(cls, value: str) -> str:
        value = value.strip()
        if not starts_with_house_number(value):
            raise ValueError("Please enter a full street address starting with a house number")
        return value


class AuthCallbackRequest(BaseModel):
    """What the client saw when the provider redirected back."""

    intent: str | None = Field(None, description="'signup' or 'signin'")
    community: str | None = Field(None, description="Community from the callback URL")
    continuation: str | None = Field(None, description="Continuation token carried through the redirect")
    error: str | None = Field(None, description="Provider error code, if the handshake failed")
    error_description: str | None = Field(None, description="Provider error description")


class InviteRedemption(BaseModel):
    success: bool = False
    inviter_id: UUID | None = None
    inviter_name: str | None = None
    points_awarded: int = 0
