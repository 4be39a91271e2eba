"""Models for orphan detection and repair."""

from enum import Enum
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from src.neighbors.features.communities.address import extract_street_name
from src.neighbors.features.profiles.models import DirectSignup, ProfileCreate, SignupSource
from src.neighbors.services.auth.models import AuthSession

MANUAL_CONTACT_MESSAGE = (
    "There's an issue with your account. Please try signing in with Google or contact support."
)
RECOVERED_MESSAGE = (
    "We found your account and fixed it. Check your email for a magic link to sign in."
)
ALREADY_REGISTERED_MESSAGE = "This email is already registered. Please sign in instead."


class RepairStatus(str, Enum):
    CREATED = "created"
    REPAIRED = "repaired"
    NOT_ORPHAN = "not-orphan"
    NEEDS_MANUAL_CONTACT = "needs-manual-contact"


class SignupCandidate(BaseModel):
    """What the visitor submitted; used for the first creation and for any retry."""

    name: str
    address: str | None = None
    signup_source: SignupSource = Field(default_factory=DirectSignup)
    invited_by: UUID | None = None
    is_verified: bool = True

    @property
    def street_name(self) -> str | None:
        return extract_street_name(self.address) or None

    def provider_metadata(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "address": self.address,
            "street_name": self.street_name,
            "signup_source": self.signup_source.to_tag(),
        }

    def to_profile(self, user_id: UUID, email: str) -> ProfileCreate:
        return ProfileCreate(
            id=user_id,
            email=email,
            name=self.name,
            address=self.address,
            street_name=self.street_name,
            signup_source=self.signup_source,
            is_verified=self.is_verified,
            invited_by=self.invited_by,
        )


class RepairResult(BaseModel):
    status: RepairStatus
    user_id: UUID | None = None
    session: AuthSession | None = None
    fast_path: bool = False
    message: str | None = None
