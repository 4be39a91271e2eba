"""Pydantic models for resident profiles."""

from datetime import datetime
from typing import Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field, field_validator


class DirectSignup(BaseModel):
    """Signed up without a community or invite context."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["direct"] = "direct"

    def to_tag(self) -> str | None:
        return None


class CommunitySignup(BaseModel):
    """Signed up from a community page ("community:<name>")."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["community"] = "community"
    name: str

    def to_tag(self) -> str:
        return f"community:{self.name}"


class InviteSignup(BaseModel):
    """Signed up through an invite link ("invite:<code>")."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["invite"] = "invite"
    code: str

    def to_tag(self) -> str:
        return f"invite:{self.code}"


SignupSource = DirectSignup | CommunitySignup | InviteSignup


def parse_signup_source(raw: Any) -> DirectSignup | CommunitySignup | InviteSignup:
    """
    Parse the stored signup_source column.

    Unknown or empty values are treated as a direct signup.

    Example:
        >>> parse_signup_source("community:boca-bridges")
        CommunitySignup(kind='community', name='boca-bridges')
    """
    if isinstance(raw, DirectSignup | CommunitySignup | InviteSignup):
        return raw
    if isinstance(raw, dict):
        kind = raw.get("kind")
        if kind == "community":
            return CommunitySignup(name=raw["name"])
        if kind == "invite":
            return InviteSignup(code=raw["code"])
        return DirectSignup()
    if not raw:
        return DirectSignup()

    prefix, _, value = str(raw).partition(":")
    value = value.strip()
    if prefix == "community" and value:
        return CommunitySignup(name=value)
    if prefix == "invite" and value:
        return InviteSignup(code=value)
    return DirectSignup()


class UserProfile(BaseModel):
    """A resident's profile row."""

    model_config = ConfigDict(extra="ignore")

    id: UUID
    email: str
    name: str | None = None
    address: str | None = None
    street_name: str | None = None
    normalized_address: str | None = None
    signup_source: SignupSource = Field(default_factory=DirectSignup)
    is_verified: bool | None = None
    terms_accepted_at: datetime | None = None
    terms_version: str | None = None
    points: int = 0
    invited_by: UUID | None = None
    created_at: datetime | None = None

    @field_validator("signup_source", mode="before")
    @classmethod
    def _parse_signup_source(cls, value: Any) -> Any:
        return parse_signup_source(value)

    @field_validator("points", mode="before")
    @classmethod
    def _default_points(cls, value: Any) -> Any:
        return value or 0

    @property
    def is_disabled(self) -> bool:
        """Only an explicit is_verified=False disables an account; null means legacy/unknown."""
        return self.is_verified is False


class ProfileCreate(BaseModel):
    """Fields written when a profile is created for a new subject."""

    id: UUID
    email: str
    name: str
    address: str | None = None
    street_name: str | None = None
    signup_source: SignupSource = Field(default_factory=DirectSignup)
    is_verified: bool = False
    points: int = 0
    invited_by: UUID | None = None
    terms_accepted_at: datetime | None = None
    terms_version: str | None = None

    @field_validator("signup_source", mode="before")
    @classmethod
    def _parse_signup_source(cls, value: Any) -> Any:
        return parse_signup_source(value)

    @field_validator("email")
    @classmethod
    def _normalize_email(cls, value: str) -> str:
        return value.strip().lower()

    def to_record(self) -> dict[str, Any]:
        record = self.model_dump(mode="json", exclude={"signup_source"})
        record["signup_source"] = self.signup_source.to_tag()
        return record
