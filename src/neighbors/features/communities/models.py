"""Models for community resolution."""

from datetime import datetime
from enum import Enum
from uuid import UUID

from pydantic import BaseModel, ConfigDict


class ResolutionSource(str, Enum):
    """Which rule decided a visitor's community, highest priority first."""

    EXPLICIT = "explicit"
    SIGNUP_SOURCE = "signup_source"
    ADDRESS_MAPPING = "address_mapping"
    MEMBERSHIP = "membership"
    DEFAULT = "default"


class ResolvedCommunity(BaseModel):
    model_config = ConfigDict(frozen=True)

    slug: str
    display_name: str
    source: ResolutionSource


class MappingSource(str, Enum):
    SIGNUP = "signup"
    GOOGLE_OAUTH = "google_oauth"
    ONBOARDING = "onboarding"


class HouseholdMapping(BaseModel):
    """Row of household_hoa: which community a household belongs to."""

    model_config = ConfigDict(extra="ignore")

    household_address: str
    normalized_address: str
    hoa_name: str
    created_by: UUID | None = None
    mapping_source: str | None = None
    created_at: datetime | None = None
