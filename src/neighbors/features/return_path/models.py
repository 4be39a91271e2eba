"""Models for continuation tokens and landing decisions."""

from pydantic import BaseModel, ConfigDict, Field


class ContinuationPayload(BaseModel):
    """
    State carried through the authentication round trip.

    Everything the visitor's browser used to keep in local storage before
    leaving for the provider: where they were, which invite they followed,
    and what they had already typed.
    """

    model_config = ConfigDict(frozen=True)

    return_path: str | None = None
    pending_invite_code: str | None = None
    pending_inviter_id: str | None = None
    prefill_address: str | None = None
    selected_community: str | None = None

    @property
    def is_empty(self) -> bool:
        return not any(self.model_dump().values())


class LandingDecision(BaseModel):
    """Where a resident goes after onboarding, and why."""

    model_config = ConfigDict(frozen=True)

    target: str
    community: str
    resumed: bool = False
    mismatch: bool = False
    notice: str | None = None


class ContinuationRequest(BaseModel):
    """Request body for POST /auth/continuation."""

    return_path: str | None = Field(None, description="Path (with query) the visitor was on")
    pending_invite_code: str | None = Field(None, description="Invite code from the URL")
    pending_inviter_id: str | None = Field(None, description="Inviter id from the URL")
    prefill_address: str | None = Field(None, description="Address already typed by the visitor")
    selected_community: str | None = Field(None, description="Community chosen on the page")

    class Config:
        """Pydantic config."""

        json_schema_extra = {
            "example": {
                "return_path": "/communities/boca-bridges?category=plumbing",
                "pending_invite_code": "ABC123",
            }
        }


class ContinuationResponse(BaseModel):
    continuation: str | None = Field(description="Signed token to pass through the auth redirect")
    expires_in: int = Field(description="Token lifetime in seconds")
    return_path_accepted: bool = Field(description="Whether the return path passed validation")
