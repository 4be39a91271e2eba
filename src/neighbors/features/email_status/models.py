"""Models for email-status lookups."""

from enum import Enum

from pydantic import BaseModel, Field


class EmailStatus(str, Enum):
    UNREGISTERED = "unregistered"
    PENDING_REVIEW = "pending-review"
    APPROVED = "approved"


class EmailStatusResponse(BaseModel):
    email: str = Field(description="Normalized email address")
    status: EmailStatus = Field(description="Account status for the email")
