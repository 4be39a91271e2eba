"""API handlers for email-status lookups and sign-in magic links."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status

from src.neighbors.features.email_status.models import EmailStatusResponse
from src.neighbors.features.email_status.oracle import EmailStatusOracle, normalize_email
from src.neighbors.features.onboarding.dependencies import get_email_status_oracle, get_signup_service
from src.neighbors.features.onboarding.exceptions import OnboardingError
from src.neighbors.features.onboarding.models import MagicLinkRequest, OnboardingOutcome
from src.neighbors.features.onboarding.signup import SignupService
from src.neighbors.services.database import StoreError, TransientStoreError
from src.neighbors.services.rate_limiter import public_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.get("/email-status", response_model=EmailStatusResponse)
@public_rate_limit
async def get_email_status(
    request: Request,
    email: str = Query(min_length=3, max_length=320, description="Email address to check"),
    oracle: EmailStatusOracle = Depends(get_email_status_oracle),
) -> EmailStatusResponse:
    """
    Classify an email as unregistered, pending-review or approved.

    Raises:
        HTTPException: 503 if the profile store is unavailable
    """
    normalized = normalize_email(email)
    try:
        return EmailStatusResponse(email=normalized, status=oracle.classify(normalized))
    except TransientStoreError as e:
        logger.error(f"Email status lookup failed for {normalized}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to verify email status. Please try again.",
        )


@router.post("/magic-link", response_model=OnboardingOutcome)
@public_rate_limit
async def request_magic_link(
    request: Request,
    body: MagicLinkRequest,
    signup_service: SignupService = Depends(get_signup_service),
) -> OnboardingOutcome:
    """
    Sign-in form: email a magic link to an approved resident.

    Returns one outcome:
    - magic-link-sent: link sent, pointing at the resident's own community
    - pending-review: registered but not yet approved
    - no-account-for-signin: unknown email, target is the signup page
    - provider-rejected: the provider refused to send the link

    Raises:
        HTTPException: 503 if the email status can't be determined
        HTTPException: 500 for anything unexpected
    """
    try:
        return signup_service.request_magic_link(body)

    except OnboardingError as e:
        logger.info(f"Magic link for {body.email} ended with {e.kind.value}")
        return e.to_outcome()
    except StoreError as e:
        logger.error(f"Store failure during sign-in for {body.email}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to verify email status. Please try again.",
        )
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error sending magic link to {body.email}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Unable to send magic link. Please try again.",
        )
