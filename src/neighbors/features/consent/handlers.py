"""API handlers for terms consent."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from src.neighbors.features.consent.gate import ProfileNotFoundError, TermsGate
from src.neighbors.features.onboarding.dependencies import get_onboarding_finalizer, get_terms_gate
from src.neighbors.features.onboarding.finalizer import OnboardingFinalizer
from src.neighbors.features.onboarding.models import OnboardingOutcome, OutcomeKind
from src.neighbors.features.session.models import OnboardingState, TriggerContext
from src.neighbors.services.auth.dependencies import get_current_session
from src.neighbors.services.auth.models import AuthSession
from src.neighbors.services.database import TransientStoreError
from src.neighbors.services.rate_limiter import default_rate_limit, write_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/consent", tags=["consent"])


class ConsentStatusResponse(BaseModel):
    needs_consent: bool = Field(description="Whether the terms still have to be accepted")
    terms_version: str = Field(description="Current terms version")


class ConsentRequest(BaseModel):
    community: str | None = Field(None, description="Community from the page URL")
    continuation: str | None = Field(None, description="Continuation token, if any")


@router.get("/status", response_model=ConsentStatusResponse)
@default_rate_limit
async def get_consent_status(
    request: Request,
    session: AuthSession = Depends(get_current_session),
    gate: TermsGate = Depends(get_terms_gate),
) -> ConsentStatusResponse:
    """
    Check whether the signed-in resident must accept the terms.

    Raises:
        HTTPException: 404 if the resident has no profile
        HTTPException: 503 if the profile store is unavailable
    """
    try:
        return ConsentStatusResponse(
            needs_consent=gate.needs_consent(session.subject),
            terms_version=gate.terms_version,
        )
    except ProfileNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found. Please complete signup.",
        )
    except TransientStoreError as e:
        logger.error(f"Consent status lookup failed for {session.subject}: {e}")
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Unable to check consent. Please try again.",
        )


@router.post("", response_model=OnboardingOutcome)
@write_rate_limit
async def accept_terms(
    request: Request,
    body: ConsentRequest,
    session: AuthSession = Depends(get_current_session),
    gate: TermsGate = Depends(get_terms_gate),
    finalizer: OnboardingFinalizer = Depends(get_onboarding_finalizer),
) -> OnboardingOutcome:
    """
    Accept the current terms and continue onboarding.

    Accepting twice is harmless. Returns the finalizer's outcome.

    Raises:
        HTTPException: 404 if the resident has no profile
    """
    try:
        gate.record_consent(session.subject)
    except ProfileNotFoundError:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Profile not found. Please complete signup.",
        )
    except TransientStoreError as e:
        logger.error(f"Recording consent failed for {session.subject}: {e}")
        return OnboardingOutcome(
            state=OnboardingState.NEEDS_CONSENT,
            kind=OutcomeKind.UNEXPECTED_ERROR,
            message="We couldn't save your consent. Please try again.",
            retryable=True,
        )

    outcome = await finalizer.finalize(
        session, TriggerContext(community=body.community, continuation=body.continuation)
    )
    if outcome is None:
        return OnboardingOutcome(state=OnboardingState.LANDED, kind=OutcomeKind.ALREADY_HANDLED)
    return outcome
