"""API handlers for resident signup and profile completion."""

import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Request, status

from src.neighbors.features.onboarding.dependencies import (
    get_notification_service,
    get_signup_service,
)
from src.neighbors.features.onboarding.exceptions import OnboardingError
from src.neighbors.features.onboarding.models import (
    CompleteProfileRequest,
    OnboardingOutcome,
    OutcomeKind,
    SignupRequest,
)
from src.neighbors.features.onboarding.signup import SignupService
from src.neighbors.features.session.models import OnboardingState
from src.neighbors.services.auth.dependencies import get_current_session
from src.neighbors.services.auth.exceptions import AuthorizationError
from src.neighbors.services.auth.models import AuthSession
from src.neighbors.services.database import StoreError
from src.neighbors.services.notifications import NotificationService
from src.neighbors.services.rate_limiter import public_rate_limit, write_rate_limit
from src.neighbors.services.retry import DuplicateSubmissionError

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/onboarding", tags=["onboarding"])


def unexpected_error_outcome() -> OnboardingOutcome:
    return OnboardingOutcome(
        state=OnboardingState.ANONYMOUS,
        kind=OutcomeKind.UNEXPECTED_ERROR,
        message="Something went wrong. Please try again.",
        retryable=True,
    )


@router.post("/signup", response_model=OnboardingOutcome)
@public_rate_limit
async def signup(
    request: Request,
    body: SignupRequest,
    background_tasks: BackgroundTasks,
    signup_service: SignupService = Depends(get_signup_service),
    notifications: NotificationService = Depends(get_notification_service),
) -> OnboardingOutcome:
    """
    Submit the resident signup form.

    Returns one outcome:
    - magic-link-sent: email already approved, a sign-in link was sent
    - pending-review: email registered but not yet approved
    - check-email / account-recovered: account ready, finish via the emailed link
    - landed / community-mismatch / needs-consent: session issued, onboarding ran
    - not-orphan-conflict, orphan-unrepairable, provider-rejected, unexpected-error

    Raises:
        HTTPException: 409 if a signup for the same email is already running
        HTTPException: 500 for anything unexpected
    """
    try:
        result = await signup_service.submit(body)
        if result.notice is not None:
            background_tasks.add_task(notifications.notify_new_signup, result.notice)
        return result.outcome

    except OnboardingError as e:
        logger.info(f"Signup for {body.email} ended with {e.kind.value}")
        return e.to_outcome()
    except DuplicateSubmissionError:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="A signup for this email is already in progress.",
        )
    except StoreError as e:
        logger.error(f"Store failure during signup for {body.email}: {e}")
        return unexpected_error_outcome()
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error processing signup for {body.email}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process signup. Please try again.",
        )


@router.post("/complete-profile", response_model=OnboardingOutcome)
@write_rate_limit
async def complete_profile(
    request: Request,
    body: CompleteProfileRequest,
    background_tasks: BackgroundTasks,
    session: AuthSession = Depends(get_current_session),
    signup_service: SignupService = Depends(get_signup_service),
    notifications: NotificationService = Depends(get_notification_service),
) -> OnboardingOutcome:
    """
    Finish a Google sign-up by providing name and address.

    Raises:
        HTTPException: 403 if the session is not a Google session
        HTTPException: 500 for anything unexpected
    """
    try:
        result = await signup_service.complete_profile(session, body)
        if result.notice is not None:
            background_tasks.add_task(notifications.notify_new_signup, result.notice)
        return result.outcome

    except OnboardingError as e:
        return e.to_outcome()
    except AuthorizationError as e:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=str(e))
    except StoreError as e:
        logger.error(f"Store failure completing profile for {session.subject}: {e}")
        return unexpected_error_outcome()
    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error completing profile for {session.subject}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to complete profile. Please try again.",
        )
