"""API handlers for provider callbacks and session events."""

import logging

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import BaseModel, Field

from src.neighbors.features.communities.names import to_slug
from src.neighbors.features.onboarding.dependencies import get_session_observer
from src.neighbors.features.onboarding.exceptions import ProviderRejectedError
from src.neighbors.features.onboarding.models import (
    AuthCallbackRequest,
    OnboardingOutcome,
    OutcomeKind,
)
from src.neighbors.features.session.models import (
    AuthIntent,
    OnboardingState,
    SessionEventType,
    TriggerContext,
)
from src.neighbors.features.session.observer import SessionObserver
from src.neighbors.services.auth.dependencies import get_current_session, get_optional_session
from src.neighbors.services.auth.models import AuthSession
from src.neighbors.services.rate_limiter import default_rate_limit

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


class SessionEventRequest(BaseModel):
    event: SessionEventType = Field(description="Provider auth-state-change event")
    intent: AuthIntent | None = Field(None, description="'signup' or 'signin'")
    community: str | None = Field(None, description="Community from the page URL")
    continuation: str | None = Field(None, description="Continuation token, if any")


def _already_handled(observer: SessionObserver, session: AuthSession) -> OnboardingOutcome:
    state = observer.state_for(session.subject_key)
    return OnboardingOutcome(
        state=state.state if state else OnboardingState.SESSION_ESTABLISHED,
        kind=OutcomeKind.ALREADY_HANDLED,
        target=state.target if state else None,
        community=state.community if state else None,
    )


def _parse_intent(raw: str | None) -> AuthIntent | None:
    try:
        return AuthIntent(raw) if raw else None
    except ValueError:
        logger.warning(f"Ignoring unknown auth intent {raw!r}")
        return None


@router.post("/callback", response_model=OnboardingOutcome)
@default_rate_limit
async def auth_callback(
    request: Request,
    body: AuthCallbackRequest,
    session: AuthSession | None = Depends(get_optional_session),
    observer: SessionObserver = Depends(get_session_observer),
) -> OnboardingOutcome:
    """
    Page-load check after the provider redirected back.

    The client posts what it found in the callback URL together with the
    session it now holds (if any). A provider error, or no session at all,
    sends the visitor back to authenticate.
    """
    community = to_slug(body.community) if body.community else None
    retry_target = f"/auth?community={community}" if community else "/auth"

    if body.error:
        logger.warning(
            f"Provider rejected authentication: {body.error}",
            extra={"error_description": body.error_description},
        )
        return ProviderRejectedError(body.error_description, target=retry_target).to_outcome()

    if session is None:
        return ProviderRejectedError(
            "Your sign-in link is invalid or has expired. Please try again.",
            target=retry_target,
        ).to_outcome()

    try:
        outcome = await observer.publish(
            SessionEventType.INITIAL_SESSION,
            session,
            TriggerContext(
                intent=_parse_intent(body.intent),
                community=body.community,
                continuation=body.continuation,
            ),
        )
        return outcome or _already_handled(observer, session)

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error finalizing callback for {session.subject}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to complete sign-in. Please try again.",
        )


@router.post("/events", response_model=OnboardingOutcome | None)
@default_rate_limit
async def session_event(
    request: Request,
    body: SessionEventRequest,
    session: AuthSession = Depends(get_current_session),
    observer: SessionObserver = Depends(get_session_observer),
) -> OnboardingOutcome | None:
    """
    Forward a provider auth-state-change event.

    SIGNED_IN and INITIAL_SESSION run onboarding (deduplicated against the
    callback); SIGNED_OUT clears the session state; other events are ignored.
    """
    try:
        outcome = await observer.publish(
            body.event,
            session,
            TriggerContext(intent=body.intent, community=body.community, continuation=body.continuation),
        )
        if outcome is None and body.event in (SessionEventType.SIGNED_IN, SessionEventType.INITIAL_SESSION):
            return _already_handled(observer, session)
        return outcome

    except HTTPException:
        raise
    except Exception as e:
        logger.error(f"Error handling {body.event.value} for {session.subject}: {e}", exc_info=True)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to process session event.",
        )
