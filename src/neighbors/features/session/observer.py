"""Session observer: funnels both kinds of session triggers into one place."""

import logging
from collections.abc import Awaitable, Callable
from typing import Any

from src.neighbors.features.session.models import (
    OnboardingState,
    SessionEventType,
    SessionState,
    TriggerContext,
)
from src.neighbors.services.auth.models import AuthSession

logger = logging.getLogger(__name__)

SessionListener = Callable[[SessionEventType, AuthSession, TriggerContext], Awaitable[Any]]

# Events that mean "a session is now present"
_SESSION_PRESENT = {
    SessionEventType.INITIAL_SESSION,
    SessionEventType.SIGNED_IN,
}


class SessionObserver:
    """
    Receives provider session events and the page-load session check.

    Both are treated as the same trigger. The observer keeps one SessionState
    per subject and hands the event to its listeners; the first listener that
    returns something provides the result of the publish.
    """

    def __init__(self) -> None:
        self._listeners: list[SessionListener] = []
        self._states: dict[str, SessionState] = {}

    def subscribe(self, listener: SessionListener) -> Callable[[], None]:
        """Register a listener. Returns a callable that unsubscribes it."""
        if listener not in self._listeners:
            self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def state_for(self, subject: str) -> SessionState | None:
        return self._states.get(str(subject))

    def update(self, state: SessionState) -> SessionState:
        self._states[str(state.subject)] = state
        return state

    def transition(self, session: AuthSession, state: OnboardingState, **changes) -> SessionState:
        """Move a subject's session to a new onboarding state."""
        current = self.state_for(session.subject_key)
        if current is None or current.session_key != session.session_key:
            current = SessionState(
                subject=session.subject,
                email=session.email,
                provider=session.provider,
                session_key=session.session_key,
            )
        logger.debug(
            f"Session {session.subject} -> {state.value}",
            extra={"from_state": current.state.value, "to_state": state.value},
        )
        return self.update(current.advance(state, **changes))

    def clear(self, subject: str) -> None:
        self._states.pop(str(subject), None)

    async def publish(
        self,
        event: SessionEventType,
        session: AuthSession,
        context: TriggerContext | None = None,
    ) -> Any:
        """
        Publish a session event.

        Returns:
            The first non-None listener result (e.g. the onboarding outcome)
        """
        context = context or TriggerContext()

        if event == SessionEventType.SIGNED_OUT:
            self.clear(session.subject_key)
            logger.info(f"Session signed out for {session.subject}")
            return None

        if event not in _SESSION_PRESENT:
            logger.debug(f"Ignoring {event.value} for {session.subject}")
            return None

        existing = self.state_for(session.subject_key)
        if existing is None or existing.session_key != session.session_key:
            self.transition(session, OnboardingState.SESSION_ESTABLISHED)

        result = None
        for listener in list(self._listeners):
            outcome = await listener(event, session, context)
            if result is None and outcome is not None:
                result = outcome
        return result
