"""Onboarding error taxonomy."""

from src.neighbors.features.onboarding.models import OnboardingOutcome, OutcomeKind
from src.neighbors.features.orphans.models import ALREADY_REGISTERED_MESSAGE, MANUAL_CONTACT_MESSAGE
from src.neighbors.features.session.models import OnboardingState


class OnboardingError(Exception):
    """
    Base class for onboarding failures that end in a message to the visitor.

    Attributes:
        kind: Outcome kind reported to the client
        terminal: The attempt can't succeed by retrying the same step
        discard_session: The provider session must be signed out
        user_message: Message shown to the visitor
        target: Where to send the visitor, if anywhere
    """

    kind = OutcomeKind.UNEXPECTED_ERROR
    terminal = False
    discard_session = False
    default_message = "Something went wrong. Please try again."

    def __init__(self, user_message: str | None = None, target: str | None = None) -> None:
        self.user_message = user_message or self.default_message
        self.target = target
        super().__init__(self.user_message)

    def to_outcome(self) -> OnboardingOutcome:
        return OnboardingOutcome(
            state=OnboardingState.ANONYMOUS,
            kind=self.kind,
            target=self.target,
            message=self.user_message,
            retryable=not self.terminal,
        )


class ProviderRejectedError(OnboardingError):
    """The authentication handshake itself failed."""

    kind = OutcomeKind.PROVIDER_REJECTED
    default_message = "We couldn't complete sign-in. Please try again."


class NotOrphanConflictError(OnboardingError):
    """Signup for an email that already has a complete profile."""

    kind = OutcomeKind.NOT_ORPHAN_CONFLICT
    default_message = ALREADY_REGISTERED_MESSAGE


class OrphanUnrepairableError(OnboardingError):
    kind = OutcomeKind.ORPHAN_UNREPAIRABLE
    terminal = True
    discard_session = True
    default_message = MANUAL_CONTACT_MESSAGE


class NoAccountForSignInError(OnboardingError):
    """A sign-in produced a session for an email with no profile."""

    kind = OutcomeKind.NO_ACCOUNT_FOR_SIGNIN
    discard_session = True
    default_message = "No account found, please sign up"


class AccountDisabledError(OnboardingError):
    kind = OutcomeKind.ACCOUNT_DISABLED
    terminal = True
    discard_session = True
    default_message = "Your account has been disabled. Please contact support."
