"""Onboarding finalizer: turns an established session into one navigation decision."""

import logging
from urllib.parse import urlencode

from src.neighbors.features.communities.address import is_usable_address
from src.neighbors.features.communities.mappings import MappingStore
from src.neighbors.features.communities.models import MappingSource, ResolvedCommunity
from src.neighbors.features.communities.names import to_slug
from src.neighbors.features.communities.resolver import CommunityResolver
from src.neighbors.features.consent.gate import TermsGate
from src.neighbors.features.onboarding.exceptions import (
    AccountDisabledError,
    NoAccountForSignInError,
    OnboardingError,
)
from src.neighbors.features.onboarding.invites import InviteService
from src.neighbors.features.onboarding.latch import SingleFlightLatch
from src.neighbors.features.onboarding.models import OnboardingOutcome, OutcomeKind
from src.neighbors.features.profiles.models import UserProfile
from src.neighbors.features.profiles.store import ProfileStore
from src.neighbors.features.return_path.models import ContinuationPayload
from src.neighbors.features.return_path.router import ReturnPathRouter
from src.neighbors.features.session.models import (
    AuthIntent,
    OnboardingState,
    SessionEventType,
    TriggerContext,
)
from src.neighbors.features.session.observer import SessionObserver
from src.neighbors.services.auth.models import AuthSession
from src.neighbors.services.auth.provider import AuthProviderClient
from src.neighbors.services.database import StoreError
from src.neighbors.services.posthog import PostHogService

logger = logging.getLogger(__name__)

UNEXPECTED_ERROR_MESSAGE = "Something went wrong. Please try again."
CONSENT_MESSAGE = "Please review and accept the terms to continue."
PROFILE_COMPLETION_MESSAGE = "Please complete your profile to finish joining."


def _with_query(path: str, **params: str | None) -> str:
    query = urlencode({key: value for key, value in params.items() if value})
    return f"{path}?{query}" if query else path


class OnboardingFinalizer:
    """
    Runs the onboarding state machine for a session.

    session-established -> profile-check -> consent-check -> resolved -> landed,
    stopping at needs-profile-completion or needs-consent when the visitor
    has to act, and back to anonymous on errors. Each call produces exactly
    one OnboardingOutcome, or None when a duplicate trigger was dropped.
    """

    def __init__(
        self,
        profiles: ProfileStore,
        mappings: MappingStore,
        resolver: CommunityResolver,
        gate: TermsGate,
        router: ReturnPathRouter,
        provider: AuthProviderClient,
        invites: InviteService,
        observer: SessionObserver,
        latch: SingleFlightLatch,
        analytics: PostHogService | None = None,
    ) -> None:
        self.profiles = profiles
        self.mappings = mappings
        self.resolver = resolver
        self.gate = gate
        self.router = router
        self.provider = provider
        self.invites = invites
        self.observer = observer
        self.latch = latch
        self.analytics = analytics or PostHogService()

    async def on_session_event(
        self, event: SessionEventType, session: AuthSession, context: TriggerContext
    ) -> OnboardingOutcome | None:
        """SessionObserver listener."""
        return await self.finalize(session, context)

    async def finalize(
        self, session: AuthSession, context: TriggerContext | None = None
    ) -> OnboardingOutcome | None:
        """
        Finalize onboarding for a session.

        Args:
            session: The provider session that was just established
            context: Intent, URL community and continuation token from the client

        Returns:
            The outcome, or None if another trigger for this subject is
            running or this session has already landed
        """
        context = context or TriggerContext()
        if not self.latch.try_acquire(session.subject_key, session.session_key):
            return None

        landed = False
        try:
            outcome = await self._run(session, context)
            landed = outcome.state == OnboardingState.LANDED
            return outcome
        finally:
            self.latch.release(session.subject_key, session.session_key, completed=landed)

    async def _run(self, session: AuthSession, context: TriggerContext) -> OnboardingOutcome:
        try:
            return await self._advance(session, context)
        except OnboardingError as e:
            logger.warning(
                f"Onboarding stopped for {session.subject}: {e.kind.value}",
                extra={"kind": e.kind.value, "terminal": e.terminal},
            )
            if e.discard_session:
                self.provider.sign_out(session)
                self.observer.clear(session.subject_key)
            else:
                self.observer.transition(session, OnboardingState.ANONYMOUS)
            self.analytics.capture(
                distinct_id=session.subject_key,
                event="onboarding_failed",
                properties={"kind": e.kind.value, "provider": session.provider.value},
            )
            return e.to_outcome()
        except StoreError as e:
            logger.error(
                f"Store failure while finalizing {session.subject}: {e}",
                extra={"error_type": "transient_store_error"},
            )
            self.observer.transition(session, OnboardingState.ANONYMOUS)
            return OnboardingOutcome(
                state=OnboardingState.ANONYMOUS,
                kind=OutcomeKind.UNEXPECTED_ERROR,
                message=UNEXPECTED_ERROR_MESSAGE,
                retryable=True,
            )

    async def _advance(self, session: AuthSession, context: TriggerContext) -> OnboardingOutcome:
        self.observer.transition(session, OnboardingState.PROFILE_CHECK)

        profile = self.profiles.get_profile_by_id(session.subject) or self.profiles.get_profile_by_email(
            session.email
        )
        pending = self.router.continuations.peek(context.continuation)
        explicit = context.community or (pending.selected_community if pending else None)

        if profile is None:
            return self._handle_missing_profile(session, context, explicit)

        if profile.is_disabled:
            raise AccountDisabledError(target="/signin")

        self.observer.transition(session, OnboardingState.CONSENT_CHECK)
        if self.gate.needs_consent_for(profile):
            self.observer.transition(session, OnboardingState.NEEDS_CONSENT)
            return OnboardingOutcome(
                state=OnboardingState.NEEDS_CONSENT,
                kind=OutcomeKind.NEEDS_CONSENT,
                target=_with_query(
                    "/consent",
                    community=to_slug(explicit) if explicit else None,
                    continuation=context.continuation,
                ),
                message=CONSENT_MESSAGE,
            )

        community = self.resolver.resolve(profile, explicit=explicit, access_token=session.access_token)
        self.observer.transition(session, OnboardingState.RESOLVED, community=community.slug)

        # Read-and-clear only after every store read that can fail, so a
        # retried attempt still finds the return path and invite.
        payload = self.router.continuations.consume(context.continuation)
        return_path = payload.return_path if payload else None
        decision = self.router.decide(return_path, community)

        self._redeem_invite(session, payload)
        self._ensure_mapping(profile, community)

        self.observer.transition(
            session, OnboardingState.LANDED, community=community.slug, target=decision.target
        )
        self.analytics.capture(
            distinct_id=session.subject_key,
            event="onboarding_landed",
            properties={
                "community": community.slug,
                "community_source": community.source.value,
                "resumed_return_path": decision.resumed,
                "community_mismatch": decision.mismatch,
                "provider": session.provider.value,
            },
        )
        logger.info(
            f"Onboarding landed {session.subject} on {decision.target}",
            extra={"community": community.slug, "mismatch": decision.mismatch},
        )
        return OnboardingOutcome(
            state=OnboardingState.LANDED,
            kind=OutcomeKind.COMMUNITY_MISMATCH if decision.mismatch else OutcomeKind.LANDED,
            target=decision.target,
            notice=decision.notice,
            community=community.slug,
        )

    def _handle_missing_profile(
        self, session: AuthSession, context: TriggerContext, explicit: str | None
    ) -> OnboardingOutcome:
        community = to_slug(explicit) if explicit else None

        # A Google sign-up lands here before the visitor has given an address.
        # Sessions without an explicit intent are treated as sign-ups.
        if session.provider.is_oauth and context.intent != AuthIntent.SIGNIN:
            self.observer.transition(session, OnboardingState.NEEDS_PROFILE_COMPLETION)
            return OnboardingOutcome(
                state=OnboardingState.NEEDS_PROFILE_COMPLETION,
                kind=OutcomeKind.NEEDS_PROFILE_COMPLETION,
                target=_with_query(
                    "/complete-profile", community=community, continuation=context.continuation
                ),
                message=PROFILE_COMPLETION_MESSAGE,
                community=community,
            )

        raise NoAccountForSignInError(target=_with_query("/auth", community=community))

    def _redeem_invite(self, session: AuthSession, payload: ContinuationPayload | None) -> None:
        if payload is None or not payload.pending_invite_code:
            return
        self.invites.redeem(payload.pending_invite_code, session.subject)

    def _ensure_mapping(self, profile: UserProfile, community: ResolvedCommunity) -> None:
        """Map the resident's household on first landing if nobody has yet."""
        if not is_usable_address(profile.address):
            return
        try:
            normalized = profile.normalized_address or self.mappings.normalize_address(profile.address)
            if self.mappings.find_mapping_by_address(normalized) is not None:
                return
            self.mappings.create_or_get_mapping(
                profile.address,
                normalized,
                community.display_name,
                created_by=profile.id,
                source=MappingSource.ONBOARDING,
            )
        except StoreError as e:
            logger.warning(
                f"Household mapping skipped for {profile.id}: {e}",
                extra={"error_type": "mapping_failed"},
            )
