"""Resident signup and post-OAuth profile completion."""

import logging
from datetime import UTC, datetime
from uuid import UUID

from pydantic import BaseModel

from src.neighbors.config import settings
from src.neighbors.features.communities.address import extract_street_name, is_usable_address
from src.neighbors.features.communities.mappings import MappingStore
from src.neighbors.features.communities.models import MappingSource
from src.neighbors.features.communities.names import display_name_for, to_slug
from src.neighbors.features.consent.gate import ProfileNotFoundError, TermsGate
from src.neighbors.features.email_status.models import EmailStatus
from src.neighbors.features.email_status.oracle import EmailStatusOracle
from src.neighbors.features.onboarding.exceptions import (
    NotOrphanConflictError,
    OrphanUnrepairableError,
    ProviderRejectedError,
)
from src.neighbors.features.onboarding.finalizer import OnboardingFinalizer
from src.neighbors.features.onboarding.models import (
    CompleteProfileRequest,
    MagicLinkRequest,
    OnboardingOutcome,
    OutcomeKind,
    SignupRequest,
)
from src.neighbors.features.orphans.models import RepairStatus, SignupCandidate
from src.neighbors.features.orphans.repair import OrphanRepairService
from src.neighbors.features.profiles.models import (
    CommunitySignup,
    DirectSignup,
    InviteSignup,
    ProfileCreate,
    UserProfile,
)
from src.neighbors.features.profiles.store import ProfileStore
from src.neighbors.features.return_path.continuation import ContinuationService
from src.neighbors.features.return_path.models import ContinuationPayload
from src.neighbors.features.return_path.router import landing_path, with_query_param
from src.neighbors.features.session.models import AuthIntent, OnboardingState, TriggerContext
from src.neighbors.services.auth.exceptions import AuthorizationError, ProviderError
from src.neighbors.services.auth.models import AuthSession
from src.neighbors.services.auth.provider import AuthProviderClient
from src.neighbors.services.database import StoreError, UniqueConflictError
from src.neighbors.services.notifications import SignupNotice

logger = logging.getLogger(__name__)

WELCOME_BACK_MESSAGE = "Welcome back! We've sent a magic link to your email."
PENDING_REVIEW_MESSAGE = (
    "Your account is already registered but still under review. Please check back later."
)
CHECK_EMAIL_MESSAGE = "Check your email for a magic link to finish signing in."
SIGNIN_LINK_MESSAGE = "If that email is registered, a magic link has been sent. Please check your inbox."
SIGNIN_PENDING_MESSAGE = "Your request is still under review. Please check back later."
NO_ACCOUNT_MESSAGE = "We couldn't find an account with that email. Please sign up to request access."


class SignupResult(BaseModel):
    """Outcome for the visitor plus the admin notice to send in the background."""

    outcome: OnboardingOutcome
    notice: SignupNotice | None = None


def _already_handled() -> OnboardingOutcome:
    return OnboardingOutcome(state=OnboardingState.LANDED, kind=OutcomeKind.ALREADY_HANDLED)


class SignupService:
    """
    Handles the resident signup form and Google profile completion.

    Both end by running the finalizer when a session is available, which is
    the post-action trigger that races the provider's own session event.
    """

    def __init__(
        self,
        oracle: EmailStatusOracle,
        repair: OrphanRepairService,
        provider: AuthProviderClient,
        profiles: ProfileStore,
        mappings: MappingStore,
        gate: TermsGate,
        continuations: ContinuationService,
        finalizer: OnboardingFinalizer,
        default_community: str | None = None,
    ) -> None:
        self.oracle = oracle
        self.repair = repair
        self.provider = provider
        self.profiles = profiles
        self.mappings = mappings
        self.gate = gate
        self.continuations = continuations
        self.finalizer = finalizer
        self.default_community = default_community or settings.default_community_slug

    async def submit(self, request: SignupRequest) -> SignupResult:
        """
        Process a signup form submission.

        Approved emails get a magic link instead of a second account, pending
        ones are told to wait, everything else goes through orphan-aware
        creation.

        Raises:
            ProviderRejectedError: If the provider refuses the sign-up or magic link
            NotOrphanConflictError: If the email already has a complete profile
            OrphanUnrepairableError: If a leftover identity could not be repaired
            TransientStoreError: If a store call fails before anything was created
            DuplicateSubmissionError: If the same email is already being processed
        """
        email = request.email
        pending = self.continuations.peek(request.continuation)
        community = request.community or (pending.selected_community if pending else None)
        slug = to_slug(community) if community else None

        status = self.oracle.classify_or_none(email)
        if status == EmailStatus.APPROVED:
            return SignupResult(outcome=self._send_welcome_back(email, slug, request.continuation))
        if status == EmailStatus.PENDING_REVIEW:
            return SignupResult(
                outcome=OnboardingOutcome(
                    state=OnboardingState.ANONYMOUS,
                    kind=OutcomeKind.PENDING_REVIEW,
                    message=PENDING_REVIEW_MESSAGE,
                )
            )

        candidate = SignupCandidate(
            name=request.name,
            address=request.address,
            signup_source=self._signup_source(slug, pending),
            invited_by=_as_uuid(pending.pending_inviter_id) if pending else None,
        )
        try:
            result = await self.repair.detect_and_repair(email, candidate)
        except ProviderError as e:
            raise ProviderRejectedError(str(e)) from e

        if result.status == RepairStatus.NOT_ORPHAN:
            raise NotOrphanConflictError(target=_signin_target(slug))
        if result.status == RepairStatus.NEEDS_MANUAL_CONTACT:
            raise OrphanUnrepairableError(result.message)
        if result.status == RepairStatus.REPAIRED and not result.fast_path:
            return SignupResult(
                outcome=OnboardingOutcome(
                    state=OnboardingState.AUTHENTICATING,
                    kind=OutcomeKind.ACCOUNT_RECOVERED,
                    message=result.message,
                    community=slug,
                )
            )

        user_id = result.user_id
        if request.accept_terms:
            self._record_consent(user_id)
        self._map_household(request.address, slug, user_id, MappingSource.SIGNUP)
        notice = SignupNotice(
            user_id=str(user_id),
            email=email,
            name=request.name,
            address=request.address,
            community=display_name_for(slug) if slug else None,
            signup_source=candidate.signup_source.to_tag(),
        )

        if result.session is None:
            return SignupResult(
                outcome=OnboardingOutcome(
                    state=OnboardingState.AUTHENTICATING,
                    kind=OutcomeKind.CHECK_EMAIL,
                    message=CHECK_EMAIL_MESSAGE,
                    community=slug,
                ),
                notice=notice,
            )

        outcome = await self.finalizer.finalize(
            result.session,
            TriggerContext(intent=AuthIntent.SIGNUP, community=slug, continuation=request.continuation),
        )
        return SignupResult(outcome=outcome or _already_handled(), notice=notice)

    async def complete_profile(
        self, session: AuthSession, request: CompleteProfileRequest
    ) -> SignupResult:
        """
        Create the profile for a Google sign-up that has none yet.

        Google sign-ups are auto-approved and get the join bonus. A visitor
        who already has a profile just gets finalized again.

        Raises:
            AuthorizationError: If the session did not come from Google
            NotOrphanConflictError: If another profile already owns the email
            TransientStoreError: If the profile could not be written
        """
        existing = self.profiles.get_profile_by_id(session.subject)
        if existing is not None:
            outcome = await self.finalizer.finalize(
                session,
                TriggerContext(community=request.community, continuation=request.continuation),
            )
            return SignupResult(outcome=outcome or _already_handled())

        if not session.provider.is_oauth:
            raise AuthorizationError("Profile completion is only available after Google sign-in")

        pending = self.continuations.peek(request.continuation)
        community = (
            request.community
            or (pending.selected_community if pending else None)
            or session.user_metadata.get("community")
            or self.default_community
        )
        slug = to_slug(community)
        name = (request.name or "").strip() or _metadata_name(session) or session.email.split("@")[0]
        now = datetime.now(UTC)

        profile = ProfileCreate(
            id=session.subject,
            email=session.email,
            name=name,
            address=request.address,
            street_name=extract_street_name(request.address) or None,
            signup_source=CommunitySignup(name=slug),
            is_verified=True,
            points=settings.signup_bonus_points,
            invited_by=_as_uuid(pending.pending_inviter_id) if pending else None,
            terms_accepted_at=now if request.accept_terms else None,
            terms_version=self.gate.terms_version if request.accept_terms else None,
        )
        try:
            created = self.profiles.create_profile(profile)
        except UniqueConflictError as e:
            logger.warning(f"Profile completion conflict for {session.email}: {e}")
            raise NotOrphanConflictError(target=_signin_target(slug)) from e

        self._award_join_points(created)
        self._map_household(request.address, slug, session.subject, MappingSource.GOOGLE_OAUTH)
        notice = SignupNotice(
            user_id=session.subject_key,
            email=session.email,
            name=name,
            address=request.address,
            community=display_name_for(slug),
            signup_source=profile.signup_source.to_tag(),
            via="google_oauth",
        )

        outcome = await self.finalizer.finalize(
            session,
            TriggerContext(intent=AuthIntent.SIGNUP, community=slug, continuation=request.continuation),
        )
        return SignupResult(outcome=outcome or _already_handled(), notice=notice)

    def request_magic_link(self, request: MagicLinkRequest) -> OnboardingOutcome:
        """
        Start a sign-in from the sign-in form.

        Approved emails get a magic link back to their own community, pending
        ones are told to wait and unknown ones are sent to signup.

        Raises:
            ProviderRejectedError: If the provider refuses to send the link
            TransientStoreError: If the email status can't be determined
        """
        pending = self.continuations.peek(request.continuation)
        community = request.community or (pending.selected_community if pending else None)
        slug = to_slug(community) if community else None

        status = self.oracle.classify(request.email)
        if status == EmailStatus.APPROVED:
            return self._send_welcome_back(
                request.email, slug, request.continuation, message=SIGNIN_LINK_MESSAGE
            )
        if status == EmailStatus.PENDING_REVIEW:
            return OnboardingOutcome(
                state=OnboardingState.ANONYMOUS,
                kind=OutcomeKind.PENDING_REVIEW,
                message=SIGNIN_PENDING_MESSAGE,
                community=slug,
            )

        logger.info(f"Sign-in requested for unknown email {request.email}")
        return OnboardingOutcome(
            state=OnboardingState.ANONYMOUS,
            kind=OutcomeKind.NO_ACCOUNT_FOR_SIGNIN,
            target=f"/auth?community={slug}" if slug else "/auth",
            message=NO_ACCOUNT_MESSAGE,
            community=slug,
        )

    def _send_welcome_back(
        self,
        email: str,
        slug: str | None,
        continuation: str | None = None,
        message: str = WELCOME_BACK_MESSAGE,
    ) -> OnboardingOutcome:
        home = to_slug(self._home_community(email) or slug or self.default_community)
        path = landing_path(home)
        if continuation:
            path = with_query_param(path, "continuation", continuation)
        try:
            self.provider.send_magic_link(email, f"{settings.site_url}{path}")
        except ProviderError as e:
            raise ProviderRejectedError(f"Error sending magic link: {e}") from e
        return OnboardingOutcome(
            state=OnboardingState.AUTHENTICATING,
            kind=OutcomeKind.MAGIC_LINK_SENT,
            message=message,
            community=home,
        )

    def _home_community(self, email: str) -> str | None:
        """The community a resident registered from, if the profile records one."""
        try:
            profile = self.profiles.get_profile_by_email(email)
        except StoreError as e:
            logger.warning(f"Could not read signup community for {email}: {e}")
            return None
        if profile is not None and isinstance(profile.signup_source, CommunitySignup):
            return profile.signup_source.name
        return None

    def _signup_source(self, slug: str | None, pending: ContinuationPayload | None):
        if slug:
            return CommunitySignup(name=slug)
        if pending and pending.pending_invite_code:
            return InviteSignup(code=pending.pending_invite_code)
        return DirectSignup()

    def _record_consent(self, user_id: UUID) -> None:
        try:
            self.gate.record_consent(user_id)
        except (StoreError, ProfileNotFoundError) as e:
            logger.warning(f"Could not record consent at signup for {user_id}: {e}")

    def _award_join_points(self, profile: UserProfile) -> None:
        try:
            self.profiles.record_join_points(profile.id, settings.signup_bonus_points)
        except StoreError as e:
            logger.warning(f"Join points history not recorded for {profile.id}: {e}")

    def _map_household(
        self, address: str | None, slug: str | None, user_id: UUID, source: MappingSource
    ) -> None:
        if not slug or not is_usable_address(address):
            return
        try:
            normalized = self.mappings.normalize_address(address)
            self.mappings.create_or_get_mapping(
                address, normalized, display_name_for(slug), created_by=user_id, source=source
            )
        except StoreError as e:
            logger.warning(
                f"Household mapping failed for {user_id}: {e}",
                extra={"error_type": "mapping_failed"},
            )


def _signin_target(slug: str | None) -> str:
    return f"/signin?community={slug}" if slug else "/signin"


def _metadata_name(session: AuthSession) -> str | None:
    metadata = session.user_metadata
    return metadata.get("full_name") or metadata.get("name")


def _as_uuid(value: str | None) -> UUID | None:
    if not value:
        return None
    try:
        return UUID(str(value))
    except ValueError:
        logger.warning(f"Ignoring malformed inviter id {value!r}")
        return None
