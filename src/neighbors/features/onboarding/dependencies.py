"""Wiring for the onboarding engine (FastAPI dependency providers)."""

from functools import lru_cache

from src.neighbors.config import settings
from src.neighbors.features.communities.mappings import MappingStore
from src.neighbors.features.communities.resolver import CommunityResolver
from src.neighbors.features.consent.gate import TermsGate
from src.neighbors.features.email_status.oracle import EmailStatusOracle
from src.neighbors.features.onboarding.finalizer import OnboardingFinalizer
from src.neighbors.features.onboarding.invites import InviteService
from src.neighbors.features.onboarding.latch import SingleFlightLatch
from src.neighbors.features.onboarding.signup import SignupService
from src.neighbors.features.orphans.repair import OrphanRepairService
from src.neighbors.features.profiles.store import ProfileStore
from src.neighbors.features.return_path.continuation import ContinuationService
from src.neighbors.features.return_path.router import ReturnPathRouter
from src.neighbors.features.session.observer import SessionObserver
from src.neighbors.services.auth.provider import AuthProviderClient
from src.neighbors.services.notifications import NotificationService


@lru_cache(maxsize=1)
def get_profile_store() -> ProfileStore:
    return ProfileStore()


@lru_cache(maxsize=1)
def get_mapping_store() -> MappingStore:
    return MappingStore()


@lru_cache(maxsize=1)
def get_auth_provider() -> AuthProviderClient:
    return AuthProviderClient()


@lru_cache(maxsize=1)
def get_continuation_service() -> ContinuationService:
    return ContinuationService()


@lru_cache(maxsize=1)
def get_return_path_router() -> ReturnPathRouter:
    return ReturnPathRouter(get_continuation_service())


@lru_cache(maxsize=1)
def get_terms_gate() -> TermsGate:
    return TermsGate(get_profile_store())


@lru_cache(maxsize=1)
def get_email_status_oracle() -> EmailStatusOracle:
    return EmailStatusOracle(get_profile_store())


@lru_cache(maxsize=1)
def get_notification_service() -> NotificationService:
    return NotificationService()


@lru_cache(maxsize=1)
def get_onboarding_finalizer() -> OnboardingFinalizer:
    """Shared finalizer, subscribed to its own session observer."""
    profiles = get_profile_store()
    mappings = get_mapping_store()
    observer = SessionObserver()
    finalizer = OnboardingFinalizer(
        profiles=profiles,
        mappings=mappings,
        resolver=CommunityResolver(profiles, mappings, settings.default_community_slug),
        gate=get_terms_gate(),
        router=get_return_path_router(),
        provider=get_auth_provider(),
        invites=InviteService(),
        observer=observer,
        latch=SingleFlightLatch(settings.finalize_guard_ttl_seconds),
    )
    observer.subscribe(finalizer.on_session_event)
    return finalizer


def get_session_observer() -> SessionObserver:
    return get_onboarding_finalizer().observer


@lru_cache(maxsize=1)
def get_signup_service() -> SignupService:
    profiles = get_profile_store()
    provider = get_auth_provider()
    return SignupService(
        oracle=get_email_status_oracle(),
        repair=OrphanRepairService(provider, profiles),
        provider=provider,
        profiles=profiles,
        mappings=get_mapping_store(),
        gate=get_terms_gate(),
        continuations=get_continuation_service(),
        finalizer=get_onboarding_finalizer(),
    )
