"""Pytest configuration and shared fixtures."""

from datetime import UTC, datetime, timedelta
from types import SimpleNamespace
from typing import Any
from unittest.mock import MagicMock
from uuid import UUID, uuid4

import pytest
from fastapi import HTTPException
from fastapi.testclient import TestClient

from src.neighbors.features.communities.address import normalize_address_locally
from src.neighbors.features.communities.models import HouseholdMapping, MappingSource
from src.neighbors.features.communities.resolver import CommunityResolver
from src.neighbors.features.consent.gate import TermsGate
from src.neighbors.features.email_status.oracle import EmailStatusOracle
from src.neighbors.features.onboarding import dependencies
from src.neighbors.features.onboarding.finalizer import OnboardingFinalizer
from src.neighbors.features.onboarding.latch import SingleFlightLatch
from src.neighbors.features.onboarding.models import InviteRedemption
from src.neighbors.features.onboarding.signup import SignupService
from src.neighbors.features.orphans.repair import OrphanRepairService
from src.neighbors.features.profiles.models import ProfileCreate, UserProfile
from src.neighbors.features.profiles.store import OrphanFixResult
from src.neighbors.features.return_path.continuation import ConsumedTokenLedger, ContinuationService
from src.neighbors.features.return_path.router import ReturnPathRouter
from src.neighbors.features.session.observer import SessionObserver
from src.neighbors.main import app
from src.neighbors.services.auth.dependencies import get_current_session, get_optional_session
from src.neighbors.services.auth.models import AuthSession, ProviderKind
from src.neighbors.services.auth.provider import OrphanedIdentity, ProvisionedAccount
from src.neighbors.services.auth.revocation import get_revocation_list
from src.neighbors.services.database import UniqueConflictError
from src.neighbors.services.rate_limiter import limiter


@pytest.fixture
def client() -> TestClient:
    """
    Provide FastAPI test client for API testing.

    Returns:
        TestClient instance for making API requests

    Example:
        >>> def test_health(client):
        >>>     response = client.get("/health")
        >>>     assert response.status_code == 200
    """
    return TestClient(app)


@pytest.fixture(autouse=True)
def reset_shared_state():
    """Rate limits and revoked sessions are process-wide; start every test clean."""
    limiter.reset()
    get_revocation_list().clear()
    yield
    app.dependency_overrides = {}


class FakeProfileStore:
    """In-memory users table with the same unique-email behaviour as the database."""

    def __init__(self) -> None:
        self.rows: dict[str, dict[str, Any]] = {}
        self.email_statuses: dict[str, str] = {}
        self.point_history: list[dict[str, Any]] = []
        self.identity_lookup = lambda email: None
        self.fail_with: Exception | None = None

    def _check(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def add(self, **fields: Any) -> UserProfile:
        row = {"id": str(uuid4()), "is_verified": True, "points": 0, **fields}
        row["id"] = str(row["id"])
        row["email"] = row["email"].lower()
        self.rows[row["id"]] = row
        return UserProfile.model_validate(row)

    def profiles_for(self, email: str) -> list[UserProfile]:
        return [UserProfile.model_validate(r) for r in self.rows.values() if r["email"] == email]

    def get_profile_by_email(self, email: str) -> UserProfile | None:
        self._check()
        matches = self.profiles_for(email.strip().lower())
        return matches[0] if matches else None

    def get_profile_by_id(self, user_id) -> UserProfile | None:
        self._check()
        row = self.rows.get(str(user_id))
        return UserProfile.model_validate(row) if row else None

    def create_profile(self, profile: ProfileCreate) -> UserProfile:
        self._check()
        record = profile.to_record()
        for row in self.rows.values():
            if row["email"] == record["email"] and row["id"] != record["id"]:
                raise UniqueConflictError("duplicate key value violates unique constraint")
        self.rows[record["id"]] = {**self.rows.get(record["id"], {}), **record}
        return UserProfile.model_validate(self.rows[record["id"]])

    def update_profile(self, user_id, patch: dict[str, Any]) -> UserProfile | None:
        self._check()
        row = self.rows.get(str(user_id))
        if row is None:
            return None
        row.update(patch)
        return UserProfile.model_validate(row)

    def classify_email(self, email: str) -> str | None:
        self._check()
        return self.email_statuses.get(email)

    def fix_orphaned_profile(self, email, name=None, address=None) -> OrphanFixResult | None:
        self._check()
        user_id = self.identity_lookup(email)
        if user_id is None or self.profiles_for(email):
            return OrphanFixResult({"created_record": False, "error_message": "no orphan"})
        self.rows[str(user_id)] = {
            "id": str(user_id),
            "email": email,
            "name": name,
            "address": address,
            "is_verified": True,
            "points": 0,
        }
        return OrphanFixResult({"created_record": True, "user_id": str(user_id), "email": email})

    def record_join_points(self, user_id, points: int) -> None:
        self.point_history.append({"user_id": str(user_id), "points_earned": points})


class FakeMappingStore:
    def __init__(self) -> None:
        self.rows: list[HouseholdMapping] = []
        # get_my_hoa results by user id
        self.memberships: dict[str, str] = {}

    def normalize_address(self, address: str) -> str:
        return normalize_address_locally(address)

    def add(self, address: str, community: str, created_by=None, age_minutes: int = 0) -> HouseholdMapping:
        mapping = HouseholdMapping(
            household_address=address,
            normalized_address=normalize_address_locally(address),
            hoa_name=community,
            created_by=created_by,
            mapping_source="test",
            created_at=datetime.now(UTC) - timedelta(minutes=age_minutes),
        )
        self.rows.append(mapping)
        return mapping

    def _latest(self, rows: list[HouseholdMapping]) -> HouseholdMapping | None:
        return max(rows, key=lambda m: m.created_at) if rows else None

    def find_mapping_by_address(self, normalized_address: str) -> HouseholdMapping | None:
        return self._latest([m for m in self.rows if m.normalized_address == normalized_address])

    def find_mapping_by_member(self, user_id) -> HouseholdMapping | None:
        return self._latest([m for m in self.rows if str(m.created_by) == str(user_id)])

    def find_community_for_member(self, user_id, access_token=None) -> str | None:
        if access_token and str(user_id) in self.memberships:
            return self.memberships[str(user_id)]
        mapping = self.find_mapping_by_member(user_id)
        return mapping.hoa_name if mapping else None

    def find_mapping(self, normalized_address: str, community: str) -> HouseholdMapping | None:
        return next(
            (m for m in self.rows if m.normalized_address == normalized_address and m.hoa_name == community),
            None,
        )

    def create_or_get_mapping(
        self, household_address, normalized_address, community, created_by=None, source=MappingSource.SIGNUP
    ) -> HouseholdMapping:
        existing = self.find_mapping(normalized_address, community)
        if existing is not None:
            return existing
        mapping = HouseholdMapping(
            household_address=household_address,
            normalized_address=normalized_address,
            hoa_name=community,
            created_by=created_by,
            mapping_source=source.value,
            created_at=datetime.now(UTC),
        )
        self.rows.append(mapping)
        return mapping


class FakeAuthProvider:
    """In-memory identity provider. Identities are keyed by email."""

    def __init__(self, profiles: FakeProfileStore) -> None:
        self.profiles = profiles
        self.identities: dict[str, dict[str, Any]] = {}
        self.auto_confirm = False
        self.delete_succeeds = True
        self.magic_links: list[tuple[str, str]] = []
        self.signed_out: list[AuthSession] = []
        self.sign_up_calls = 0
        self.revocations = get_revocation_list()
        profiles.identity_lookup = self.identity_id_for

    def identity_id_for(self, email: str) -> UUID | None:
        identity = self.identities.get(email)
        return identity["user_id"] if identity else None

    def add_identity(
        self, email: str, provider: ProviderKind = ProviderKind.PASSWORD_OTP, age_minutes: int = 0
    ) -> UUID:
        user_id = uuid4()
        self.identities[email] = {
            "user_id": user_id,
            "provider": provider,
            "created_at": datetime.now(UTC) - timedelta(minutes=age_minutes),
        }
        return user_id

    def sign_up(self, email: str, metadata: dict[str, Any], redirect_to: str) -> ProvisionedAccount:
        self.sign_up_calls += 1
        if email in self.identities:
            raise UniqueConflictError("User already registered")
        user_id = self.add_identity(email)
        session = None
        if self.auto_confirm:
            session = AuthSession(subject=user_id, email=email, session_id=f"s-{user_id}", access_token="token")
        return ProvisionedAccount(user_id=user_id, email=email, session=session)

    def send_magic_link(self, email: str, redirect_to: str) -> None:
        self.magic_links.append((email, redirect_to))

    def sign_out(self, session: AuthSession) -> None:
        self.revocations.revoke(session.session_key)
        self.signed_out.append(session)

    def find_orphaned_identity(self, email: str) -> OrphanedIdentity | None:
        identity = self.identities.get(email)
        if identity is None or self.profiles.profiles_for(email):
            return None
        return OrphanedIdentity(email=email, **identity)

    def delete_identity(self, user_id) -> bool:
        if not self.delete_succeeds:
            return False
        for email, identity in list(self.identities.items()):
            if identity["user_id"] == user_id:
                del self.identities[email]
                return True
        return False


class FakeInviteService:
    def __init__(self) -> None:
        self.redeemed: list[tuple[str, str]] = []
        self.fail = False

    def redeem(self, code: str, invited_user_id) -> InviteRedemption | None:
        if self.fail:
            return None
        self.redeemed.append((code, str(invited_user_id)))
        return InviteRedemption(success=True, points_awarded=10)


@pytest.fixture
def make_session():
    """Factory for provider sessions."""

    def _make(
        email: str = "resident@example.com",
        provider: ProviderKind = ProviderKind.PASSWORD_OTP,
        subject: UUID | None = None,
        **fields: Any,
    ) -> AuthSession:
        subject = subject or uuid4()
        return AuthSession(
            subject=subject,
            email=email,
            provider=provider,
            session_id=fields.pop("session_id", f"session-{subject}"),
            access_token=fields.pop("access_token", "access-token"),
            **fields,
        )

    return _make


@pytest.fixture
def engine():
    """The onboarding engine wired to in-memory stores."""
    profiles = FakeProfileStore()
    mappings = FakeMappingStore()
    provider = FakeAuthProvider(profiles)
    invites = FakeInviteService()
    analytics = MagicMock()
    continuations = ContinuationService(secret="test-secret", ttl_seconds=900, ledger=ConsumedTokenLedger())
    router = ReturnPathRouter(continuations)
    gate = TermsGate(profiles, terms_version="1.0")
    oracle = EmailStatusOracle(profiles)
    resolver = CommunityResolver(profiles, mappings, "boca-bridges")
    observer = SessionObserver()
    latch = SingleFlightLatch(300)
    finalizer = OnboardingFinalizer(
        profiles=profiles,
        mappings=mappings,
        resolver=resolver,
        gate=gate,
        router=router,
        provider=provider,
        invites=invites,
        observer=observer,
        latch=latch,
        analytics=analytics,
    )
    observer.subscribe(finalizer.on_session_event)
    repair = OrphanRepairService(
        provider, profiles, fast_path_max_age_minutes=60, backoff_seconds=0, redirect_to="http://test/auth"
    )
    signup = SignupService(
        oracle=oracle,
        repair=repair,
        provider=provider,
        profiles=profiles,
        mappings=mappings,
        gate=gate,
        continuations=continuations,
        finalizer=finalizer,
        default_community="boca-bridges",
    )
    return SimpleNamespace(
        profiles=profiles,
        mappings=mappings,
        provider=provider,
        invites=invites,
        analytics=analytics,
        continuations=continuations,
        router=router,
        gate=gate,
        oracle=oracle,
        resolver=resolver,
        observer=observer,
        latch=latch,
        finalizer=finalizer,
        repair=repair,
        signup=signup,
        notifications=MagicMock(),
        session=None,
    )


@pytest.fixture
def api_client(client, engine):
    """
    Test client whose onboarding engine runs on in-memory stores.

    Set ``engine.session`` to act as a signed-in visitor.
    """
    app.dependency_overrides[dependencies.get_signup_service] = lambda: engine.signup
    app.dependency_overrides[dependencies.get_onboarding_finalizer] = lambda: engine.finalizer
    app.dependency_overrides[dependencies.get_session_observer] = lambda: engine.observer
    app.dependency_overrides[dependencies.get_terms_gate] = lambda: engine.gate
    app.dependency_overrides[dependencies.get_email_status_oracle] = lambda: engine.oracle
    app.dependency_overrides[dependencies.get_return_path_router] = lambda: engine.router
    app.dependency_overrides[dependencies.get_notification_service] = lambda: engine.notifications

    def current_session() -> AuthSession:
        if engine.session is None:
            raise HTTPException(status_code=401, detail="Not authenticated")
        return engine.session

    app.dependency_overrides[get_current_session] = current_session
    app.dependency_overrides[get_optional_session] = lambda: engine.session
    yield client
    app.dependency_overrides = {}
