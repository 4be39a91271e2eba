"""Terms gate: blocks onboarding until the current terms are accepted."""

import logging
from datetime import UTC, datetime
from uuid import UUID

from src.neighbors.config import settings
from src.neighbors.features.profiles.models import UserProfile
from src.neighbors.features.profiles.store import ProfileStore

logger = logging.getLogger(__name__)


class ProfileNotFoundError(Exception):
    """Raised when consent is recorded for a subject without a profile."""

    pass


class TermsGate:
    def __init__(self, profiles: ProfileStore, terms_version: str | None = None) -> None:
        self.profiles = profiles
        self.terms_version = terms_version or settings.terms_version

    def needs_consent_for(self, profile: UserProfile) -> bool:
        return profile.terms_accepted_at is None

    def needs_consent(self, user_id: UUID | str) -> bool:
        """
        Check whether a resident still has to accept the terms.

        Raises:
            ProfileNotFoundError: If the resident has no profile
        """
        profile = self.profiles.get_profile_by_id(user_id)
        if profile is None:
            raise ProfileNotFoundError(f"No profile for {user_id}")
        return self.needs_consent_for(profile)

    def record_consent(self, user_id: UUID | str) -> UserProfile:
        """
        Record terms acceptance. Accepting again is a no-op.

        Returns:
            The resident's profile after consent

        Raises:
            ProfileNotFoundError: If the resident has no profile
            TransientStoreError: If the write fails
        """
        profile = self.profiles.get_profile_by_id(user_id)
        if profile is None:
            raise ProfileNotFoundError(f"No profile for {user_id}")
        if not self.needs_consent_for(profile):
            return profile

        updated = self.profiles.update_profile(
            user_id,
            {
                "terms_accepted_at": datetime.now(UTC).isoformat(),
                "terms_version": self.terms_version,
            },
        )
        logger.info(f"Terms accepted by {user_id}", extra={"terms_version": self.terms_version})
        return updated or profile
