"""Profile store: the users table and the account RPCs around it."""

import logging
from datetime import UTC, datetime
from typing import Any
from uuid import UUID

from src.neighbors.features.profiles.models import ProfileCreate, UserProfile
from src.neighbors.services.database import SupabaseQueryBuilder, get_query_builder

logger = logging.getLogger(__name__)

PROFILES_TABLE = "users"
POINT_HISTORY_TABLE = "user_point_history"


class OrphanFixResult(dict):
    """Row returned by fix_specific_orphaned_user."""

    @property
    def created_record(self) -> bool:
        return bool(self.get("created_record"))

    @property
    def user_id(self) -> str | None:
        return self.get("user_id")

    @property
    def error_message(self) -> str | None:
        return self.get("error_message")


class ProfileStore:
    """Reads and writes resident profiles through the service-role client."""

    def __init__(self, db: SupabaseQueryBuilder | None = None) -> None:
        self.db = db or get_query_builder()

    def get_profile_by_email(self, email: str) -> UserProfile | None:
        row = self.db.get_by_field(PROFILES_TABLE, "email", email.strip().lower())
        return UserProfile.model_validate(row) if row else None

    def get_profile_by_id(self, user_id: UUID | str) -> UserProfile | None:
        row = self.db.get_by_id(PROFILES_TABLE, user_id)
        return UserProfile.model_validate(row) if row else None

    def create_profile(self, profile: ProfileCreate) -> UserProfile:
        """
        Create the profile for a provider subject.

        Upserts on id so a retried creation for the same subject is harmless.
        A different subject with the same email still violates the email
        unique constraint.

        Raises:
            UniqueConflictError: If another profile already owns the email
            TransientStoreError: If the write fails
        """
        row = self.db.upsert_record(PROFILES_TABLE, profile.to_record(), conflict_columns=["id"])
        logger.info(
            f"Profile created for {profile.email}",
            extra={"user_id": str(profile.id), "signup_source": profile.signup_source.to_tag()},
        )
        return UserProfile.model_validate(row or profile.to_record())

    def update_profile(self, user_id: UUID | str, patch: dict[str, Any]) -> UserProfile | None:
        row = self.db.update_record(PROFILES_TABLE, user_id, patch)
        return UserProfile.model_validate(row) if row else None

    def classify_email(self, email: str) -> str | None:
        """Raw account status for an email ('approved', 'pending', ...) from get_email_status."""
        result = self.db.rpc("get_email_status", {"_email": email})
        if isinstance(result, list):
            result = result[0] if result else None
        return str(result) if result else None

    def fix_orphaned_profile(
        self, email: str, name: str | None = None, address: str | None = None
    ) -> OrphanFixResult | None:
        """
        Create the missing profile row for an existing provider identity in place.

        Returns:
            The RPC's result row, or None if it returned nothing
        """
        rows = self.db.rpc(
            "fix_specific_orphaned_user", {"_email": email, "_name": name, "_address": address}
        )
        if not rows:
            return None
        return OrphanFixResult(rows[0] if isinstance(rows, list) else rows)

    def record_join_points(self, user_id: UUID | str, points: int) -> None:
        """Write the point-history row for the signup bonus."""
        self.db.insert_record(
            POINT_HISTORY_TABLE,
            {
                "user_id": str(user_id),
                "activity_type": "join_site",
                "points_earned": points,
                "description": "Joined the neighborhood directory",
                "created_at": datetime.now(UTC).isoformat(),
            },
        )
