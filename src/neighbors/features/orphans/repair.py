"""Orphan-aware account creation."""

import logging
from uuid import UUID

from src.neighbors.config import settings
from src.neighbors.features.orphans.models import (
    ALREADY_REGISTERED_MESSAGE,
    MANUAL_CONTACT_MESSAGE,
    RECOVERED_MESSAGE,
    RepairResult,
    RepairStatus,
    SignupCandidate,
)
from src.neighbors.features.profiles.store import ProfileStore
from src.neighbors.services.auth.exceptions import ProviderError
from src.neighbors.services.auth.provider import AuthProviderClient, OrphanedIdentity
from src.neighbors.services.database import StoreError, UniqueConflictError
from src.neighbors.services.retry import Resolved, retry_after_repair

logger = logging.getLogger(__name__)


class OrphanRepairService:
    """
    Creates accounts, recovering from identities left behind by abandoned attempts.

    An orphan is a provider identity with no profile row, typically from an
    OAuth signup that was never completed. Creation is tried first; on an
    email conflict with no profile the orphan is either deleted and creation
    retried once (recent OAuth orphans) or given its missing profile in place
    (everything else).
    """

    def __init__(
        self,
        provider: AuthProviderClient,
        profiles: ProfileStore,
        fast_path_max_age_minutes: int | None = None,
        backoff_seconds: float | None = None,
        redirect_to: str | None = None,
    ) -> None:
        self.provider = provider
        self.profiles = profiles
        self.fast_path_max_age_minutes = (
            fast_path_max_age_minutes
            if fast_path_max_age_minutes is not None
            else settings.orphan_fast_path_max_age_minutes
        )
        self.backoff_seconds = (
            backoff_seconds if backoff_seconds is not None else settings.repair_retry_backoff_seconds
        )
        self.redirect_to = redirect_to or f"{settings.site_url}/auth"

    async def detect_and_repair(self, email: str, candidate: SignupCandidate) -> RepairResult:
        """
        Create the account for ``email``, repairing an orphan if one is in the way.

        Args:
            email: Normalized email address
            candidate: Profile data submitted by the visitor

        Returns:
            RepairResult (created, repaired, not-orphan or needs-manual-contact)

        Raises:
            ProviderError: If the provider rejects the first creation attempt
            TransientStoreError: If a store call fails before any repair began
            DuplicateSubmissionError: If a submission for this email is already running
        """
        fast_path_used = False

        async def create() -> RepairResult:
            account = self.provider.sign_up(email, candidate.provider_metadata(), self.redirect_to)
            try:
                self.profiles.create_profile(candidate.to_profile(account.user_id, email))
            except StoreError:
                # Don't leave a fresh identity without its profile
                self.provider.delete_identity(account.user_id)
                raise
            return RepairResult(
                status=RepairStatus.REPAIRED if fast_path_used else RepairStatus.CREATED,
                user_id=account.user_id,
                session=account.session,
                fast_path=fast_path_used,
            )

        async def repair(error: BaseException) -> bool | Resolved[RepairResult]:
            nonlocal fast_path_used
            if self.profiles.get_profile_by_email(email) is not None:
                logger.info(f"Signup for registered email {email}, sending to sign-in")
                return Resolved(
                    RepairResult(status=RepairStatus.NOT_ORPHAN, message=ALREADY_REGISTERED_MESSAGE)
                )

            orphan = self.provider.find_orphaned_identity(email)
            logger.warning(
                f"Orphaned identity detected for {email}",
                extra={
                    "orphan_user_id": str(orphan.user_id) if orphan else None,
                    "provider": orphan.provider.value if orphan else None,
                },
            )
            if orphan is not None and self.is_fast_path_eligible(orphan):
                if self.provider.delete_identity(orphan.user_id):
                    fast_path_used = True
                    return True
                logger.warning(f"Fast-path deletion failed for {email}, fixing in place")

            return Resolved(self._fix_in_place(email, candidate, orphan))

        try:
            return await retry_after_repair(
                create,
                repair,
                idempotency_key=email,
                retry_on=(UniqueConflictError,),
                backoff_seconds=self.backoff_seconds,
            )
        except (UniqueConflictError, ProviderError) as e:
            if not fast_path_used:
                raise
            logger.error(
                f"Retried creation failed after orphan deletion for {email}: {e}",
                extra={"error_type": "orphan_unrepairable"},
            )
            return RepairResult(status=RepairStatus.NEEDS_MANUAL_CONTACT, message=MANUAL_CONTACT_MESSAGE)

    def is_fast_path_eligible(self, orphan: OrphanedIdentity) -> bool:
        """Recent OAuth orphans are safe to delete outright."""
        if not orphan.provider.is_oauth:
            return False
        age = orphan.age_minutes()
        return age is not None and age <= self.fast_path_max_age_minutes

    def _fix_in_place(
        self, email: str, candidate: SignupCandidate, orphan: OrphanedIdentity | None
    ) -> RepairResult:
        try:
            fixed = self.profiles.fix_orphaned_profile(email, candidate.name, candidate.address)
            if fixed is None or not fixed.created_record:
                logger.error(
                    f"Fix-in-place did not create a profile for {email}",
                    extra={"error_message": fixed.error_message if fixed else None},
                )
                return RepairResult(
                    status=RepairStatus.NEEDS_MANUAL_CONTACT, message=MANUAL_CONTACT_MESSAGE
                )

            user_id = UUID(str(fixed.user_id)) if fixed.user_id else (orphan.user_id if orphan else None)
            if user_id is not None:
                self.profiles.update_profile(
                    user_id,
                    {
                        "signup_source": candidate.signup_source.to_tag(),
                        "street_name": candidate.street_name,
                    },
                )
            self.provider.send_magic_link(email, self.redirect_to)
        except (StoreError, ProviderError) as e:
            logger.error(
                f"Fix-in-place failed for {email}: {e}",
                extra={"error_type": "orphan_unrepairable"},
            )
            return RepairResult(status=RepairStatus.NEEDS_MANUAL_CONTACT, message=MANUAL_CONTACT_MESSAGE)

        logger.info(f"Orphaned account repaired in place for {email}", extra={"user_id": str(user_id)})
        return RepairResult(status=RepairStatus.REPAIRED, user_id=user_id, message=RECOVERED_MESSAGE)
