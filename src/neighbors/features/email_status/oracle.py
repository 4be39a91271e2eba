"""Email-status oracle."""

import logging

from src.neighbors.features.email_status.models import EmailStatus
from src.neighbors.features.profiles.store import ProfileStore
from src.neighbors.services.database import TransientStoreError

logger = logging.getLogger(__name__)

# get_email_status RPC results
_RPC_STATUSES = {
    "approved": EmailStatus.APPROVED,
    "pending": EmailStatus.PENDING_REVIEW,
    "pending-review": EmailStatus.PENDING_REVIEW,
    "not_found": EmailStatus.UNREGISTERED,
    "unregistered": EmailStatus.UNREGISTERED,
}


def normalize_email(email: str) -> str:
    return email.strip().lower()


class EmailStatusOracle:
    """Tells the signup form whether an email is new, waiting for review, or approved."""

    def __init__(self, profiles: ProfileStore) -> None:
        self.profiles = profiles

    def classify(self, email: str) -> EmailStatus:
        """
        Classify an email.

        Raises:
            TransientStoreError: If the profile store can't be reached
        """
        email = normalize_email(email)
        raw = self.profiles.classify_email(email)
        if raw in _RPC_STATUSES:
            return _RPC_STATUSES[raw]
        if raw:
            logger.warning(f"Unexpected get_email_status result '{raw}' for {email}")

        profile = self.profiles.get_profile_by_email(email)
        if profile is None:
            return EmailStatus.UNREGISTERED
        return EmailStatus.APPROVED if profile.is_verified else EmailStatus.PENDING_REVIEW

    def classify_or_none(self, email: str) -> EmailStatus | None:
        """Like classify, but a store failure yields None so signup can proceed to creation."""
        try:
            return self.classify(email)
        except TransientStoreError as e:
            logger.warning(
                f"Email status unavailable for {email}, continuing with signup: {e}",
                extra={"error_type": "email_status_unavailable"},
            )
            return None
