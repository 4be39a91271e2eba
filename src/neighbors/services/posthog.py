"""PostHog analytics for onboarding events."""

import logging

import posthog

from src.neighbors.config import settings

logger = logging.getLogger(__name__)


class PostHogService:
    """Tracks onboarding events via PostHog. Every call is a no-op without an API key."""

    def __init__(self) -> None:
        if settings.posthog_api_key:
            posthog.api_key = settings.posthog_api_key
            posthog.host = settings.posthog_host

    @property
    def enabled(self) -> bool:
        return bool(settings.posthog_api_key)

    def capture(self, distinct_id: str, event: str, properties: dict | None = None) -> None:
        """
        Track an event.

        Args:
            distinct_id: User id (or "anonymous" before a session exists)
            event: Event name (e.g., "signup_completed", "onboarding_landed")
            properties: Optional event properties

        Example:
            >>> service = PostHogService()
            >>> service.capture(
            ...     "user-123",
            ...     "onboarding_landed",
            ...     {"community": "boca-bridges", "mismatch": False}
            ... )
        """
        if not self.enabled:
            return

        try:
            posthog.capture(distinct_id=distinct_id, event=event, properties=properties or {})
        except Exception as e:
            logger.warning(f"PostHog capture failed for {event}: {e}")

    def identify(self, distinct_id: str, properties: dict | None = None) -> None:
        """
        Attach person properties to a user.

        Example:
            >>> service = PostHogService()
            >>> service.identify("user-123", {"email": "user@example.com", "community": "the-oaks"})
        """
        if not self.enabled:
            return

        try:
            posthog.identify(distinct_id=distinct_id, properties=properties or {})
        except Exception as e:
            logger.warning(f"PostHog identify failed for {distinct_id}: {e}")

    def flush(self) -> None:
        """Send queued events before the process exits."""
        if not self.enabled:
            return

        try:
            posthog.flush()
        except Exception as e:
            logger.warning(f"PostHog flush failed: {e}")
