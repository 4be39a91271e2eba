"""Fire-and-forget notifications about new residents (admin email + analytics)."""

import logging

from pydantic import BaseModel

from src.neighbors.config import settings
from src.neighbors.services.courier import CourierError, CourierService
from src.neighbors.services.posthog import PostHogService

logger = logging.getLogger(__name__)


class SignupNotice(BaseModel):
    """What the admins are told when a resident joins."""

    user_id: str
    email: str
    name: str
    address: str | None = None
    community: str | None = None
    signup_source: str | None = None
    via: str = "signup"


class NotificationService:
    """
    Side-channel notifications.

    Every method is safe to hand to FastAPI's BackgroundTasks: failures are
    logged and never raised, so a notification can't affect the outcome the
    visitor already received.
    """

    def __init__(
        self,
        courier: CourierService | None = None,
        analytics: PostHogService | None = None,
        admin_email: str | None = None,
    ) -> None:
        self._courier = courier
        self.analytics = analytics or PostHogService()
        self.admin_email = admin_email if admin_email is not None else settings.admin_notification_email

    @property
    def courier(self) -> CourierService:
        if self._courier is None:
            self._courier = CourierService()
        return self._courier

    def notify_new_signup(self, notice: SignupNotice) -> None:
        """Email the admins about a new resident and record the signup in analytics."""
        self.analytics.identify(
            distinct_id=notice.user_id,
            properties={"email": notice.email, "name": notice.name, "community": notice.community},
        )
        self.analytics.capture(
            distinct_id=notice.user_id,
            event="signup_completed",
            properties={
                "community": notice.community,
                "signup_source": notice.signup_source,
                "via": notice.via,
            },
        )

        if not self.admin_email or not settings.courier_api_key:
            logger.debug("Admin notification skipped: Courier not configured")
            return

        body = (
            f"{notice.name} ({notice.email}) joined"
            f" {notice.community or 'the directory'}.\n"
            f"Address: {notice.address or 'not provided'}\n"
            f"Signup source: {notice.signup_source or 'direct'}"
        )
        try:
            self.courier.send_email(
                self.admin_email,
                "New resident signup",
                body,
                data=notice.model_dump(),
            )
        except CourierError as e:
            logger.error(
                f"Admin notification failed for {notice.email}: {e}",
                extra={"user_id": notice.user_id, "error_type": "admin_notification_failed"},
            )
