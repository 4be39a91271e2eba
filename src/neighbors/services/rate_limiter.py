"""Rate limiting service for API endpoints."""

import logging

from fastapi import Request
from slowapi import Limiter
from slowapi.util import get_remote_address

from src.neighbors.config import settings
from src.neighbors.services.auth.models import AuthSession

logger = logging.getLogger(__name__)


def get_subject_or_ip(request: Request) -> str:
    """
    Key rate limits on the authenticated subject, or the client IP.

    Signup and email-status lookups happen before any session exists, so
    they are limited per IP; everything behind get_current_session is
    limited per user.

    Args:
        request: FastAPI request object

    Returns:
        "user:<id>" or "ip:<address>"
    """
    session: AuthSession | None = getattr(request.state, "session", None)

    if session is not None:
        return f"user:{session.subject}"

    return f"ip:{get_remote_address(request)}"


limiter = Limiter(
    key_func=get_subject_or_ip,
    default_limits=[],
    storage_uri="memory://",
    enabled=settings.rate_limit_enabled,
)


class RateLimitTiers:
    """
    Rate limit tiers for different endpoint categories.
    """

    # Session-bound reads and callbacks
    DEFAULT = ["100 per minute", "1000 per hour"]

    # State-changing operations (consent, profile completion)
    WRITE = ["30 per minute", "200 per hour"]

    # Anonymous endpoints that send email or reveal account state
    PUBLIC = ["20 per minute", "100 per hour"]


# Note: These decorators require the endpoint to have a 'request: Request' parameter
default_rate_limit = limiter.limit(";".join(RateLimitTiers.DEFAULT))
write_rate_limit = limiter.limit(";".join(RateLimitTiers.WRITE))
public_rate_limit = limiter.limit(";".join(RateLimitTiers.PUBLIC))
