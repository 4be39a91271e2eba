"""Shared services module for external integrations."""

from src.neighbors.services.courier import CourierService
from src.neighbors.services.notifications import NotificationService, SignupNotice
from src.neighbors.services.posthog import PostHogService

__all__ = [
    "PostHogService",
    "CourierService",
    "NotificationService",
    "SignupNotice",
]
