"""Courier email delivery."""

import logging

from courier.client import Courier

from src.neighbors.config import settings

logger = logging.getLogger(__name__)


class CourierError(Exception):
    """Raised when Courier refuses or fails to deliver a message."""

    pass


class CourierService:
    """Sends transactional email through the Courier API."""

    def __init__(self, client: Courier | None = None) -> None:
        self.client = client or Courier(authorization_token=settings.courier_api_key)

    def send_email(
        self,
        email: str,
        subject: str,
        body: str,
        data: dict | None = None,
        template_id: str | None = None,
    ) -> None:
        """
        Send an email.

        Args:
            email: Recipient email address
            subject: Email subject
            body: Email body (plain text)
            data: Optional template variables
            template_id: Optional Courier template ID

        Raises:
            CourierError: If the message could not be sent

        Example:
            >>> service = CourierService()
            >>> service.send_email(
            ...     "admin@example.com",
            ...     "New resident signup",
            ...     "Jane Doe joined Boca Bridges"
            ... )
        """
        message = {
            "to": {"email": email},
            "content": {"title": subject, "body": body},
            "routing": {"method": "single", "channels": ["email"]},
            "data": data or {},
        }
        if template_id:
            message["template"] = template_id

        try:
            self.client.send_message(message=message)
        except Exception as e:
            raise CourierError(f"Failed to send email: {str(e)}") from e
        logger.info(f"Email sent to {email}", extra={"subject": subject})
