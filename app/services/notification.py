import logging
from typing import Optional

from app.adapters.ms365 import GraphClient, MS365AdapterError, mail
from app.schemas.employee import Employee

logger = logging.getLogger(__name__)

WELCOME_SUBJECT = "Welcome to Performance Review"


class NotificationService:
    """Outbound mail to employees. A service without client or sender is a no-op."""

    def __init__(self, client: Optional[GraphClient] = None, sender: Optional[str] = None):
        self.client = client
        self.sender = sender

    @property
    def enabled(self) -> bool:
        return self.client is not None and bool(self.sender)

    def send(self, to_email: str, subject: str, html_body: str) -> bool:
        """
        Returns True when Graph accepted the message. Failures are logged and
        reported as False; callers decide how to surface them.
        """
        if not self.enabled:
            logger.info(f"Mail disabled; not sending '{subject}' to {to_email}")
            return False
        try:
            mail.send_message(self.client, self.sender, to_email, subject, html_body)
        except MS365AdapterError as e:
            logger.warning(f"Sending '{subject}' to {to_email} failed: {e}")
            return False
        logger.info(f"Sent '{subject}' to {to_email}")
        return True

    def send_welcome(self, employee: Employee) -> bool:
        # Employee names are stored HTML-escaped
        body = (
            f"<p>Hello {employee.name},</p>"
            "<p>You have been added to the performance review system. "
            "Please sign in with your Microsoft account.</p>"
        )
        return self.send(employee.email, WELCOME_SUBJECT, body)
