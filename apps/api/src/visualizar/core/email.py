"""
Email Service using Resend

Outbound email for the book publishing workflow. The client is built from
an explicit EmailConfig at startup and shared through `app.state`.
"""

import asyncio
import logging
from dataclasses import dataclass

import resend
from fastapi import Request

from visualizar.core.config import Settings

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class EmailConfig:
    """Configuration for the email client."""

    api_key: str | None
    sender: str
    frontend_url: str

    @classmethod
    def from_settings(cls, settings: Settings) -> "EmailConfig":
        return cls(
            api_key=settings.resend_api_key,
            sender=settings.email_from,
            frontend_url=settings.frontend_url,
        )


class EmailClient:
    """Thin async wrapper around the Resend SDK."""

    def __init__(self, config: EmailConfig):
        self.config = config

    @property
    def frontend_url(self) -> str:
        return self.config.frontend_url

    async def send(
        self,
        to: str | list[str],
        subject: str,
        html: str,
        text: str | None = None,
    ) -> bool:
        """
        Send an email using Resend.

        Args:
            to: Recipient address or addresses
            subject: Email subject line
            html: HTML content of the email
            text: Optional plain-text alternative

        Returns:
            True if email was sent successfully
        """
        recipients = [to] if isinstance(to, str) else list(to)
        if not recipients:
            logger.warning(f"No recipients for email '{subject}', skipping")
            return False

        if not self.config.api_key:
            logger.warning("RESEND_API_KEY not set - logging email instead of sending")
            logger.info(f"EMAIL TO: {', '.join(recipients)} | SUBJECT: {subject}")
            return True

        params: resend.Emails.SendParams = {
            "from": self.config.sender,
            "to": recipients,
            "subject": subject,
            "html": html,
        }
        if text:
            params["text"] = text

        try:
            resend.api_key = self.config.api_key
            # Run sync Resend call in thread pool to avoid blocking event loop
            email = await asyncio.to_thread(resend.Emails.send, params)
            logger.info(f"Email sent successfully to {', '.join(recipients)}, id: {email['id']}")
            return True
        except Exception as e:
            logger.error(f"Failed to send email to {', '.join(recipients)}: {e}")
            return False


def get_email_client(request: Request) -> EmailClient:
    """FastAPI dependency returning the application's email client."""
    return request.app.state.email_client
