"""Notification senders used by the reminder engine and meeting service.

A sender takes a recipient list, a subject and a plain-text body, and
reports success as a bool. Transport errors are caught and logged here so
callers never see them.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Protocol

import structlog

from src.app.config import Settings
from src.app.services.gsuite.auth import GSuiteAuthManager
from src.app.services.gsuite.gmail import GmailService
from src.app.services.gsuite.models import EmailMessage

logger = structlog.get_logger(__name__)


class NotificationSender(Protocol):
    """Fire-and-forget delivery to a list of recipients."""

    async def send(self, recipients: Sequence[str], subject: str, body: str) -> bool: ...


class GmailNotificationSender:
    """Deliver notifications as a single e-mail through the Gmail API.

    Args:
        gmail_service: GmailService bound to the delegated sender mailbox.
        sender_email: Mailbox to send as. Defaults to the service default.
    """

    def __init__(self, gmail_service: GmailService, sender_email: str | None = None) -> None:
        self._gmail = gmail_service
        self._sender_email = sender_email

    async def send(self, recipients: Sequence[str], subject: str, body: str) -> bool:
        if not recipients:
            logger.warning("notification_skipped_no_recipients", subject=subject)
            return False

        try:
            result = await self._gmail.send_email(
                EmailMessage(to=list(recipients), subject=subject, body_text=body),
                user_email=self._sender_email,
            )
        except Exception as exc:
            logger.error(
                "notification_send_failed",
                subject=subject,
                recipient_count=len(recipients),
                error=str(exc),
            )
            return False

        logger.info(
            "notification_sent",
            subject=subject,
            recipient_count=len(recipients),
            message_id=result.message_id,
        )
        return True


class LoggingNotificationSender:
    """Sender used when no mail transport is configured: logs and succeeds."""

    async def send(self, recipients: Sequence[str], subject: str, body: str) -> bool:
        logger.info(
            "notification_logged",
            subject=subject,
            recipients=list(recipients),
            body_length=len(body),
        )
        return True


def build_notification_sender(settings: Settings) -> NotificationSender:
    """Pick the Gmail sender when a service account is configured."""
    service_account_path = settings.get_service_account_path()
    if not service_account_path or not settings.sender_email:
        logger.warning(
            "gmail_sender_unavailable",
            reason="service account or sender mailbox not configured",
        )
        return LoggingNotificationSender()

    auth_manager = GSuiteAuthManager(
        service_account_file=service_account_path,
        delegated_user_email=settings.GOOGLE_DELEGATED_USER_EMAIL or settings.sender_email,
    )
    gmail = GmailService(auth_manager=auth_manager, default_user_email=settings.sender_email)
    return GmailNotificationSender(gmail, sender_email=settings.sender_email)
