"""GSuite authentication for sending mail as a delegated mailbox.

The service account key is read once. Delegated credentials are cached per
mailbox and shared across threads; Gmail API service objects are not
thread-safe, so each worker thread used by asyncio.to_thread() gets its own.
"""

from __future__ import annotations

import threading
from typing import Any

import structlog
from google.oauth2 import service_account
from googleapiclient.discovery import build

logger = structlog.get_logger(__name__)

# Sending only; the reminder service never reads mail
GMAIL_SCOPES = [
    "https://www.googleapis.com/auth/gmail.send",
]


class GSuiteAuthManager:
    """Service account credentials with domain-wide delegation for Gmail.

    Args:
        service_account_file: Path to the service account JSON key.
        delegated_user_email: Mailbox impersonated when none is given.
    """

    def __init__(
        self,
        service_account_file: str,
        delegated_user_email: str,
    ) -> None:
        self._service_account_file = service_account_file
        self._delegated_user_email = delegated_user_email
        self._base_credentials: service_account.Credentials | None = None
        self._delegated: dict[str, service_account.Credentials] = {}
        self._lock = threading.Lock()
        self._local = threading.local()

    def get_credentials(self, user_email: str | None = None) -> service_account.Credentials:
        """Delegated credentials for a mailbox, created once per mailbox."""
        email = user_email or self._delegated_user_email
        with self._lock:
            if self._base_credentials is None:
                self._base_credentials = service_account.Credentials.from_service_account_file(
                    self._service_account_file,
                    scopes=GMAIL_SCOPES,
                )
            if email not in self._delegated:
                self._delegated[email] = self._base_credentials.with_subject(email)
            return self._delegated[email]

    def get_gmail_service(self, user_email: str | None = None) -> Any:
        """Gmail API v1 service for the mailbox, cached per calling thread.

        Args:
            user_email: Mailbox to impersonate. Defaults to the configured
                delegated_user_email.

        Returns:
            Gmail API Resource object.
        """
        email = user_email or self._delegated_user_email
        services: dict[str, Any] | None = getattr(self._local, "services", None)
        if services is None:
            services = self._local.services = {}

        if email not in services:
            logger.info(
                "building_gmail_service",
                user_email=email,
                thread=threading.current_thread().name,
            )
            services[email] = build(
                "gmail", "v1", credentials=self.get_credentials(email), cache_discovery=False
            )
        return services[email]
