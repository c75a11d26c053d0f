"""GSuite integration for reminder and invitation delivery over Gmail.

Provides an async-wrapped Gmail service using Google service account
authentication with domain-wide delegation.
"""

from src.app.services.gsuite.auth import GSuiteAuthManager
from src.app.services.gsuite.gmail import GmailService
from src.app.services.gsuite.models import EmailMessage, SentEmailResult

__all__ = [
    "EmailMessage",
    "GmailService",
    "GSuiteAuthManager",
    "SentEmailResult",
]
