from .base import CalendarService, Credentials, MailService, OutgoingEmail
from .catalog import build_default_registry
from .google_calendar import CalendarClient
from .google_gmail import GmailClient
from .registry import IntegrationFunction, IntegrationRegistry

__all__ = [
    "CalendarClient",
    "CalendarService",
    "Credentials",
    "GmailClient",
    "IntegrationFunction",
    "IntegrationRegistry",
    "MailService",
    "OutgoingEmail",
    "build_default_registry",
]
