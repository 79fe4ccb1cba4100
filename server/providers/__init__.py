from .base import CalendarProvider
from .factory import create_provider, is_provider_supported, list_supported_providers
from .google import GoogleCalendarProvider
from .outlook import OutlookCalendarProvider

__all__ = [
    "CalendarProvider",
    "GoogleCalendarProvider",
    "OutlookCalendarProvider",
    "create_provider",
    "is_provider_supported",
    "list_supported_providers",
]
