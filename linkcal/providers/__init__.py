"""Calendar Providers — Platform-specific implementations

This package contains provider adapters for the supported calendar platforms:
- google.py: Google Calendar (Calendar v3 API)
- microsoft.py: Outlook Calendar (via Graph API)

All providers implement the CalendarProvider abstract base class from base.py.
"""

from linkcal.config import LinkcalConfig
from linkcal.models import Provider
from linkcal.providers.base import CalendarProvider
from linkcal.providers.google import GoogleCalendarProvider
from linkcal.providers.microsoft import MicrosoftCalendarProvider


PROVIDERS: dict[Provider, type[CalendarProvider]] = {
    Provider.GOOGLE: GoogleCalendarProvider,
    Provider.MICROSOFT: MicrosoftCalendarProvider,
}


def get_provider(
    provider: Provider | str,
    account_id: str,
    access_token: str,
    config: LinkcalConfig | None = None,
) -> CalendarProvider:
    """
    Get the provider adapter for an account.

    Args:
        provider: Provider tag or name ("azure-ad" maps to Microsoft)
        account_id: Linked account ID
        access_token: OAuth access token
        config: Optional configuration

    Returns:
        Provider instance

    Raises:
        UnsupportedProviderError: for unknown provider names
    """
    provider_class = PROVIDERS[Provider.from_string(provider)]
    return provider_class(account_id, access_token, config)


__all__ = [
    "CalendarProvider",
    "GoogleCalendarProvider",
    "MicrosoftCalendarProvider",
    "PROVIDERS",
    "get_provider",
]
