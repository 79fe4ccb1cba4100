import httpx

from core.errors import UnsupportedProviderError
from providers.base import CalendarProvider
from providers.google import GoogleCalendarProvider
from providers.outlook import OutlookCalendarProvider
from providers.schemas import OAuthTokens

SUPPORTED_PROVIDERS = ("google", "outlook")


def list_supported_providers() -> list[str]:
    return list(SUPPORTED_PROVIDERS)


def is_provider_supported(provider_tag: str | None) -> bool:
    return bool(provider_tag) and provider_tag.lower() in SUPPORTED_PROVIDERS


def create_provider(
    provider_tag: str,
    tokens: OAuthTokens | dict,
    config: dict | None = None,
) -> CalendarProvider:
    """
    Builds the provider variant for a stored provider tag. No I/O happens here.

    `config` keys:
      google:  client_id, client_secret, http_client
      outlook: client_id, client_secret, tenant, msal_app, http_client
    """
    config = config or {}
    if isinstance(tokens, dict):
        tokens = OAuthTokens.model_validate(tokens)

    tag = (provider_tag or "").lower()
    http_client: httpx.AsyncClient | None = config.get("http_client")

    if tag == "google":
        return GoogleCalendarProvider(
            tokens,
            client_id=config.get("client_id", ""),
            client_secret=config.get("client_secret", ""),
            http_client=http_client,
        )

    if tag == "outlook":
        return OutlookCalendarProvider(
            tokens,
            client_id=config.get("client_id", ""),
            client_secret=config.get("client_secret", ""),
            tenant=config.get("tenant", "common"),
            msal_app=config.get("msal_app"),
            http_client=http_client,
        )

    raise UnsupportedProviderError(provider_tag)
