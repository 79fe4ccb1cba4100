import abc
import logging

import httpx

from core.errors import ProviderError
from core.http_client import get_http_client
from core.logging_setup import log_step
from providers.schemas import Calendar, CalendarEvent, OAuthTokens

logger = logging.getLogger(__name__)

PRIMARY_CALENDAR_ID = "primary"
DEFAULT_MAX_RESULTS = 100


class CalendarProvider(abc.ABC):
    """
    Capability contract every calendar backend implements.

    Implementations normalize their API to the canonical `CalendarEvent` and
    `Calendar` shapes. Every failure talking to the backend is logged here and
    re-raised as a `ProviderError` with a fixed message.
    """

    name: str = ""
    log_step_name: str = "PROVIDER"

    def __init__(self, tokens: OAuthTokens, http_client: httpx.AsyncClient | None = None):
        self.tokens = tokens
        self._http_client = http_client
        self._headers = self._build_headers(tokens)

    @property
    def http_client(self) -> httpx.AsyncClient:
        return self._http_client or get_http_client()

    @staticmethod
    def _build_headers(tokens: OAuthTokens) -> dict:
        return {"Authorization": f"Bearer {tokens.access_token}"}

    def _set_tokens(self, tokens: OAuthTokens) -> None:
        self.tokens = tokens
        self._headers = self._build_headers(tokens)

    async def _request(self, method: str, url: str, **kwargs) -> httpx.Response:
        response = await self.http_client.request(
            method, url, headers=self._headers, **kwargs
        )
        response.raise_for_status()
        return response

    def _fail(self, message: str, error: Exception) -> ProviderError:
        with log_step(self.log_step_name):
            logger.error(f"{message}: {error}", exc_info=True)
        return ProviderError(message, provider=self.name)

    def get_provider_name(self) -> str:
        return self.name

    @abc.abstractmethod
    async def list_calendars(self) -> list[Calendar]:
        """List all calendars visible to the user."""

    @abc.abstractmethod
    async def get_events(
        self,
        calendar_id: str | None = None,
        time_min: str | None = None,
        time_max: str | None = None,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> list[CalendarEvent]:
        """Events ordered by start time, at most `max_results` of them."""

    @abc.abstractmethod
    async def create_event(
        self, event: CalendarEvent, calendar_id: str | None = None
    ) -> CalendarEvent:
        """Create an event and return it with its provider-assigned id."""

    @abc.abstractmethod
    async def update_event(
        self, event_id: str, event: CalendarEvent, calendar_id: str | None = None
    ) -> CalendarEvent:
        """Patch an event. Only fields that were supplied on `event` change."""

    @abc.abstractmethod
    async def delete_event(self, event_id: str, calendar_id: str | None = None) -> None:
        """Delete an event."""

    @abc.abstractmethod
    async def refresh_token_if_needed(self) -> OAuthTokens:
        """
        Refresh the access token when it is about to expire.

        Returns the (possibly new) token set. The caller owns persisting it.
        """
