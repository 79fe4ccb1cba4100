import logging
import time
from urllib.parse import quote

import httpx

from core.logging_setup import log_step
from providers.base import DEFAULT_MAX_RESULTS, PRIMARY_CALENDAR_ID, CalendarProvider
from providers.schemas import Calendar, CalendarEvent, OAuthTokens
from providers.translator import (
    canonical_to_google_event,
    google_calendar_to_canonical,
    google_event_to_canonical,
)

logger = logging.getLogger(__name__)

LOG_STEP = "PROV-GOOGLE"

GOOGLE_TOKEN_URL = "https://oauth2.googleapis.com/token"
GOOGLE_CALENDAR_API_BASE_URL = "https://www.googleapis.com/calendar/v3"

REFRESH_LEAD_SECONDS = 60


def _events_url(calendar_id: str | None, event_id: str | None = None) -> str:
    calendar = quote(calendar_id or PRIMARY_CALENDAR_ID, safe="")
    url = f"{GOOGLE_CALENDAR_API_BASE_URL}/calendars/{calendar}/events"
    if event_id:
        url += f"/{quote(event_id, safe='')}"
    return url


class GoogleCalendarProvider(CalendarProvider):
    """
    Google Calendar v3 over the REST API.

    Google's event representation is already the canonical one.
    """

    name = "google"
    log_step_name = LOG_STEP

    def __init__(
        self,
        tokens: OAuthTokens,
        client_id: str,
        client_secret: str,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(tokens, http_client=http_client)
        self.client_id = client_id
        self.client_secret = client_secret

    async def list_calendars(self) -> list[Calendar]:
        try:
            response = await self._request(
                "GET", f"{GOOGLE_CALENDAR_API_BASE_URL}/users/me/calendarList"
            )
            items = response.json().get("items") or []
            return [google_calendar_to_canonical(item) for item in items]
        except Exception as e:
            raise self._fail("Failed to fetch calendars", e)

    async def get_events(
        self,
        calendar_id: str | None = None,
        time_min: str | None = None,
        time_max: str | None = None,
        max_results: int = DEFAULT_MAX_RESULTS,
    ) -> list[CalendarEvent]:
        params = {
            "timeMin": time_min
            or time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime()),
            "maxResults": int(max_results),
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        if time_max:
            params["timeMax"] = time_max

        try:
            response = await self._request("GET", _events_url(calendar_id), params=params)
            items = response.json().get("items") or []
            return [google_event_to_canonical(item) for item in items]
        except Exception as e:
            raise self._fail("Failed to fetch events", e)

    async def create_event(
        self, event: CalendarEvent, calendar_id: str | None = None
    ) -> CalendarEvent:
        try:
            response = await self._request(
                "POST", _events_url(calendar_id), json=canonical_to_google_event(event)
            )
            return google_event_to_canonical(response.json())
        except Exception as e:
            raise self._fail("Failed to create event", e)

    async def update_event(
        self, event_id: str, event: CalendarEvent, calendar_id: str | None = None
    ) -> CalendarEvent:
        try:
            response = await self._request(
                "PATCH",
                _events_url(calendar_id, event_id),
                json=canonical_to_google_event(event),
            )
            return google_event_to_canonical(response.json())
        except Exception as e:
            raise self._fail("Failed to update event", e)

    async def delete_event(self, event_id: str, calendar_id: str | None = None) -> None:
        try:
            await self._request("DELETE", _events_url(calendar_id, event_id))
        except Exception as e:
            raise self._fail("Failed to delete event", e)

    async def refresh_token_if_needed(self) -> OAuthTokens:
        if not self.tokens.expires_within(REFRESH_LEAD_SECONDS):
            return self.tokens

        try:
            if not self.tokens.refresh_token:
                raise ValueError("No refresh token available")

            data = {
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "refresh_token": self.tokens.refresh_token,
                "grant_type": "refresh_token",
            }
            response = await self.http_client.post(GOOGLE_TOKEN_URL, data=data)
            response.raise_for_status()
            token_data = response.json()

            refreshed = OAuthTokens(
                access_token=token_data["access_token"],
                refresh_token=token_data.get("refresh_token", self.tokens.refresh_token),
                expires_at=int(time.time()) + token_data.get("expires_in", 3600),
            )
        except Exception as e:
            raise self._fail("Failed to refresh token", e)

        self._set_tokens(refreshed)
        with log_step(LOG_STEP):
            logger.info("Refreshed Google access token.")
        return refreshed
