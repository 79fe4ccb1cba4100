import asyncio
import logging
import time
from urllib.parse import quote

import httpx
import msal

from core.logging_setup import log_step
from providers.base import DEFAULT_MAX_RESULTS, PRIMARY_CALENDAR_ID, CalendarProvider
from providers.schemas import Calendar, CalendarEvent, OAuthTokens
from providers.translator import (
    canonical_to_outlook_event,
    outlook_calendar_to_canonical,
    outlook_event_to_canonical,
)

logger = logging.getLogger(__name__)

LOG_STEP = "PROV-OUTLOOK"

GRAPH_API_BASE_URL = "https://graph.microsoft.com/v1.0"
SCOPE = ["Calendars.ReadWrite", "User.Read"]

REFRESH_LEAD_SECONDS = 300

CALENDAR_FIELDS = "id,name,color,canEdit,owner,isDefaultCalendar"
EVENT_FIELDS = "id,subject,body,start,end,location,attendees,isAllDay,webLink"


def build_msal_app(
    client_id: str, client_secret: str, tenant: str = "common"
) -> msal.ConfidentialClientApplication:
    authority = f"https://login.microsoftonline.com/{tenant}"
    return msal.ConfidentialClientApplication(
        client_id,
        authority=authority,
        client_credential=client_secret,
    )


def _events_url(calendar_id: str | None) -> str:
    if calendar_id and calendar_id != PRIMARY_CALENDAR_ID:
        return f"{GRAPH_API_BASE_URL}/me/calendars/{quote(calendar_id, safe='')}/events"
    return f"{GRAPH_API_BASE_URL}/me/calendar/events"


def _event_url(event_id: str) -> str:
    return f"{GRAPH_API_BASE_URL}/me/events/{quote(event_id, safe='')}"


class OutlookCalendarProvider(CalendarProvider):
    """
    Outlook calendars through Microsoft Graph.

    Graph events are translated to and from the canonical shape. Updates and
    deletes address events directly under /me/events, so `calendar_id` is only
    used for listing and creating.
    """

    name = "outlook"
    log_step_name = LOG_STEP

    def __init__(
        self,
        tokens: OAuthTokens,
        client_id: str = "",
        client_secret: str = "",
        tenant: str = "common",
        msal_app: msal.ConfidentialClientApplication | None = None,
        http_client: httpx.AsyncClient | None = None,
    ):
        super().__init__(tokens, http_client=http_client)
        self.client_id = client_id
        self.client_secret = client_secret
        self.tenant = tenant
        self._msal_app = msal_app

    @property
    def msal_app(self) -> msal.ConfidentialClientApplication:
        # Built lazily: constructing the MSAL app performs authority discovery.
        if self._msal_app is None:
            self._msal_app = build_msal_app(self.client_id, self.client_secret, self.tenant)
        return self._msal_app

    async def list_calendars(self) -> list[Calendar]:
        try:
            response = await self._request(
                "GET",
                f"{GRAPH_API_BASE_URL}/me/calendars",
                params={"$select": CALENDAR_FIELDS},
            )
            items = response.json().get("value") or []
            return [outlook_calendar_to_canonical(item) for item in items]
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
            "$select": EVENT_FIELDS,
            "$orderby": "start/dateTime",
            "$top": int(max_results),
        }
        filters = []
        if time_min:
            filters.append(f"start/dateTime ge '{time_min}'")
        if time_max:
            filters.append(f"start/dateTime lt '{time_max}'")
        if filters:
            params["$filter"] = " and ".join(filters)

        try:
            response = await self._request("GET", _events_url(calendar_id), params=params)
            items = response.json().get("value") or []
            return [outlook_event_to_canonical(item) for item in items]
        except Exception as e:
            raise self._fail("Failed to fetch events", e)

    async def create_event(
        self, event: CalendarEvent, calendar_id: str | None = None
    ) -> CalendarEvent:
        try:
            response = await self._request(
                "POST", _events_url(calendar_id), json=canonical_to_outlook_event(event)
            )
            return outlook_event_to_canonical(response.json())
        except Exception as e:
            raise self._fail("Failed to create event", e)

    async def update_event(
        self, event_id: str, event: CalendarEvent, calendar_id: str | None = None
    ) -> CalendarEvent:
        try:
            response = await self._request(
                "PATCH", _event_url(event_id), json=canonical_to_outlook_event(event)
            )
            return outlook_event_to_canonical(response.json())
        except Exception as e:
            raise self._fail("Failed to update event", e)

    async def delete_event(self, event_id: str, calendar_id: str | None = None) -> None:
        try:
            await self._request("DELETE", _event_url(event_id))
        except Exception as e:
            raise self._fail("Failed to delete event", e)

    async def refresh_token_if_needed(self) -> OAuthTokens:
        if not self.tokens.expires_within(REFRESH_LEAD_SECONDS):
            return self.tokens

        try:
            if not self.tokens.refresh_token:
                raise ValueError("No refresh token available")

            result = await asyncio.to_thread(
                self.msal_app.acquire_token_by_refresh_token,
                self.tokens.refresh_token,
                scopes=SCOPE,
            )
            if "error" in result:
                raise RuntimeError(
                    f"MSAL error: {result.get('error')}: {result.get('error_description')}"
                )

            refreshed = OAuthTokens(
                access_token=result["access_token"],
                refresh_token=result.get("refresh_token") or self.tokens.refresh_token,
                expires_at=int(time.time()) + int(result.get("expires_in", 3600)),
            )
        except Exception as e:
            raise self._fail("Failed to refresh token", e)

        self._set_tokens(refreshed)
        with log_step(LOG_STEP):
            logger.info("Refreshed Microsoft access token.")
        return refreshed
