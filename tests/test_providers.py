import json
import time

import httpx
import pytest

from core.errors import ProviderError
from providers.google import GOOGLE_TOKEN_URL, GoogleCalendarProvider
from providers.outlook import OutlookCalendarProvider
from providers.schemas import CalendarEvent, EventCreate, EventDateTime, OAuthTokens


def _google(transport, tokens):
    return GoogleCalendarProvider(
        tokens, client_id="cid", client_secret="secret", http_client=transport.client()
    )


class DummyMsalApp:
    def __init__(self, result):
        self.result = result
        self.calls = []

    def acquire_token_by_refresh_token(self, refresh_token, scopes):
        self.calls.append((refresh_token, scopes))
        return self.result


# Purpose: verify Google event listing sends the expected query and bearer token.
@pytest.mark.asyncio
async def test_google_get_events_query(recording_transport, fresh_tokens):
    def handler(request):
        return httpx.Response(
            200,
            json={
                "items": [
                    {
                        "id": "e1",
                        "summary": "Lunch",
                        "start": {"dateTime": "2024-05-01T12:00:00Z"},
                        "end": {"dateTime": "2024-05-01T13:00:00Z"},
                    }
                ]
            },
        )

    transport = recording_transport(handler)
    provider = _google(transport, fresh_tokens)

    events = await provider.get_events(time_min="2024-05-01T00:00:00Z", max_results=5)

    request = transport.requests[0]
    assert request.url.path == "/calendar/v3/calendars/primary/events"
    assert request.url.params["timeMin"] == "2024-05-01T00:00:00Z"
    assert request.url.params["maxResults"] == "5"
    assert request.url.params["singleEvents"] == "true"
    assert request.url.params["orderBy"] == "startTime"
    assert "timeMax" not in request.url.params
    assert request.headers["Authorization"] == "Bearer access-1"
    assert [e.id for e in events] == ["e1"]


# Purpose: verify Google defaults the lower time bound to now when none is given.
@pytest.mark.asyncio
async def test_google_get_events_defaults_time_min(recording_transport, fresh_tokens):
    transport = recording_transport(lambda request: httpx.Response(200, json={}))
    provider = _google(transport, fresh_tokens)

    events = await provider.get_events()

    assert events == []
    assert transport.requests[0].url.params["timeMin"].endswith("Z")


# Purpose: verify Google updates are PATCHes carrying only the supplied fields.
@pytest.mark.asyncio
async def test_google_update_event_sends_partial_patch(recording_transport, fresh_tokens):
    def handler(request):
        return httpx.Response(200, json={"id": "e1", "summary": "Renamed"})

    transport = recording_transport(handler)
    provider = _google(transport, fresh_tokens)

    updated = await provider.update_event(
        "e1", CalendarEvent.model_validate({"summary": "Renamed"}), calendar_id="team@group"
    )

    request = transport.requests[0]
    assert request.method == "PATCH"
    assert request.url.path == "/calendar/v3/calendars/team@group/events/e1"
    assert json.loads(request.content) == {"summary": "Renamed"}
    assert updated.summary == "Renamed"


# Purpose: verify Google HTTP failures surface as ProviderError with a fixed message.
@pytest.mark.asyncio
async def test_google_failure_becomes_provider_error(recording_transport, fresh_tokens):
    transport = recording_transport(
        lambda request: httpx.Response(403, json={"error": {"message": "Rate Limit Exceeded"}})
    )
    provider = _google(transport, fresh_tokens)

    with pytest.raises(ProviderError) as exc_info:
        await provider.list_calendars()

    assert exc_info.value.message == "Failed to fetch calendars"
    assert exc_info.value.provider == "google"
    assert "Rate Limit" not in str(exc_info.value)


# Purpose: verify delete failures keep their own fixed message.
@pytest.mark.asyncio
async def test_google_delete_failure_message(recording_transport, fresh_tokens):
    transport = recording_transport(lambda request: httpx.Response(404))
    provider = _google(transport, fresh_tokens)

    with pytest.raises(ProviderError, match="Failed to delete event"):
        await provider.delete_event("missing")


# Purpose: verify Google leaves tokens alone when expiry is outside the 60s window.
@pytest.mark.asyncio
async def test_google_refresh_not_needed(recording_transport):
    tokens = OAuthTokens(access_token="a", refresh_token="r", expires_at=int(time.time()) + 600)
    transport = recording_transport(lambda request: httpx.Response(500))
    provider = _google(transport, tokens)

    result = await provider.refresh_token_if_needed()

    assert result is tokens
    assert transport.requests == []


# Purpose: verify Google refreshes inside the window and rebinds its auth header.
@pytest.mark.asyncio
async def test_google_refresh_within_window(recording_transport):
    tokens = OAuthTokens(access_token="old", refresh_token="r", expires_at=int(time.time()) + 30)

    def handler(request):
        if str(request.url) == GOOGLE_TOKEN_URL:
            return httpx.Response(200, json={"access_token": "new", "expires_in": 3600})
        return httpx.Response(200, json={"items": []})

    transport = recording_transport(handler)
    provider = _google(transport, tokens)

    refreshed = await provider.refresh_token_if_needed()
    await provider.list_calendars()

    assert refreshed.access_token == "new"
    assert refreshed.refresh_token == "r"
    assert refreshed.expires_at > time.time() + 3000
    assert b"grant_type=refresh_token" in transport.requests[0].content
    assert transport.requests[1].headers["Authorization"] == "Bearer new"


# Purpose: verify Outlook event creation posts a translated Graph payload.
@pytest.mark.asyncio
async def test_outlook_create_event(recording_transport, fresh_tokens):
    def handler(request):
        body = json.loads(request.content)
        return httpx.Response(
            201,
            json={"id": "AAMk-new", **body, "webLink": "https://outlook.example/AAMk-new"},
        )

    transport = recording_transport(handler)
    provider = OutlookCalendarProvider(fresh_tokens, http_client=transport.client())

    created = await provider.create_event(
        EventCreate(
            summary="Planning",
            start=EventDateTime(date_time="2024-05-02T09:00:00", time_zone="UTC"),
            end=EventDateTime(date_time="2024-05-02T10:00:00", time_zone="UTC"),
        )
    )

    request = transport.requests[0]
    assert request.method == "POST"
    assert request.url.path == "/v1.0/me/calendar/events"
    assert json.loads(request.content)["subject"] == "Planning"
    assert created.id == "AAMk-new"
    assert created.summary == "Planning"
    assert created.html_link == "https://outlook.example/AAMk-new"


# Purpose: verify an all-day switch with only one end is refused before reaching Graph.
@pytest.mark.asyncio
async def test_outlook_update_refuses_half_all_day_switch(recording_transport, fresh_tokens):
    transport = recording_transport(lambda request: httpx.Response(200, json={}))
    provider = OutlookCalendarProvider(fresh_tokens, http_client=transport.client())

    with pytest.raises(ProviderError, match="Failed to update event"):
        await provider.update_event(
            "AAMk-1", CalendarEvent(start=EventDateTime(date="2024-12-25"))
        )

    assert transport.requests == []


# Purpose: verify Outlook listing targets a named calendar and builds the time filter.
@pytest.mark.asyncio
async def test_outlook_get_events_filter(recording_transport, fresh_tokens):
    transport = recording_transport(lambda request: httpx.Response(200, json={"value": []}))
    provider = OutlookCalendarProvider(fresh_tokens, http_client=transport.client())

    await provider.get_events(
        calendar_id="cal-2",
        time_min="2024-05-01T00:00:00Z",
        time_max="2024-06-01T00:00:00Z",
        max_results=10,
    )

    request = transport.requests[0]
    assert request.url.path == "/v1.0/me/calendars/cal-2/events"
    assert request.url.params["$top"] == "10"
    assert request.url.params["$orderby"] == "start/dateTime"
    assert request.url.params["$filter"] == (
        "start/dateTime ge '2024-05-01T00:00:00Z' and start/dateTime lt '2024-06-01T00:00:00Z'"
    )


# Purpose: verify Outlook calendars come back with mapped colour and access role.
@pytest.mark.asyncio
async def test_outlook_list_calendars(recording_transport, fresh_tokens):
    def handler(request):
        return httpx.Response(
            200,
            json={
                "value": [
                    {"id": "c1", "name": "Calendar", "color": "auto", "canEdit": True, "isDefaultCalendar": True}
                ]
            },
        )

    transport = recording_transport(handler)
    provider = OutlookCalendarProvider(fresh_tokens, http_client=transport.client())

    calendars = await provider.list_calendars()

    assert calendars[0].background_color == "#039BE5"
    assert calendars[0].access_role == "owner"
    assert calendars[0].primary is True


# Purpose: verify Outlook uses its 300s refresh window via MSAL.
@pytest.mark.asyncio
async def test_outlook_refresh_within_window(recording_transport):
    tokens = OAuthTokens(access_token="old", refresh_token="r", expires_at=int(time.time()) + 200)
    msal_app = DummyMsalApp({"access_token": "new", "refresh_token": "r2", "expires_in": 3600})
    transport = recording_transport(lambda request: httpx.Response(200, json={"value": []}))
    provider = OutlookCalendarProvider(tokens, msal_app=msal_app, http_client=transport.client())

    refreshed = await provider.refresh_token_if_needed()
    await provider.list_calendars()

    assert msal_app.calls == [("r", ["Calendars.ReadWrite", "User.Read"])]
    assert refreshed.access_token == "new"
    assert refreshed.refresh_token == "r2"
    assert transport.requests[0].headers["Authorization"] == "Bearer new"


# Purpose: verify Outlook does not refresh when the token is good for longer than 300s.
@pytest.mark.asyncio
async def test_outlook_refresh_not_needed():
    tokens = OAuthTokens(access_token="a", refresh_token="r", expires_at=int(time.time()) + 900)
    msal_app = DummyMsalApp({})
    provider = OutlookCalendarProvider(tokens, msal_app=msal_app)

    assert await provider.refresh_token_if_needed() is tokens
    assert msal_app.calls == []


# Purpose: verify an MSAL error result is reported as a refresh ProviderError.
@pytest.mark.asyncio
async def test_outlook_refresh_error(recording_transport):
    tokens = OAuthTokens(access_token="a", refresh_token="r", expires_at=int(time.time()) - 10)
    msal_app = DummyMsalApp({"error": "invalid_grant", "error_description": "expired"})
    provider = OutlookCalendarProvider(tokens, msal_app=msal_app)

    with pytest.raises(ProviderError) as exc_info:
        await provider.refresh_token_if_needed()

    assert exc_info.value.message == "Failed to refresh token"
    assert exc_info.value.provider == "outlook"
