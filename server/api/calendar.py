import logging

from core.logging_setup import log_step
from fastapi import APIRouter, Depends, Query
from providers import CalendarProvider
from providers.base import DEFAULT_MAX_RESULTS
from providers.schemas import CalendarEvent, EventCreate
from services.calendar import get_calendar_provider

logger = logging.getLogger(__name__)


def create_calendar_router() -> APIRouter:
    """
    Creates the REST API router for the user's calendars.
    All routes go through the provider the user logged in with.
    """
    router = APIRouter(
        prefix="/api/calendar",
    )
    LOG_STEP = "API-CALENDAR"

    # NOTE: Requires User Auth
    @router.get("/list")
    async def list_calendars(provider: CalendarProvider = Depends(get_calendar_provider)):
        with log_step(LOG_STEP):
            calendars = await provider.list_calendars()
            logger.debug(f"Fetched {len(calendars)} calendars from {provider.get_provider_name()}.")
            return {"calendars": [calendar.to_json() for calendar in calendars]}

    # NOTE: Requires User Auth
    @router.get("/events")
    async def get_events(
        time_min: str | None = Query(None, alias="timeMin"),
        time_max: str | None = Query(None, alias="timeMax"),
        max_results: int = Query(DEFAULT_MAX_RESULTS, alias="maxResults", ge=1, le=2500),
        calendar_id: str | None = Query(None, alias="calendarId"),
        provider: CalendarProvider = Depends(get_calendar_provider),
    ):
        with log_step(LOG_STEP):
            events = await provider.get_events(
                calendar_id=calendar_id,
                time_min=time_min,
                time_max=time_max,
                max_results=max_results,
            )
            logger.debug(f"Fetched {len(events)} events from {provider.get_provider_name()}.")
            return {"events": [event.to_json() for event in events]}

    # NOTE: Requires User Auth
    @router.post("/events")
    async def create_event(
        event: EventCreate,
        calendar_id: str | None = Query(None, alias="calendarId"),
        provider: CalendarProvider = Depends(get_calendar_provider),
    ):
        with log_step(LOG_STEP):
            created = await provider.create_event(event, calendar_id=calendar_id)
            logger.info(f"Created event {created.id} on {provider.get_provider_name()}.")
            return {"event": created.to_json()}

    # NOTE: Requires User Auth
    @router.patch("/events/{event_id}")
    async def update_event(
        event_id: str,
        event: CalendarEvent,
        calendar_id: str | None = Query(None, alias="calendarId"),
        provider: CalendarProvider = Depends(get_calendar_provider),
    ):
        """
        Partial update: only the fields present in the request body are sent
        to the provider.
        """
        with log_step(LOG_STEP):
            updated = await provider.update_event(event_id, event, calendar_id=calendar_id)
            logger.info(f"Updated event {event_id} on {provider.get_provider_name()}.")
            return {"event": updated.to_json()}

    # NOTE: Requires User Auth
    @router.delete("/events/{event_id}")
    async def delete_event(
        event_id: str,
        calendar_id: str | None = Query(None, alias="calendarId"),
        provider: CalendarProvider = Depends(get_calendar_provider),
    ):
        with log_step(LOG_STEP):
            await provider.delete_event(event_id, calendar_id=calendar_id)
            logger.info(f"Deleted event {event_id} on {provider.get_provider_name()}.")
            return {"success": True}

    return router
