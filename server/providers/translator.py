"""
Pure mapping functions between provider-native payloads and the canonical shapes.

Google's native event already matches the canonical shape, so its mapping is a
pass-through that drops unknown keys. Microsoft Graph needs a real translation.
"""

from providers.schemas import Attendee, Calendar, CalendarEvent, EventDateTime

DEFAULT_CALENDAR_COLOR = "#039BE5"
DEFAULT_TIME_ZONE = "UTC"

OUTLOOK_COLOR_MAP = {
    "lightBlue": "#4A8CF7",
    "lightGreen": "#0B8043",
    "lightOrange": "#F6BF26",
    "lightGray": "#A8A8A8",
    "lightYellow": "#FFD800",
    "lightTeal": "#039BE5",
    "lightPink": "#E67C73",
    "lightBrown": "#8E6C42",
    "lightRed": "#D50000",
    "auto": DEFAULT_CALENDAR_COLOR,
}

OUTLOOK_RESPONSE_STATUS_MAP = {
    "accepted": "accepted",
    "declined": "declined",
    "tentativelyAccepted": "tentative",
    "notResponded": "needsAction",
    "organizer": "accepted",
}


# --- Google ---


def google_event_to_canonical(item: dict) -> CalendarEvent:
    return CalendarEvent.model_validate(item)


def canonical_to_google_event(event: CalendarEvent) -> dict:
    body = event.to_json()
    body.pop("id", None)
    body.pop("htmlLink", None)
    return body


def google_calendar_to_canonical(item: dict) -> Calendar:
    return Calendar.model_validate(item)


# --- Outlook ---


def convert_outlook_color(outlook_color: str | None) -> str:
    return OUTLOOK_COLOR_MAP.get(outlook_color, DEFAULT_CALENDAR_COLOR)


def convert_outlook_response_status(outlook_status: str | None) -> str:
    return OUTLOOK_RESPONSE_STATUS_MAP.get(outlook_status, "needsAction")


def outlook_calendar_to_canonical(item: dict) -> Calendar:
    return Calendar(
        id=item["id"],
        summary=item.get("name"),
        background_color=convert_outlook_color(item.get("color")),
        access_role="owner" if item.get("canEdit") else "reader",
        primary=bool(item.get("isDefaultCalendar", False)),
    )


def _outlook_time_to_canonical(value: dict | None, is_all_day: bool) -> EventDateTime:
    value = value or {}
    date_time = value.get("dateTime")
    if is_all_day and date_time:
        return EventDateTime(date=date_time[:10])
    return EventDateTime(
        date_time=date_time,
        time_zone=value.get("timeZone") or DEFAULT_TIME_ZONE,
    )


def outlook_event_to_canonical(item: dict) -> CalendarEvent:
    is_all_day = bool(item.get("isAllDay", False))
    body = item.get("body") or {}
    location = item.get("location") or {}

    attendees = []
    for attendee in item.get("attendees") or []:
        email_address = attendee.get("emailAddress") or {}
        response = (attendee.get("status") or {}).get("response")
        attendees.append(
            Attendee(
                email=email_address.get("address"),
                display_name=email_address.get("name"),
                response_status=convert_outlook_response_status(response),
            )
        )

    return CalendarEvent(
        id=item.get("id"),
        summary=item.get("subject"),
        description=body.get("content") or "",
        start=_outlook_time_to_canonical(item.get("start"), is_all_day),
        end=_outlook_time_to_canonical(item.get("end"), is_all_day),
        location=location.get("displayName") or "",
        attendees=attendees,
        html_link=item.get("webLink"),
    )


def _canonical_time_to_outlook(value: EventDateTime) -> dict:
    if value.is_all_day:
        # Graph wants midnight-to-midnight dateTimes for all-day events.
        return {
            "dateTime": f"{value.date}T00:00:00",
            "timeZone": value.time_zone or DEFAULT_TIME_ZONE,
        }
    return {
        "dateTime": value.date_time,
        "timeZone": value.time_zone or DEFAULT_TIME_ZONE,
    }


def canonical_to_outlook_event(event: CalendarEvent) -> dict:
    """
    Builds a Graph event payload containing only the fields that were supplied,
    so it can be used for both creation and partial PATCH updates.
    Attendees are always written as required; optional attendees are not modeled.
    """
    supplied = event.model_fields_set
    outlook_event: dict = {}

    if "summary" in supplied:
        outlook_event["subject"] = event.summary
    if "description" in supplied:
        outlook_event["body"] = {
            "contentType": "HTML",
            "content": event.description or "",
        }
    start = event.start if "start" in supplied else None
    end = event.end if "end" in supplied else None
    if start is not None and end is not None:
        if start.is_all_day != end.is_all_day:
            raise ValueError("Event start and end must both be all-day or both be timed")
        outlook_event["isAllDay"] = start.is_all_day
    elif (start is not None and start.is_all_day) or (end is not None and end.is_all_day):
        # Graph keeps the other side as stored, so isAllDay can only flip with both.
        raise ValueError("All-day changes need both start and end")
    if start is not None:
        outlook_event["start"] = _canonical_time_to_outlook(start)
    if end is not None:
        outlook_event["end"] = _canonical_time_to_outlook(end)
    if "location" in supplied:
        outlook_event["location"] = {"displayName": event.location or ""}
    if "attendees" in supplied:
        outlook_event["attendees"] = [
            {
                "emailAddress": {
                    "address": attendee.email,
                    "name": attendee.display_name or attendee.email,
                },
                "type": "required",
            }
            for attendee in event.attendees or []
        ]

    return outlook_event
