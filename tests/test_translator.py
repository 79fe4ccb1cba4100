import pytest
from pydantic import ValidationError

from providers.schemas import Attendee, CalendarEvent, EventCreate, EventDateTime
from providers.translator import (
    DEFAULT_CALENDAR_COLOR,
    canonical_to_google_event,
    canonical_to_outlook_event,
    convert_outlook_color,
    convert_outlook_response_status,
    google_event_to_canonical,
    outlook_calendar_to_canonical,
    outlook_event_to_canonical,
)

OUTLOOK_EVENT = {
    "id": "AAMk-1",
    "subject": "Design review",
    "body": {"contentType": "HTML", "content": "<p>Agenda</p>"},
    "start": {"dateTime": "2024-05-01T10:00:00.0000000", "timeZone": "Europe/Berlin"},
    "end": {"dateTime": "2024-05-01T11:00:00.0000000", "timeZone": "Europe/Berlin"},
    "location": {"displayName": "Room 4"},
    "isAllDay": False,
    "webLink": "https://outlook.office365.com/owa/?itemid=AAMk-1",
    "attendees": [
        {
            "emailAddress": {"address": "ana@example.com", "name": "Ana"},
            "status": {"response": "tentativelyAccepted"},
        },
        {
            "emailAddress": {"address": "bo@example.com", "name": "Bo"},
            "status": {"response": "somethingNew"},
        },
    ],
}


# Purpose: verify Graph events map onto the canonical shape field by field.
def test_outlook_event_to_canonical():
    event = outlook_event_to_canonical(OUTLOOK_EVENT)

    assert event.id == "AAMk-1"
    assert event.summary == "Design review"
    assert event.description == "<p>Agenda</p>"
    assert event.location == "Room 4"
    assert event.start.date_time == "2024-05-01T10:00:00.0000000"
    assert event.start.time_zone == "Europe/Berlin"
    assert event.html_link == OUTLOOK_EVENT["webLink"]
    assert [a.response_status for a in event.attendees] == ["tentative", "needsAction"]
    assert event.attendees[0].display_name == "Ana"


# Purpose: verify missing optional Graph fields get their canonical defaults.
def test_outlook_event_defaults():
    event = outlook_event_to_canonical(
        {
            "id": "x",
            "subject": "Bare",
            "start": {"dateTime": "2024-05-01T10:00:00"},
            "end": {"dateTime": "2024-05-01T11:00:00"},
        }
    )

    assert event.description == ""
    assert event.location == ""
    assert event.start.time_zone == "UTC"
    assert event.attendees == []


# Purpose: verify a timed canonical event survives canonical -> Outlook -> canonical.
def test_outlook_round_trip_timed_event():
    original = CalendarEvent(
        id="AAMk-1",
        summary="Standup",
        description="Daily",
        start=EventDateTime(date_time="2024-05-01T09:00:00", time_zone="America/New_York"),
        end=EventDateTime(date_time="2024-05-01T09:15:00", time_zone="America/New_York"),
        location="Zoom",
        attendees=[Attendee(email="ana@example.com", display_name="Ana", response_status="accepted")],
    )

    graph_payload = canonical_to_outlook_event(original)
    graph_payload["id"] = "AAMk-1"
    graph_payload["attendees"][0]["status"] = {"response": "accepted"}
    restored = outlook_event_to_canonical(graph_payload)

    assert restored.summary == original.summary
    assert restored.description == original.description
    assert restored.location == original.location
    assert restored.start.model_dump() == original.start.model_dump()
    assert restored.end.model_dump() == original.end.model_dump()
    assert [a.model_dump() for a in restored.attendees] == [
        a.model_dump() for a in original.attendees
    ]


# Purpose: verify all-day events are written with isAllDay and read back as dates.
def test_outlook_all_day_event_mapping():
    event = CalendarEvent(
        summary="Holiday",
        start=EventDateTime(date="2024-12-25"),
        end=EventDateTime(date="2024-12-26"),
    )

    graph_payload = canonical_to_outlook_event(event)

    assert graph_payload["isAllDay"] is True
    assert graph_payload["start"] == {"dateTime": "2024-12-25T00:00:00", "timeZone": "UTC"}

    restored = outlook_event_to_canonical({"id": "h", **graph_payload})
    assert restored.start.date == "2024-12-25"
    assert restored.end.date == "2024-12-26"
    assert restored.start.date_time is None


# Purpose: verify partial updates only emit the fields that were supplied.
def test_outlook_partial_patch_only_sends_supplied_fields():
    patch = CalendarEvent.model_validate({"summary": "Renamed"})

    assert canonical_to_outlook_event(patch) == {"subject": "Renamed"}


# Purpose: verify a supplied empty location or attendee list clears the field in Graph.
def test_outlook_patch_clears_location_and_attendees():
    patch = CalendarEvent.model_validate({"location": "", "attendees": []})

    assert canonical_to_outlook_event(patch) == {
        "location": {"displayName": ""},
        "attendees": [],
    }


# Purpose: verify switching to all-day needs both ends, and a timed move leaves isAllDay alone.
def test_outlook_all_day_switch_needs_start_and_end():
    start_only = CalendarEvent.model_validate({"start": {"date": "2024-12-25"}})
    mixed = CalendarEvent.model_validate(
        {"start": {"date": "2024-12-25"}, "end": {"dateTime": "2024-12-25T10:00:00", "timeZone": "UTC"}}
    )
    timed_start = CalendarEvent.model_validate(
        {"start": {"dateTime": "2024-05-01T08:30:00", "timeZone": "UTC"}}
    )

    with pytest.raises(ValueError, match="need both start and end"):
        canonical_to_outlook_event(start_only)
    with pytest.raises(ValueError, match="both be all-day or both be timed"):
        canonical_to_outlook_event(mixed)
    assert canonical_to_outlook_event(timed_start) == {
        "start": {"dateTime": "2024-05-01T08:30:00", "timeZone": "UTC"}
    }


# Purpose: verify attendees are always sent as required and fall back to email for name.
def test_outlook_attendees_are_required():
    patch = CalendarEvent(attendees=[Attendee(email="ana@example.com")])

    payload = canonical_to_outlook_event(patch)

    assert payload["attendees"] == [
        {"emailAddress": {"address": "ana@example.com", "name": "ana@example.com"}, "type": "required"}
    ]


# Purpose: verify the fixed colour table and its default for unknown names.
def test_convert_outlook_color():
    assert convert_outlook_color("lightGreen") == "#0B8043"
    assert convert_outlook_color("auto") == DEFAULT_CALENDAR_COLOR
    assert convert_outlook_color("ultraViolet") == DEFAULT_CALENDAR_COLOR
    assert convert_outlook_color(None) == DEFAULT_CALENDAR_COLOR


# Purpose: verify response statuses use the fixed table with needsAction as fallback.
def test_convert_outlook_response_status():
    assert convert_outlook_response_status("organizer") == "accepted"
    assert convert_outlook_response_status("notResponded") == "needsAction"
    assert convert_outlook_response_status(None) == "needsAction"


# Purpose: verify Outlook calendars expose colour, access role and primary flag.
def test_outlook_calendar_to_canonical():
    calendar = outlook_calendar_to_canonical(
        {"id": "cal-1", "name": "Work", "color": "lightRed", "canEdit": False, "isDefaultCalendar": True}
    )

    assert calendar.to_json() == {
        "id": "cal-1",
        "summary": "Work",
        "backgroundColor": "#D50000",
        "accessRole": "reader",
        "primary": True,
    }


# Purpose: verify Google events pass through and drop keys outside the canonical shape.
def test_google_event_pass_through():
    native = {
        "id": "g1",
        "summary": "Lunch",
        "start": {"dateTime": "2024-05-01T12:00:00Z", "timeZone": "UTC"},
        "end": {"dateTime": "2024-05-01T13:00:00Z", "timeZone": "UTC"},
        "etag": '"3181161784712000"',
        "htmlLink": "https://calendar.google.com/event?eid=g1",
    }

    event = google_event_to_canonical(native)
    body = canonical_to_google_event(event)

    assert event.to_json()["htmlLink"] == native["htmlLink"]
    assert "etag" not in event.to_json()
    assert body == {
        "summary": "Lunch",
        "start": {"dateTime": "2024-05-01T12:00:00Z", "timeZone": "UTC"},
        "end": {"dateTime": "2024-05-01T13:00:00Z", "timeZone": "UTC"},
    }


def _timed_event(start, start_zone, end, end_zone):
    return {
        "summary": "Flight",
        "start": {"dateTime": start, "timeZone": start_zone},
        "end": {"dateTime": end, "timeZone": end_zone},
    }


# Purpose: verify start/end ordering uses each side's own time zone.
def test_event_order_is_checked_across_time_zones():
    # Tokyo 17:00 is 01:00 in Los Angeles, so this flight lands after it leaves.
    flight = EventCreate.model_validate(
        _timed_event("2024-05-01T17:00:00", "Asia/Tokyo", "2024-05-01T10:00:00", "America/Los_Angeles")
    )
    assert flight.end.time_zone == "America/Los_Angeles"

    # LA 10:00 is Tokyo 02:00 the next day, after the Tokyo 17:00 end.
    with pytest.raises(ValidationError, match="start must not be after its end"):
        EventCreate.model_validate(
            _timed_event("2024-05-01T10:00:00", "America/Los_Angeles", "2024-05-01T17:00:00", "Asia/Tokyo")
        )


# Purpose: verify events whose zone cannot be resolved are not rejected.
def test_event_order_skips_unknown_time_zones():
    event = CalendarEvent.model_validate(
        _timed_event("2024-05-01T17:00:00", "Pacific Standard Time", "2024-05-01T10:00:00", "UTC")
    )

    assert event.start.to_datetime() is None
