"""
Canonical calendar shapes shared by every provider.

These models are the wire contract with the frontend and the shape the LLM
tool calls are expected to produce. JSON keys are camelCase (`dateTime`,
`timeZone`, `displayName`, ...), Python attributes are snake_case.
"""

import time
from datetime import datetime
from typing import Literal
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from pydantic import BaseModel, ConfigDict, model_validator
from pydantic.alias_generators import to_camel

ResponseStatus = Literal["accepted", "declined", "tentative", "needsAction"]


class CanonicalModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_json(self) -> dict:
        """Only the fields that were actually supplied, keyed by their JSON names."""
        return self.model_dump(by_alias=True, exclude_unset=True)


class EventDateTime(CanonicalModel):
    """Either `{dateTime, timeZone}` (timed) or `{date}` (all-day)."""

    date_time: str | None = None
    time_zone: str | None = None
    date: str | None = None

    @property
    def is_all_day(self) -> bool:
        return self.date is not None and self.date_time is None

    def to_datetime(self) -> datetime | None:
        """
        The timed value as a datetime, placed in `time_zone` when the string has
        no offset of its own. None when it cannot be parsed or the zone is unknown.
        """
        if not self.date_time:
            return None
        try:
            moment = datetime.fromisoformat(self.date_time)
        except ValueError:
            return None
        if moment.tzinfo is None and self.time_zone:
            try:
                moment = moment.replace(tzinfo=ZoneInfo(self.time_zone))
            except (ZoneInfoNotFoundError, ValueError):
                return None
        return moment


class Attendee(CanonicalModel):
    email: str | None = None
    display_name: str | None = None
    response_status: ResponseStatus = "needsAction"


class CalendarEvent(CanonicalModel):
    id: str | None = None
    summary: str | None = None
    description: str | None = None
    start: EventDateTime | None = None
    end: EventDateTime | None = None
    location: str | None = None
    attendees: list[Attendee] | None = None
    color_id: str | None = None
    html_link: str | None = None

    @model_validator(mode="after")
    def _start_not_after_end(self):
        if not (self.start and self.end and self.start.date_time and self.end.date_time):
            return self
        start = self.start.to_datetime()
        end = self.end.to_datetime()
        # Unknown zones, or an offset on only one side, can't be ordered here.
        if start is None or end is None or (start.tzinfo is None) != (end.tzinfo is None):
            return self
        if start > end:
            raise ValueError("Event start must not be after its end")
        return self

    def display_title(self) -> str:
        return self.summary or "Untitled"


class EventCreate(CalendarEvent):
    summary: str
    start: EventDateTime
    end: EventDateTime


class Calendar(CanonicalModel):
    id: str
    summary: str | None = None
    background_color: str | None = None
    access_role: str | None = None
    primary: bool = False


class OAuthTokens(BaseModel):
    """Token set held in the auth session. `expires_at` is epoch seconds."""

    access_token: str
    refresh_token: str | None = None
    expires_at: int | None = None

    def expires_within(self, seconds: int) -> bool:
        if self.expires_at is None:
            return False
        return self.expires_at < time.time() + seconds
