import json
import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from core.config import settings
from core.errors import ProviderError, ToolExecutionError
from core.logging_setup import log_step
from openai import AsyncOpenAI
from providers.base import CalendarProvider
from providers.schemas import CalendarEvent, EventCreate
from pydantic import ValidationError

logger = logging.getLogger(__name__)

LOG_STEP = "CHAT"

DEFAULT_TIME_ZONE = "UTC"

_EVENT_TIME_SCHEMA = {
    "type": "object",
    "properties": {
        "dateTime": {"type": "string", "description": "Time in ISO 8601 format"},
        "timeZone": {"type": "string", "description": "IANA timezone"},
        "date": {
            "type": "string",
            "description": "Date (YYYY-MM-DD) for all-day events, instead of dateTime",
        },
    },
}

CALENDAR_TOOLS = [
    {
        "type": "function",
        "function": {
            "name": "create_calendar_event",
            "description": "Create one or more new calendar events",
            "parameters": {
                "type": "object",
                "properties": {
                    "events": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "summary": {"type": "string", "description": "Event title"},
                                "description": {"type": "string", "description": "Event description"},
                                "location": {"type": "string", "description": "Event location"},
                                "start": _EVENT_TIME_SCHEMA,
                                "end": _EVENT_TIME_SCHEMA,
                            },
                            "required": ["summary", "start", "end"],
                        },
                    }
                },
                "required": ["events"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "update_calendar_event",
            "description": "Update existing calendar events. Only the supplied fields are changed.",
            "parameters": {
                "type": "object",
                "properties": {
                    "updates": {
                        "type": "array",
                        "items": {
                            "type": "object",
                            "properties": {
                                "eventId": {"type": "string", "description": "The ID of the event to update"},
                                "summary": {"type": "string", "description": "New event title"},
                                "description": {"type": "string", "description": "New event description"},
                                "location": {"type": "string", "description": "New event location"},
                                "start": _EVENT_TIME_SCHEMA,
                                "end": _EVENT_TIME_SCHEMA,
                            },
                            "required": ["eventId"],
                        },
                    }
                },
                "required": ["updates"],
            },
        },
    },
    {
        "type": "function",
        "function": {
            "name": "delete_calendar_events",
            "description": "Delete one or more calendar events",
            "parameters": {
                "type": "object",
                "properties": {
                    "eventIds": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "IDs of the events to delete",
                    }
                },
                "required": ["eventIds"],
            },
        },
    },
]


@dataclass
class ChatResult:
    message: dict
    tool_calls_executed: bool = False


def create_llm_client(api_key: str) -> AsyncOpenAI:
    """Per-request client for the user's own key. Retries only cover the LLM API."""
    return AsyncOpenAI(
        api_key=api_key,
        base_url=settings.OPENROUTER_BASE_URL,
        timeout=settings.LLM_TIMEOUT_SECONDS,
        max_retries=settings.LLM_MAX_RETRIES,
    )


def resolve_time_zone(time_zone: str | None, events: list[CalendarEvent]) -> str:
    if time_zone:
        return time_zone
    if events and events[0].start and events[0].start.time_zone:
        return events[0].start.time_zone
    return DEFAULT_TIME_ZONE


def _format_event_line(event: CalendarEvent) -> str:
    start = (event.start.date_time or event.start.date) if event.start else None
    end = (event.end.date_time or event.end.date) if event.end else None
    return f"- [ID: {event.id}] {event.display_title()} ({start} to {end})"


def build_system_prompt(
    events: list[CalendarEvent],
    time_zone: str,
    now: datetime | None = None,
) -> dict:
    now = now or datetime.now(timezone.utc)
    try:
        weekday = now.astimezone(ZoneInfo(time_zone)).strftime("%A")
    except (ZoneInfoNotFoundError, ValueError):
        weekday = now.strftime("%A")

    if events:
        event_lines = "\n".join(_format_event_line(event) for event in events)
    else:
        event_lines = "No events currently scheduled."

    content = f"""You are a helpful AI calendar assistant. You help users manage their calendar events.

Current calendar events:
{event_lines}

You can:
1. Discuss event details with the user (duration, timing, etc.) before creating events
2. See all existing events to suggest optimal times and avoid conflicts
3. Create multiple events in a single conversation
4. Edit or delete existing events using their IDs
5. Provide scheduling recommendations based on their calendar

IMPORTANT DATE HANDLING RULES:
- When the user says relative dates like "this Friday", "next Tuesday", "tomorrow", "this weekend", etc., you MUST confidently interpret the date without asking for confirmation
- Use the current date/time provided below to calculate the exact date for relative references
- "this Friday" = the upcoming Friday from today (if today is Friday, it means today)
- "next Friday" = the Friday of next week
- "this weekend" = the upcoming Saturday/Sunday
- "tomorrow" = the next day from current date
- Only ask for clarification if the request is genuinely ambiguous (e.g., "sometime next week" without specifying a day) or if time/duration is not specified

When creating, updating, or deleting events, use the provided tools. Always use the actual event IDs shown in [ID: ...] brackets.

TIMEZONE REQUIREMENTS:
- You MUST use the user's timezone: {time_zone}
- All times mentioned by the user are in {time_zone} timezone unless they explicitly specify otherwise
- Always include the timezone in your tool calls

Current date and time: {now.isoformat()}
User's timezone: {time_zone}
Day of week today: {weekday}"""

    return {"role": "system", "content": content}


def _first_message(completion):
    # OpenRouter reports upstream failures as a 200 body without choices.
    if not completion.choices:
        raise ValueError("LLM response contained no choices")
    return completion.choices[0].message


class CalendarChatService:
    """
    One chat turn: ask the LLM, run any calendar tool calls it requests against
    the provider, then ask once more for the final answer.

    Tool calls run sequentially in the order received. A failing tool call
    produces a failure result for that call only; at most one tool round runs.
    The service never re-fetches calendar state; callers use
    `ChatResult.tool_calls_executed` to decide whether to.
    """

    def __init__(
        self,
        client: AsyncOpenAI,
        model: str,
        provider: CalendarProvider,
        calendar_id: str | None = None,
    ):
        self.client = client
        self.model = model
        self.provider = provider
        self.calendar_id = calendar_id
        self._handlers = {
            "create_calendar_event": self._create_events,
            "update_calendar_event": self._update_events,
            "delete_calendar_events": self._delete_events,
        }

    async def respond(
        self,
        messages: list[dict],
        events: list[CalendarEvent],
        time_zone: str | None = None,
    ) -> ChatResult:
        system_prompt = build_system_prompt(events, resolve_time_zone(time_zone, events))
        conversation = [system_prompt, *messages]

        with log_step(LOG_STEP):
            logger.info(
                f"Sending chat request. Model: {self.model}, messages: {len(messages)}"
            )

        completion = await self.client.chat.completions.create(
            model=self.model,
            messages=conversation,
            tools=CALENDAR_TOOLS,
            tool_choice="auto",
        )
        assistant_message = _first_message(completion)

        if not assistant_message.tool_calls:
            return ChatResult(message=assistant_message.model_dump(exclude_none=True))

        with log_step(LOG_STEP):
            logger.info(f"Processing {len(assistant_message.tool_calls)} tool call(s).")

        tool_messages = [assistant_message.model_dump(exclude_none=True)]
        for tool_call in assistant_message.tool_calls:
            result = await self.execute_tool_call(tool_call.function.name, tool_call.function.arguments)
            tool_messages.append(
                {
                    "role": "tool",
                    "tool_call_id": tool_call.id,
                    "content": json.dumps(result),
                }
            )

        with log_step(LOG_STEP):
            logger.info("Sending tool results back to LLM.")

        follow_up = await self.client.chat.completions.create(
            model=self.model,
            messages=[*conversation, *tool_messages],
        )
        final_message = _first_message(follow_up)

        return ChatResult(
            message=final_message.model_dump(exclude_none=True),
            tool_calls_executed=True,
        )

    async def execute_tool_call(self, name: str, arguments: str | None) -> dict:
        """Runs one tool call and returns its result; never raises."""
        with log_step(LOG_STEP):
            handler = self._handlers.get(name)
            try:
                if handler is None:
                    logger.warning(f"LLM requested unknown tool '{name}'.")
                    raise ToolExecutionError(f"Unknown tool: {name}")

                try:
                    args = json.loads(arguments or "{}")
                except json.JSONDecodeError:
                    raise ToolExecutionError(f"Invalid arguments for {name}")
                if not isinstance(args, dict):
                    raise ToolExecutionError(f"Invalid arguments for {name}")

                logger.info(f"Executing tool: {name}")
                return await handler(args)

            except (ToolExecutionError, ProviderError) as e:
                logger.warning(f"Tool {name} failed: {e}")
                return {"success": False, "error": str(e)}
            except ValidationError as e:
                logger.warning(f"Tool {name} received invalid event data: {e}")
                return {"success": False, "error": f"Invalid event data for {name}"}
            except Exception as e:
                logger.error(f"Unexpected error executing {name}: {e}", exc_info=True)
                return {"success": False, "error": f"Failed to execute {name}"}

    @staticmethod
    def _require_list(args: dict, key: str) -> list:
        value = args.get(key)
        if not isinstance(value, list):
            raise ToolExecutionError(f"'{key}' must be a list")
        return value

    async def _create_events(self, args: dict) -> dict:
        created = 0
        for item in self._require_list(args, "events"):
            event = EventCreate.model_validate(item)
            await self.provider.create_event(event, calendar_id=self.calendar_id)
            created += 1
        return {"success": True, "created": created}

    async def _update_events(self, args: dict) -> dict:
        updated = 0
        for item in self._require_list(args, "updates"):
            if not isinstance(item, dict) or not item.get("eventId"):
                raise ToolExecutionError("Each update needs an eventId")
            fields = dict(item)
            event_id = fields.pop("eventId")
            patch = CalendarEvent.model_validate(fields)
            await self.provider.update_event(event_id, patch, calendar_id=self.calendar_id)
            updated += 1
        return {"success": True, "updated": updated}

    async def _delete_events(self, args: dict) -> dict:
        event_ids = self._require_list(args, "eventIds")
        for event_id in event_ids:
            await self.provider.delete_event(str(event_id), calendar_id=self.calendar_id)
        return {"success": True, "deleted": len(event_ids)}
