from __future__ import annotations

from pydantic import BaseModel, Field

from .registry import IntegrationFunction, IntegrationRegistry


class GetEmailsParams(BaseModel):
    max_results: int | None = Field(default=None, ge=1, le=50)
    query: str | None = None
    label: str | None = None


class SearchEmailsParams(BaseModel):
    query: str
    max_results: int | None = Field(default=None, ge=1, le=50)


class GetEmailParams(BaseModel):
    message_id: str


class SendEmailParams(BaseModel):
    to: str
    subject: str
    body: str
    cc: list[str] | None = None
    bcc: list[str] | None = None


class GetCalendarEventsParams(BaseModel):
    time_min: str | None = None
    time_max: str | None = None
    query: str | None = None
    max_results: int | None = Field(default=None, ge=1, le=250)


class GetTodayEventsParams(BaseModel):
    pass


class CreateCalendarEventParams(BaseModel):
    summary: str
    start: str
    end: str
    location: str | None = None
    description: str | None = None
    attendees: list[str] | None = None
    time_zone: str | None = None


class UpdateCalendarEventParams(BaseModel):
    event_id: str
    summary: str | None = None
    start: str | None = None
    end: str | None = None
    location: str | None = None
    description: str | None = None
    attendees: list[str] | None = None
    time_zone: str | None = None


class DeleteCalendarEventParams(BaseModel):
    event_id: str


_ATTENDEES_SCHEMA = {
    "type": "array",
    "items": {"type": "string"},
    "description": "List of attendee email addresses",
}


def build_default_registry() -> IntegrationRegistry:
    registry = IntegrationRegistry()
    registry.register(
        IntegrationFunction(
            name="get_emails",
            description="Fetch recent emails from the Gmail inbox",
            category="gmail",
            params_model=GetEmailsParams,
            schema={
                "type": "object",
                "properties": {
                    "max_results": {
                        "type": "integer",
                        "description": "Maximum number of emails to return (default: 5)",
                    },
                    "query": {
                        "type": "string",
                        "description": "Gmail search query to filter emails",
                    },
                    "label": {
                        "type": "string",
                        "description": "Filter by label ID, e.g. INBOX or UNREAD",
                    },
                },
                "required": [],
            },
        )
    )
    registry.register(
        IntegrationFunction(
            name="search_emails",
            description="Search emails in Gmail using Gmail search syntax",
            category="gmail",
            params_model=SearchEmailsParams,
            schema={
                "type": "object",
                "properties": {
                    "query": {
                        "type": "string",
                        "description": "Gmail search query, e.g. 'from:alice is:unread'",
                    },
                    "max_results": {
                        "type": "integer",
                        "description": "Maximum number of emails to return",
                    },
                },
                "required": ["query"],
            },
        )
    )
    registry.register(
        IntegrationFunction(
            name="get_email",
            description="Read the full content of one Gmail message",
            category="gmail",
            params_model=GetEmailParams,
            schema={
                "type": "object",
                "properties": {
                    "message_id": {
                        "type": "string",
                        "description": "ID of the message, as returned by get_emails",
                    },
                },
                "required": ["message_id"],
            },
        )
    )
    registry.register(
        IntegrationFunction(
            name="send_email",
            description="Send an email through Gmail",
            category="gmail",
            params_model=SendEmailParams,
            schema={
                "type": "object",
                "properties": {
                    "to": {"type": "string", "description": "Recipient email address"},
                    "subject": {"type": "string", "description": "Email subject"},
                    "body": {
                        "type": "string",
                        "description": "Email content, plain text or HTML",
                    },
                    "cc": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "CC recipients",
                    },
                    "bcc": {
                        "type": "array",
                        "items": {"type": "string"},
                        "description": "BCC recipients",
                    },
                },
                "required": ["to", "subject", "body"],
            },
        )
    )
    registry.register(
        IntegrationFunction(
            name="get_calendar_events",
            description="Fetch calendar events within a time range",
            category="calendar",
            params_model=GetCalendarEventsParams,
            schema={
                "type": "object",
                "properties": {
                    "time_min": {
                        "type": "string",
                        "format": "date-time",
                        "description": "Start time in ISO 8601 format (default: now)",
                    },
                    "time_max": {
                        "type": "string",
                        "format": "date-time",
                        "description": "End time in ISO 8601 format (default: end of today)",
                    },
                    "query": {
                        "type": "string",
                        "description": "Search text to filter events",
                    },
                    "max_results": {
                        "type": "integer",
                        "description": "Maximum number of events to return",
                    },
                },
                "required": [],
            },
        )
    )
    registry.register(
        IntegrationFunction(
            name="get_today_events",
            description="Get today's calendar events",
            category="calendar",
            params_model=GetTodayEventsParams,
            schema={"type": "object", "properties": {}, "required": []},
        )
    )
    registry.register(
        IntegrationFunction(
            name="create_calendar_event",
            description="Create a new calendar event",
            category="calendar",
            params_model=CreateCalendarEventParams,
            schema={
                "type": "object",
                "properties": {
                    "summary": {"type": "string", "description": "Event title"},
                    "start": {
                        "type": "string",
                        "format": "date-time",
                        "description": "Start time in ISO 8601 format",
                    },
                    "end": {
                        "type": "string",
                        "format": "date-time",
                        "description": "End time in ISO 8601 format",
                    },
                    "location": {
                        "type": "string",
                        "description": "Physical or virtual meeting location",
                    },
                    "description": {
                        "type": "string",
                        "description": "Event description/details",
                    },
                    "attendees": _ATTENDEES_SCHEMA,
                    "time_zone": {
                        "type": "string",
                        "description": "IANA time zone for start/end, e.g. Europe/Paris",
                    },
                },
                "required": ["summary", "start", "end"],
            },
        )
    )
    registry.register(
        IntegrationFunction(
            name="update_calendar_event",
            description="Update an existing calendar event",
            category="calendar",
            params_model=UpdateCalendarEventParams,
            schema={
                "type": "object",
                "properties": {
                    "event_id": {
                        "type": "string",
                        "description": "ID of the event to update",
                    },
                    "summary": {"type": "string", "description": "Updated event title"},
                    "start": {
                        "type": "string",
                        "format": "date-time",
                        "description": "Updated start time in ISO 8601 format",
                    },
                    "end": {
                        "type": "string",
                        "format": "date-time",
                        "description": "Updated end time in ISO 8601 format",
                    },
                    "location": {"type": "string", "description": "Updated location"},
                    "description": {
                        "type": "string",
                        "description": "Updated description",
                    },
                    "attendees": _ATTENDEES_SCHEMA,
                    "time_zone": {
                        "type": "string",
                        "description": "IANA time zone for start/end",
                    },
                },
                "required": ["event_id"],
            },
        )
    )
    registry.register(
        IntegrationFunction(
            name="delete_calendar_event",
            description="Delete a calendar event",
            category="calendar",
            params_model=DeleteCalendarEventParams,
            schema={
                "type": "object",
                "properties": {
                    "event_id": {
                        "type": "string",
                        "description": "ID of the event to delete",
                    },
                },
                "required": ["event_id"],
            },
        )
    )
    return registry
