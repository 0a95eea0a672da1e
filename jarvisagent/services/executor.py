from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta
import json
import logging
from typing import Any, Callable

from pydantic import BaseModel, ValidationError

from jarvisagent.errors import (
    IntegrationError,
    InvalidParameter,
    MissingParameter,
    ReauthRequired,
    UnknownFunction,
)
from jarvisagent.services.conversation import ToolCallRequest
from jarvisagent.tools.base import (
    CalendarService,
    Credentials,
    EventTime,
    MailService,
    OutgoingEmail,
)
from jarvisagent.tools.google_gmail import extract_message_text, headers_to_map
from jarvisagent.tools.registry import IntegrationFunction, IntegrationRegistry


logger = logging.getLogger(__name__)

MAX_BODY_CHARS = 4000

Handler = Callable[[Any, str], Any]


@dataclass(frozen=True)
class ToolOutcome:
    tool_call_id: str
    name: str
    success: bool
    result: Any = None
    error: str | None = None

    def to_content(self) -> str:
        if self.success:
            return json.dumps(self.result, default=str)
        return self.error or "Unknown error"


class IntegrationExecutor:
    def __init__(
        self,
        registry: IntegrationRegistry,
        mail: MailService,
        calendar: CalendarService,
        default_max_results: int = 5,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._registry = registry
        self._mail = mail
        self._calendar = calendar
        self._default_max_results = max(1, default_max_results)
        self._clock = clock or (lambda: datetime.now().astimezone())
        self._handlers: dict[str, Handler] = {
            "get_emails": self._get_emails,
            "search_emails": self._search_emails,
            "get_email": self._get_email,
            "send_email": self._send_email,
            "get_calendar_events": self._get_calendar_events,
            "get_today_events": self._get_today_events,
            "create_calendar_event": self._create_calendar_event,
            "update_calendar_event": self._update_calendar_event,
            "delete_calendar_event": self._delete_calendar_event,
        }
        unmapped = [name for name in registry.names() if name not in self._handlers]
        if unmapped:
            raise RuntimeError(
                "Integration functions without a handler: " + ", ".join(sorted(unmapped))
            )

    def run(self, call: ToolCallRequest, credentials: Credentials | None) -> ToolOutcome:
        try:
            result = self.execute(call.name, call.arguments, credentials)
        except ReauthRequired:
            raise
        except IntegrationError as exc:
            logger.warning("Tool call %s (%s) failed: %s", call.id, call.name, exc)
            return ToolOutcome(
                tool_call_id=call.id, name=call.name, success=False, error=str(exc)
            )
        except Exception as exc:
            logger.exception("Tool call %s (%s) raised unexpectedly", call.id, call.name)
            return ToolOutcome(
                tool_call_id=call.id,
                name=call.name,
                success=False,
                error=f"{call.name} failed unexpectedly: {exc}",
            )
        return ToolOutcome(tool_call_id=call.id, name=call.name, success=True, result=result)

    def execute(
        self,
        name: str,
        parameters: dict[str, Any] | None,
        credentials: Credentials | None,
    ) -> Any:
        function = self._registry.find(name)
        if function is None:
            raise UnknownFunction(name)
        params = decode_parameters(function, parameters)
        if credentials is None or not credentials.access_token:
            raise IntegrationError(
                "Google account is not connected. Please sign in with Google first."
            )
        handler = self._handlers.get(name)
        if handler is None:
            raise RuntimeError(f"No handler is mapped for registered function '{name}'.")
        return handler(params, credentials.access_token)

    def _get_emails(self, params: Any, token: str) -> list[dict[str, Any]]:
        query = params.query
        if not query and not params.label:
            query = "in:inbox"
        return self._list_email_summaries(
            token=token,
            query=query,
            label=params.label,
            max_results=params.max_results or self._default_max_results,
        )

    def _search_emails(self, params: Any, token: str) -> list[dict[str, Any]]:
        return self._list_email_summaries(
            token=token,
            query=params.query,
            label=None,
            max_results=params.max_results or self._default_max_results,
        )

    def _list_email_summaries(
        self, token: str, query: str | None, label: str | None, max_results: int
    ) -> list[dict[str, Any]]:
        rows = self._mail.list_messages(
            token, query=query, max_results=max_results, label=label
        )
        out: list[dict[str, Any]] = []
        for row in rows:
            message_id = str(row.get("id") or "")
            detail = self._mail.get_message(token, message_id)
            out.append(summarize_email(detail, fallback_id=message_id))
        return out

    def _get_email(self, params: Any, token: str) -> dict[str, Any]:
        detail = self._mail.get_message(token, params.message_id.strip())
        headers = headers_to_map(detail)
        summary = summarize_email(detail, fallback_id=params.message_id)
        summary["thread_id"] = detail.get("threadId")
        summary["to"] = headers.get("to", "")
        summary["body"] = extract_message_text(detail)[:MAX_BODY_CHARS]
        return summary

    def _send_email(self, params: Any, token: str) -> dict[str, Any]:
        email = OutgoingEmail(
            to=params.to.strip(),
            subject=params.subject,
            body=params.body,
            cc=tuple(params.cc or ()),
            bcc=tuple(params.bcc or ()),
        )
        return self._mail.send(token, email)

    def _get_calendar_events(self, params: Any, token: str) -> list[dict[str, Any]]:
        now = self._clock()
        if params.time_min:
            time_min = _parse_datetime(params.time_min, "time_min", "get_calendar_events", now)
        else:
            time_min = now
        if params.time_max:
            time_max = _parse_datetime(params.time_max, "time_max", "get_calendar_events", now)
        else:
            time_max = now.replace(hour=23, minute=59, second=59, microsecond=999000)
            if time_max <= time_min:
                time_max = time_min + timedelta(days=1)
        events = self._calendar.list_events(
            token,
            time_min=time_min.isoformat(),
            time_max=time_max.isoformat(),
            query=params.query,
            max_results=params.max_results,
        )
        return [normalize_event(event) for event in events]

    def _get_today_events(self, params: Any, token: str) -> list[dict[str, Any]]:
        start = self._clock().replace(hour=0, minute=0, second=0, microsecond=0)
        end = start + timedelta(days=1)
        events = self._calendar.list_events(
            token, time_min=start.isoformat(), time_max=end.isoformat()
        )
        return [normalize_event(event) for event in events]

    def _create_calendar_event(self, params: Any, token: str) -> dict[str, Any]:
        name = "create_calendar_event"
        event: dict[str, Any] = {
            "summary": params.summary,
            "start": self._event_time(params.start, params.time_zone, "start", name),
            "end": self._event_time(params.end, params.time_zone, "end", name),
        }
        event.update(_optional_event_fields(params))
        return self._calendar.create_event(token, event)

    def _update_calendar_event(self, params: Any, token: str) -> dict[str, Any]:
        name = "update_calendar_event"
        updates: dict[str, Any] = {}
        if params.summary:
            updates["summary"] = params.summary
        if params.start:
            updates["start"] = self._event_time(params.start, params.time_zone, "start", name)
        if params.end:
            updates["end"] = self._event_time(params.end, params.time_zone, "end", name)
        updates.update(_optional_event_fields(params))
        if not updates:
            raise IntegrationError(
                "update_calendar_event needs at least one field to change."
            )
        return self._calendar.update_event(token, params.event_id.strip(), updates)

    def _delete_calendar_event(self, params: Any, token: str) -> dict[str, Any]:
        self._calendar.delete_event(token, params.event_id.strip())
        return {"success": True}

    def _event_time(
        self, value: str, time_zone: str | None, field_name: str, function_name: str
    ) -> dict[str, str]:
        if time_zone:
            # Google resolves naive wall-clock times against timeZone.
            return EventTime(date_time=value.strip(), time_zone=time_zone).to_payload()
        parsed = _parse_datetime(value, field_name, function_name, self._clock())
        return EventTime(date_time=parsed.isoformat()).to_payload()


def decode_parameters(
    function: IntegrationFunction, parameters: dict[str, Any] | None
) -> BaseModel:
    args = parameters if isinstance(parameters, dict) else {}
    for field_name in function.required_fields():
        if _is_empty(args.get(field_name)):
            raise MissingParameter(field_name, function.name)
    try:
        return function.params_model.model_validate(args)
    except ValidationError as exc:
        errors = exc.errors()
        first = errors[0] if errors else {}
        loc = first.get("loc") or ("?",)
        raise InvalidParameter(
            str(loc[0]), function.name, str(first.get("msg") or "invalid value")
        ) from exc


def summarize_email(detail: dict[str, Any], fallback_id: str = "") -> dict[str, Any]:
    headers = headers_to_map(detail)
    return {
        "id": detail.get("id") or fallback_id,
        "subject": headers.get("subject") or "No Subject",
        "from": headers.get("from") or "Unknown Sender",
        "date": headers.get("date"),
        "snippet": detail.get("snippet") or "",
    }


def normalize_event(event: dict[str, Any]) -> dict[str, Any]:
    out = dict(event)
    for key in ("summary", "start", "end", "location"):
        out.setdefault(key, None)
    return out


def _optional_event_fields(params: Any) -> dict[str, Any]:
    out: dict[str, Any] = {}
    if params.location:
        out["location"] = params.location
    if params.description:
        out["description"] = params.description
    if params.attendees:
        out["attendees"] = [{"email": email} for email in params.attendees if email]
    return out


def _parse_datetime(
    value: str, field_name: str, function_name: str, now: datetime
) -> datetime:
    normalized = (value or "").strip()
    if normalized.endswith("Z"):
        normalized = normalized[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(normalized)
    except ValueError as exc:
        raise InvalidParameter(
            field_name, function_name, f"'{value}' is not an ISO 8601 date-time"
        ) from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=now.tzinfo)
    return parsed


def _is_empty(value: object) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, dict, tuple)):
        return not value
    return False
