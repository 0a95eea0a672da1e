from __future__ import annotations

from typing import Any
from urllib import parse as urlparse

from .base import CalendarService
from .google_api import google_api_request


class CalendarClient(CalendarService):
    CALENDAR_EVENTS_URL = "https://www.googleapis.com/calendar/v3/calendars/primary/events"

    def __init__(self, timeout_seconds: int = 8) -> None:
        self.timeout_seconds = max(1, int(timeout_seconds))

    def list_events(
        self,
        access_token: str,
        time_min: str,
        time_max: str,
        query: str | None = None,
        max_results: int | None = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, object] = {
            "timeMin": time_min,
            "timeMax": time_max,
            "singleEvents": "true",
            "orderBy": "startTime",
        }
        if query:
            params["q"] = query
        if max_results:
            params["maxResults"] = str(max_results)
        payload = google_api_request(
            method="GET",
            url=self.CALENDAR_EVENTS_URL,
            access_token=access_token,
            timeout=self.timeout_seconds,
            service_name="Google Calendar",
            params=params,
        )
        raw_items = payload.get("items", []) if isinstance(payload, dict) else []
        if not isinstance(raw_items, list):
            return []
        return [row for row in raw_items if isinstance(row, dict)]

    def create_event(self, access_token: str, event: dict[str, Any]) -> dict[str, Any]:
        payload = google_api_request(
            method="POST",
            url=self.CALENDAR_EVENTS_URL,
            access_token=access_token,
            timeout=self.timeout_seconds,
            service_name="Google Calendar",
            body=event,
        )
        return payload or {}

    def update_event(
        self, access_token: str, event_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]:
        # PATCH keeps the fields the caller did not mention.
        payload = google_api_request(
            method="PATCH",
            url=self._event_url(event_id),
            access_token=access_token,
            timeout=self.timeout_seconds,
            service_name="Google Calendar",
            body=updates,
        )
        return payload or {}

    def delete_event(self, access_token: str, event_id: str) -> None:
        google_api_request(
            method="DELETE",
            url=self._event_url(event_id),
            access_token=access_token,
            timeout=self.timeout_seconds,
            service_name="Google Calendar",
            expect_json=False,
        )

    def _event_url(self, event_id: str) -> str:
        return f"{self.CALENDAR_EVENTS_URL}/{urlparse.quote(event_id.strip(), safe='')}"
