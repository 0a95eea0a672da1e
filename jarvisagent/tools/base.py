from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any


@dataclass(frozen=True)
class Credentials:
    access_token: str
    refresh_token: str | None = None
    expires_at: datetime | None = None
    scope: str | None = None

    def is_expired(self, now: datetime | None = None) -> bool:
        if self.expires_at is None:
            return False
        current = now or datetime.now(timezone.utc)
        return current >= self.expires_at


@dataclass(frozen=True)
class OutgoingEmail:
    to: str
    subject: str
    body: str
    cc: tuple[str, ...] = ()
    bcc: tuple[str, ...] = ()


@dataclass(frozen=True)
class EventTime:
    date_time: str
    time_zone: str | None = None

    def to_payload(self) -> dict[str, str]:
        payload = {"dateTime": self.date_time}
        if self.time_zone:
            payload["timeZone"] = self.time_zone
        return payload


class MailService(ABC):
    @abstractmethod
    def list_messages(
        self,
        access_token: str,
        query: str | None = None,
        max_results: int = 5,
        label: str | None = None,
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def get_message(self, access_token: str, message_id: str) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def send(self, access_token: str, email: OutgoingEmail) -> dict[str, Any]:
        raise NotImplementedError


class CalendarService(ABC):
    @abstractmethod
    def list_events(
        self,
        access_token: str,
        time_min: str,
        time_max: str,
        query: str | None = None,
        max_results: int | None = None,
    ) -> list[dict[str, Any]]:
        raise NotImplementedError

    @abstractmethod
    def create_event(self, access_token: str, event: dict[str, Any]) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def update_event(
        self, access_token: str, event_id: str, updates: dict[str, Any]
    ) -> dict[str, Any]:
        raise NotImplementedError

    @abstractmethod
    def delete_event(self, access_token: str, event_id: str) -> None:
        raise NotImplementedError
