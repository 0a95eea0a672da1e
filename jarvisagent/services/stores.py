from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
import secrets
import threading
from typing import Iterator
from uuid import uuid4

from jarvisagent.services.conversation import Conversation
from jarvisagent.tools.base import Credentials


@dataclass(frozen=True)
class UserAccount:
    id: str
    email: str
    name: str | None = None
    google_id: str | None = None
    credentials: Credentials | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    @property
    def google_connected(self) -> bool:
        return self.credentials is not None and bool(self.credentials.access_token)


class UserStore:
    """In-memory user records, linked Google credentials and session tokens."""

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._users: dict[str, UserAccount] = {}
        self._by_google_id: dict[str, str] = {}
        self._sessions: dict[str, str] = {}

    def get(self, user_id: str) -> UserAccount | None:
        with self._lock:
            return self._users.get(user_id)

    def get_by_google_id(self, google_id: str) -> UserAccount | None:
        with self._lock:
            user_id = self._by_google_id.get(google_id)
            return self._users.get(user_id) if user_id else None

    def upsert_google_user(
        self,
        *,
        google_id: str,
        email: str,
        name: str | None,
        credentials: Credentials,
    ) -> UserAccount:
        with self._lock:
            user_id = self._by_google_id.get(google_id)
            existing = self._users.get(user_id) if user_id else None
            if existing is None:
                user = UserAccount(
                    id=str(uuid4()),
                    email=email,
                    name=name,
                    google_id=google_id,
                    credentials=credentials,
                )
            else:
                user = replace(
                    existing,
                    email=email or existing.email,
                    name=name or existing.name,
                    credentials=credentials,
                )
            self._users[user.id] = user
            self._by_google_id[google_id] = user.id
            return user

    def update_credentials(
        self, user_id: str, credentials: Credentials | None
    ) -> UserAccount:
        with self._lock:
            existing = self._users.get(user_id)
            if existing is None:
                raise KeyError(f"User '{user_id}' does not exist.")
            user = replace(existing, credentials=credentials)
            self._users[user_id] = user
            return user

    def create_session(self, user_id: str) -> str:
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[token] = user_id
        return token

    def resolve_session(self, token: str | None) -> UserAccount | None:
        if not token:
            return None
        with self._lock:
            user_id = self._sessions.get(token)
            return self._users.get(user_id) if user_id else None

    def end_session(self, token: str | None) -> bool:
        if not token:
            return False
        with self._lock:
            return self._sessions.pop(token, None) is not None


class ConversationStore:
    """In-memory conversations with one lock per conversation.

    Holding ``lock(conversation_id)`` for a whole exchange keeps exchanges on
    the same conversation from interleaving; other conversations are unaffected.
    """

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._conversations: dict[str, Conversation] = {}
        self._locks: dict[str, threading.Lock] = {}

    def create(self, user_id: str, title: str = "New Conversation") -> Conversation:
        conversation = Conversation(
            conversation_id=str(uuid4()), user_id=user_id, title=title
        )
        with self._guard:
            self._conversations[conversation.conversation_id] = conversation
            self._locks[conversation.conversation_id] = threading.Lock()
        return conversation

    def get(self, conversation_id: str) -> Conversation | None:
        with self._guard:
            return self._conversations.get(conversation_id)

    def get_for_user(self, conversation_id: str, user_id: str) -> Conversation | None:
        conversation = self.get(conversation_id)
        if conversation is None or conversation.user_id != user_id:
            return None
        return conversation

    def list_for_user(self, user_id: str) -> list[Conversation]:
        with self._guard:
            rows = [c for c in self._conversations.values() if c.user_id == user_id]
        return sorted(rows, key=lambda c: c.created_at, reverse=True)

    def delete_for_user(self, user_id: str) -> int:
        with self._guard:
            doomed = [cid for cid, c in self._conversations.items() if c.user_id == user_id]
            for cid in doomed:
                self._conversations.pop(cid, None)
                self._locks.pop(cid, None)
        return len(doomed)

    @contextmanager
    def lock(self, conversation_id: str) -> Iterator[None]:
        with self._guard:
            lock = self._locks.setdefault(conversation_id, threading.Lock())
        with lock:
            yield
