from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
import json
import logging
from typing import Any, Iterable


logger = logging.getLogger(__name__)

ROLES = ("system", "user", "assistant", "tool")


@dataclass(frozen=True)
class ToolCallRequest:
    id: str
    name: str
    arguments: dict[str, Any] = field(default_factory=dict)

    def to_wire(self) -> dict[str, object]:
        return {
            "id": self.id,
            "type": "function",
            "function": {
                "name": self.name,
                "arguments": json.dumps(self.arguments),
            },
        }


@dataclass(frozen=True)
class Turn:
    role: str
    content: str
    tool_calls: tuple[ToolCallRequest, ...] = ()
    tool_call_id: str | None = None
    name: str | None = None
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise ValueError(f"Unsupported turn role '{self.role}'.")

    @classmethod
    def system(cls, content: str) -> "Turn":
        return cls(role="system", content=content)

    @classmethod
    def user(cls, content: str) -> "Turn":
        return cls(role="user", content=content)

    @classmethod
    def assistant(
        cls, content: str, tool_calls: Iterable[ToolCallRequest] = ()
    ) -> "Turn":
        return cls(role="assistant", content=content or "", tool_calls=tuple(tool_calls))

    @classmethod
    def tool_result(cls, tool_call_id: str, name: str, content: str) -> "Turn":
        return cls(role="tool", content=content, tool_call_id=tool_call_id, name=name)

    @property
    def has_tool_calls(self) -> bool:
        return self.role == "assistant" and bool(self.tool_calls)

    def to_message(self) -> dict[str, object]:
        message: dict[str, object] = {"role": self.role, "content": self.content}
        if self.tool_calls:
            message["tool_calls"] = [call.to_wire() for call in self.tool_calls]
        if self.tool_call_id:
            message["tool_call_id"] = self.tool_call_id
        if self.name and self.role == "tool":
            message["name"] = self.name
        return message


class Conversation:
    """Ordered, append-only turn log for one user.

    The system turn is never stored; ``snapshot`` prepends it at call time.
    A ``tool`` turn is accepted only while it answers an unanswered call of the
    assistant turn that opened the current tool block.
    """

    def __init__(
        self,
        conversation_id: str,
        user_id: str,
        title: str = "New Conversation",
    ) -> None:
        self.conversation_id = conversation_id
        self.user_id = user_id
        self.title = title
        self.created_at = datetime.now(timezone.utc)
        self._turns: list[Turn] = []

    @classmethod
    def restore(
        cls,
        conversation_id: str,
        user_id: str,
        turns: Iterable[Turn],
        title: str = "New Conversation",
    ) -> "Conversation":
        conversation = cls(conversation_id=conversation_id, user_id=user_id, title=title)
        for turn in turns:
            conversation.append(turn)
        return conversation

    @property
    def turns(self) -> tuple[Turn, ...]:
        return tuple(self._turns)

    def __len__(self) -> int:
        return len(self._turns)

    def append(self, turn: Turn) -> bool:
        if turn.role == "system":
            logger.warning(
                "Dropping stored system turn for conversation %s", self.conversation_id
            )
            return False
        if turn.role == "tool":
            pending = self.pending_tool_call_ids()
            if not turn.tool_call_id or turn.tool_call_id not in pending:
                logger.warning(
                    "Dropping tool turn %r without a matching assistant tool call "
                    "(conversation %s)",
                    turn.tool_call_id,
                    self.conversation_id,
                )
                return False
        self._turns.append(turn)
        return True

    def pending_tool_call_ids(self) -> list[str]:
        answered: set[str] = set()
        for turn in reversed(self._turns):
            if turn.role == "tool":
                if turn.tool_call_id:
                    answered.add(turn.tool_call_id)
                continue
            if not turn.has_tool_calls:
                return []
            return [call.id for call in turn.tool_calls if call.id not in answered]
        return []

    def snapshot(self, system_prompt: str | None = None) -> list[Turn]:
        out: list[Turn] = []
        if system_prompt:
            out.append(Turn.system(system_prompt))
        out.extend(self._turns)
        return out

    def truncate(self, max_turns: int) -> int:
        """Keep the newest ``max_turns`` turns; returns how many were removed.

        Tool turns left at the front without their assistant turn are removed
        too, so a tool-call block is never split by the cut.
        """
        if max_turns < 0:
            raise ValueError("max_turns must be >= 0")
        before = len(self._turns)
        kept = self._turns[-max_turns:] if max_turns else []
        start = 0
        while start < len(kept) and kept[start].role == "tool":
            start += 1
        self._turns = kept[start:]
        return before - len(self._turns)
