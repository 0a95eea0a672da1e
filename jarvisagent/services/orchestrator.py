from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum
import logging
from typing import Callable, Protocol

from jarvisagent.errors import LLMCallFailed, ReauthRequired
from jarvisagent.services.conversation import Conversation, Turn
from jarvisagent.services.executor import IntegrationExecutor, ToolOutcome
from jarvisagent.services.llm_client import LLMReply
from jarvisagent.tools.base import Credentials
from jarvisagent.tools.registry import IntegrationRegistry


logger = logging.getLogger(__name__)

SYSTEM_PROMPT = """You are Jarvis, an AI assistant specialized in Gmail and Google Calendar management. Follow these rules:
1. NEVER use placeholder data (like example@email.com or "Meeting with X")
2. For actions requiring specific details (emails/events), ALWAYS ask for:
   - Recipient's REAL email address for emails
   - Specific date/time for calendar events
   - Complete details before taking action
3. Be concise but thorough in responses
4. Confirm actions with user before executing
5. If a tool result reports an error, explain it plainly and suggest what to do next"""

FALLBACK_REPLY = (
    "Sorry, I encountered an error processing your request. Please try again later."
)


class ExchangeState(str, Enum):
    IDLE = "idle"
    AWAITING_FIRST_REPLY = "awaiting_first_reply"
    NO_TOOL_CALLS = "no_tool_calls"
    HAS_TOOL_CALLS = "has_tool_calls"
    EXECUTING_TOOLS = "executing_tools"
    AWAITING_FINAL_REPLY = "awaiting_final_reply"
    DONE = "done"


class ChatModel(Protocol):
    def complete(
        self,
        *,
        messages: list[dict[str, object]],
        tools: list[dict[str, object]] | None = None,
    ) -> LLMReply: ...


class CredentialsProvider(Protocol):
    def get_valid_credentials(self, user_id: str) -> Credentials | None: ...


@dataclass(frozen=True)
class ExchangeResult:
    turn: Turn
    tool_outcomes: tuple[ToolOutcome, ...] = ()
    states: tuple[ExchangeState, ...] = ()
    llm_failed: bool = False
    reauth_required: bool = False


class ChatOrchestrator:
    """Drives one user message through at most one round of tool calls.

    IDLE -> AWAITING_FIRST_REPLY -> NO_TOOL_CALLS -> DONE, or
    IDLE -> AWAITING_FIRST_REPLY -> HAS_TOOL_CALLS -> EXECUTING_TOOLS
         -> AWAITING_FINAL_REPLY -> DONE.

    The second LLM call never offers tools, so a reply cannot start another
    round. LLM failures and expired Google access end the exchange with a
    fixed assistant message instead of raising.
    """

    def __init__(
        self,
        llm: ChatModel,
        executor: IntegrationExecutor,
        registry: IntegrationRegistry,
        auth: CredentialsProvider | None = None,
        max_history_turns: int = 10,
        system_prompt: str = SYSTEM_PROMPT,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self._llm = llm
        self._executor = executor
        self._registry = registry
        self._auth = auth
        self._max_history_turns = max(2, max_history_turns)
        self._system_prompt = system_prompt
        self._clock = clock or (lambda: datetime.now().astimezone())

    def handle_user_message(
        self,
        conversation: Conversation,
        text: str,
        user_id: str | None = None,
    ) -> ExchangeResult:
        states = [ExchangeState.IDLE]
        conversation.append(Turn.user(text))
        states.append(ExchangeState.AWAITING_FIRST_REPLY)

        try:
            credentials = self._resolve_credentials(user_id)
        except ReauthRequired as exc:
            logger.warning("Google re-authentication required for user %s: %s", user_id, exc)
            return self._finish(
                conversation, exc.user_message, states, reauth_required=True
            )

        tools = self._registry.tool_schema() if credentials is not None else None
        try:
            reply = self._complete(conversation, tools)
        except LLMCallFailed as exc:
            logger.warning("First LLM call failed for %s: %s", conversation.conversation_id, exc)
            return self._finish(conversation, FALLBACK_REPLY, states, llm_failed=True)

        if not tools or not reply.has_tool_calls:
            states.append(ExchangeState.NO_TOOL_CALLS)
            return self._finish(conversation, reply.content or FALLBACK_REPLY, states)

        states.append(ExchangeState.HAS_TOOL_CALLS)
        conversation.append(Turn.assistant(reply.content, reply.tool_calls))
        states.append(ExchangeState.EXECUTING_TOOLS)

        outcomes: list[ToolOutcome] = []
        reauth: ReauthRequired | None = None
        for call in reply.tool_calls:
            outcome: ToolOutcome | None = None
            if reauth is None:
                try:
                    # Re-resolved per call so a mid-exchange refresh is picked up.
                    credentials = self._resolve_credentials(user_id)
                    outcome = self._executor.run(call, credentials)
                except ReauthRequired as exc:
                    logger.warning("Google access lost during tool call %s: %s", call.id, exc)
                    reauth = exc
            if outcome is None:
                outcome = ToolOutcome(
                    tool_call_id=call.id,
                    name=call.name,
                    success=False,
                    error=reauth.user_message if reauth else "Tool call was not executed.",
                )
            outcomes.append(outcome)
            conversation.append(Turn.tool_result(call.id, call.name, outcome.to_content()))

        if reauth is not None:
            return self._finish(
                conversation,
                reauth.user_message,
                states,
                outcomes=outcomes,
                reauth_required=True,
            )

        states.append(ExchangeState.AWAITING_FINAL_REPLY)
        try:
            final = self._complete(conversation, tools=None)
        except LLMCallFailed as exc:
            logger.warning("Final LLM call failed for %s: %s", conversation.conversation_id, exc)
            return self._finish(
                conversation, FALLBACK_REPLY, states, outcomes=outcomes, llm_failed=True
            )
        return self._finish(
            conversation, final.content or FALLBACK_REPLY, states, outcomes=outcomes
        )

    def system_prompt(self) -> str:
        now = self._clock()
        return f"{self._system_prompt}\n\nCurrent date and time: {now.isoformat(timespec='minutes')}"

    def _resolve_credentials(self, user_id: str | None) -> Credentials | None:
        if self._auth is None or not user_id:
            return None
        return self._auth.get_valid_credentials(user_id)

    def _complete(
        self, conversation: Conversation, tools: list[dict[str, object]] | None
    ) -> LLMReply:
        messages = [turn.to_message() for turn in conversation.snapshot(self.system_prompt())]
        return self._llm.complete(messages=messages, tools=tools)

    def _finish(
        self,
        conversation: Conversation,
        content: str,
        states: list[ExchangeState],
        outcomes: list[ToolOutcome] | None = None,
        llm_failed: bool = False,
        reauth_required: bool = False,
    ) -> ExchangeResult:
        turn = Turn.assistant(content)
        conversation.append(turn)
        states.append(ExchangeState.DONE)
        conversation.truncate(self._max_history_turns)
        return ExchangeResult(
            turn=turn,
            tool_outcomes=tuple(outcomes or ()),
            states=tuple(states),
            llm_failed=llm_failed,
            reauth_required=reauth_required,
        )
