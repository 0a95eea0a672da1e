from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any
from uuid import uuid4

import requests

from jarvisagent.errors import LLMCallFailed, MalformedToolArguments
from jarvisagent.services.conversation import ToolCallRequest
from jarvisagent.services.token_security import redact_sensitive_text


logger = logging.getLogger(__name__)

_DEFAULT_BASE_URLS = {
    "mistral": "https://api.mistral.ai/v1",
    "groq": "https://api.groq.com/openai/v1",
    "openai": "https://api.openai.com/v1",
    "openai_compatible": "https://api.openai.com/v1",
}


@dataclass(frozen=True)
class OpenAICompatibleConfig:
    provider: str
    model: str
    api_key: str
    timeout_seconds: int
    api_base_url: str | None = None
    temperature: float = 0.7
    max_tokens: int = 1000


@dataclass(frozen=True)
class LLMReply:
    content: str
    tool_calls: tuple[ToolCallRequest, ...] = ()

    @property
    def has_tool_calls(self) -> bool:
        return bool(self.tool_calls)


class OpenAICompatibleClient:
    def __init__(self, cfg: OpenAICompatibleConfig) -> None:
        provider = (cfg.provider or "").strip().lower()
        if provider not in _DEFAULT_BASE_URLS:
            raise ValueError(
                "provider must be one of: " + ", ".join(sorted(_DEFAULT_BASE_URLS))
            )

        api_key = (cfg.api_key or "").strip()
        if not api_key:
            raise RuntimeError("LLM API key is required.")

        self._model = (cfg.model or "").strip()
        if not self._model:
            raise RuntimeError("LLM model is required.")

        self._api_key = api_key
        self._timeout_seconds = max(1, int(cfg.timeout_seconds))
        self._temperature = cfg.temperature
        self._max_tokens = max(1, int(cfg.max_tokens))
        base = (cfg.api_base_url or "").strip() or _DEFAULT_BASE_URLS[provider]
        self._base_url = base.rstrip("/")

    def complete(
        self,
        *,
        messages: list[dict[str, object]],
        tools: list[dict[str, object]] | None = None,
    ) -> LLMReply:
        payload: dict[str, object] = {
            "model": self._model,
            "messages": messages,
            "temperature": self._temperature,
            "max_tokens": self._max_tokens,
        }
        if tools:
            payload["tools"] = tools
            payload["tool_choice"] = "auto"
        try:
            response = requests.post(
                f"{self._base_url}/chat/completions",
                headers={
                    "Authorization": f"Bearer {self._api_key}",
                    "Content-Type": "application/json",
                    "Accept": "application/json",
                },
                json=payload,
                timeout=self._timeout_seconds,
            )
        except requests.Timeout as exc:
            raise LLMCallFailed("timeout") from exc
        except requests.RequestException as exc:
            raise LLMCallFailed(f"network error: {redact_sensitive_text(str(exc))}") from exc

        if not response.ok:
            detail = redact_sensitive_text(response.text.strip())
            raise LLMCallFailed(f"status {response.status_code}: {detail[:400] or 'request failed'}")
        try:
            body = response.json()
        except ValueError as exc:
            raise LLMCallFailed("response was not valid JSON") from exc
        return parse_completion(body)


def parse_completion(body: object) -> LLMReply:
    if not isinstance(body, dict):
        raise LLMCallFailed("unexpected payload")
    choices = body.get("choices")
    if not isinstance(choices, list) or not choices:
        raise LLMCallFailed("no choices")
    row = choices[0]
    if not isinstance(row, dict):
        raise LLMCallFailed("malformed choice row")
    message = row.get("message")
    if not isinstance(message, dict):
        raise LLMCallFailed("missing message payload")

    content = _message_text(message.get("content"))
    tool_calls = _parse_tool_calls(message.get("tool_calls"))
    if not content and not tool_calls:
        raise LLMCallFailed("empty completion")
    return LLMReply(content=content, tool_calls=tool_calls)


def decode_tool_arguments(raw: object) -> dict[str, Any]:
    if raw is None:
        return {}
    if isinstance(raw, dict):
        return raw
    if not isinstance(raw, str):
        raise MalformedToolArguments(repr(raw))
    text = raw.strip()
    if not text:
        return {}
    try:
        parsed = json.loads(text)
    except json.JSONDecodeError as exc:
        raise MalformedToolArguments(text) from exc
    if not isinstance(parsed, dict):
        raise MalformedToolArguments(text)
    return parsed


def parse_tool_arguments(raw: object) -> dict[str, Any]:
    try:
        return decode_tool_arguments(raw)
    except MalformedToolArguments as exc:
        logger.warning("%s; continuing with empty arguments", exc)
        return {}


def _parse_tool_calls(raw_calls: object) -> tuple[ToolCallRequest, ...]:
    if not isinstance(raw_calls, list):
        return ()
    out: list[ToolCallRequest] = []
    seen: set[str] = set()
    for raw in raw_calls:
        if not isinstance(raw, dict):
            continue
        function = raw.get("function")
        if not isinstance(function, dict):
            function = {}
        call_id = str(raw.get("id") or "").strip()
        if not call_id or call_id in seen:
            # Each tool result must answer exactly one call id.
            call_id = f"call_{uuid4().hex[:12]}"
        seen.add(call_id)
        out.append(
            ToolCallRequest(
                id=call_id,
                name=str(function.get("name") or "").strip(),
                arguments=parse_tool_arguments(function.get("arguments")),
            )
        )
    return tuple(out)


def _message_text(content: object) -> str:
    if isinstance(content, str):
        return content.strip()
    if isinstance(content, list):
        chunks: list[str] = []
        for part in content:
            if not isinstance(part, dict):
                continue
            chunk = str(part.get("text", "")).strip()
            if chunk:
                chunks.append(chunk)
        return "\n".join(chunks)
    return ""
