from __future__ import annotations

from typing import Any

import requests

from jarvisagent.errors import ExternalCallFailed
from jarvisagent.services.token_security import redact_sensitive_text


def google_api_request(
    *,
    method: str,
    url: str,
    access_token: str,
    timeout: int,
    service_name: str,
    params: dict[str, object] | None = None,
    body: dict[str, object] | None = None,
    expect_json: bool = True,
) -> dict[str, Any] | None:
    headers = {
        "Accept": "application/json",
        "Authorization": f"Bearer {access_token}",
    }
    try:
        response = requests.request(
            method,
            url,
            headers=headers,
            params=params,
            json=body,
            timeout=max(1, timeout),
        )
    except requests.Timeout as exc:
        raise ExternalCallFailed(service_name, "timeout") from exc
    except requests.RequestException as exc:
        raise ExternalCallFailed(
            service_name, redact_sensitive_text(str(exc)) or "network error"
        ) from exc

    if not response.ok:
        raise ExternalCallFailed(
            service_name,
            _error_detail(response),
            status_code=response.status_code,
        )
    if not expect_json:
        return None
    try:
        payload = response.json()
    except ValueError as exc:
        raise ExternalCallFailed(service_name, "response was not valid JSON") from exc
    if not isinstance(payload, dict):
        raise ExternalCallFailed(service_name, "unexpected response payload")
    return payload


def _error_detail(response: requests.Response) -> str:
    if response.status_code in {401, 403}:
        return "authorization failed, please reconnect Google"
    if response.status_code == 404:
        return "the requested resource was not found"
    try:
        parsed = response.json()
    except ValueError:
        parsed = None
    if isinstance(parsed, dict):
        nested = parsed.get("error")
        if isinstance(nested, dict):
            message = str(nested.get("message") or "").strip()
            if message:
                return redact_sensitive_text(message)
    text = redact_sensitive_text(response.text.strip())
    return text[:300] or "request failed"
