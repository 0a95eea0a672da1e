from __future__ import annotations

import base64
from email.message import EmailMessage
from email.utils import formatdate
from html import unescape as html_unescape
import re
from typing import Any
from urllib import parse as urlparse

from .base import MailService, OutgoingEmail
from .google_api import google_api_request


class GmailClient(MailService):
    GMAIL_MESSAGES_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages"
    GMAIL_SEND_URL = "https://gmail.googleapis.com/gmail/v1/users/me/messages/send"

    def __init__(self, timeout_seconds: int = 8) -> None:
        self.timeout_seconds = max(1, int(timeout_seconds))

    def list_messages(
        self,
        access_token: str,
        query: str | None = None,
        max_results: int = 5,
        label: str | None = None,
    ) -> list[dict[str, Any]]:
        params: dict[str, object] = {"maxResults": str(max(1, max_results))}
        if query:
            params["q"] = query
        if label:
            params["labelIds"] = label
        payload = google_api_request(
            method="GET",
            url=self.GMAIL_MESSAGES_URL,
            access_token=access_token,
            timeout=self.timeout_seconds,
            service_name="Gmail",
            params=params,
        )
        rows = payload.get("messages", []) if isinstance(payload, dict) else []
        if not isinstance(rows, list):
            return []
        return [row for row in rows[:max_results] if isinstance(row, dict) and row.get("id")]

    def get_message(self, access_token: str, message_id: str) -> dict[str, Any]:
        payload = google_api_request(
            method="GET",
            url=f"{self.GMAIL_MESSAGES_URL}/{urlparse.quote(message_id.strip(), safe='')}",
            access_token=access_token,
            timeout=self.timeout_seconds,
            service_name="Gmail",
            params={"format": "full"},
        )
        return payload or {}

    def send(self, access_token: str, email: OutgoingEmail) -> dict[str, Any]:
        payload = google_api_request(
            method="POST",
            url=self.GMAIL_SEND_URL,
            access_token=access_token,
            timeout=self.timeout_seconds,
            service_name="Gmail",
            body={"raw": build_rfc822_raw(email)},
        )
        return payload or {}


def build_rfc822_raw(email: OutgoingEmail) -> str:
    msg = EmailMessage()
    msg["To"] = email.to
    if email.cc:
        msg["Cc"] = ", ".join(email.cc)
    if email.bcc:
        msg["Bcc"] = ", ".join(email.bcc)
    msg["Subject"] = (email.subject or "").strip() or "(no subject)"
    msg["Date"] = formatdate(localtime=True)
    if _looks_like_html(email.body):
        msg.set_content(_html_to_text(email.body))
        msg.add_alternative(email.body, subtype="html")
    else:
        msg.set_content(email.body)
    raw = msg.as_bytes()
    return base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")


def headers_to_map(message_payload: dict[str, object]) -> dict[str, str]:
    payload = message_payload.get("payload")
    if not isinstance(payload, dict):
        return {}
    raw_headers = payload.get("headers", [])
    if not isinstance(raw_headers, list):
        return {}
    out: dict[str, str] = {}
    for row in raw_headers:
        if not isinstance(row, dict):
            continue
        key = str(row.get("name") or "").strip().lower()
        value = str(row.get("value") or "").strip()
        if key and key not in out:
            out[key] = value
    return out


def extract_message_text(message_payload: dict[str, object]) -> str:
    payload = message_payload.get("payload")
    if not isinstance(payload, dict):
        return ""
    candidate = _walk_payload_for_part(payload, "text/plain")
    if candidate:
        return candidate
    html_candidate = _walk_payload_for_part(payload, "text/html")
    if html_candidate:
        return html_candidate
    body = payload.get("body")
    if isinstance(body, dict):
        data = body.get("data")
        if isinstance(data, str):
            return _decode_base64url_to_text(data)
    return ""


def _walk_payload_for_part(node: dict[str, object], mime: str) -> str:
    mime_type = str(node.get("mimeType") or "").lower()
    body = node.get("body")
    if mime_type == mime and isinstance(body, dict):
        data = body.get("data")
        if isinstance(data, str) and data.strip():
            return _decode_base64url_to_text(data)

    parts = node.get("parts")
    if not isinstance(parts, list):
        return ""
    for part in parts:
        if not isinstance(part, dict):
            continue
        text = _walk_payload_for_part(part, mime)
        if text:
            return text
    return ""


def _decode_base64url_to_text(raw: str) -> str:
    padded = raw + ("=" * (-len(raw) % 4))
    try:
        decoded = base64.urlsafe_b64decode(padded.encode("ascii"))
    except (ValueError, UnicodeEncodeError):
        return ""
    text = decoded.decode("utf-8", errors="replace")
    if _looks_like_html(text):
        return _html_to_text(text)
    return text


def _looks_like_html(text: str) -> bool:
    lowered = (text or "").strip().lower()
    return any(tag in lowered for tag in ("<html", "<body", "<div", "<p>", "<br"))


def _html_to_text(text: str) -> str:
    no_scripts = re.sub(r"(?is)<(script|style)\b.*?>.*?</\1>", " ", text)
    no_tags = re.sub(r"(?is)<[^>]+>", " ", no_scripts)
    return re.sub(r"\s+", " ", html_unescape(no_tags)).strip()
