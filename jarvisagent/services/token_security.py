from __future__ import annotations

import re


_BEARER_PATTERN = re.compile(r"(?i)\bbearer\s+[a-z0-9\-._~+/]+=*")
_TOKENISH_PATTERN = re.compile(r"(?i)\b(access|refresh|id)_token\b[^,\n&]*")
_SECRET_FIELD_PATTERN = re.compile(r"(?i)\b(client_secret|api_key|code)=[^&\s]+")


def redact_sensitive_text(value: str | None) -> str:
    if not value:
        return ""
    out = _BEARER_PATTERN.sub("Bearer [REDACTED]", value)
    out = _TOKENISH_PATTERN.sub("[REDACTED_TOKEN_FIELD]", out)
    out = _SECRET_FIELD_PATTERN.sub(lambda match: f"{match.group(1)}=[REDACTED]", out)
    return out


def mask_token(token: str | None) -> str:
    cleaned = (token or "").strip()
    if len(cleaned) <= 8:
        return "***" if cleaned else ""
    return f"{cleaned[:4]}...{cleaned[-4:]}"
