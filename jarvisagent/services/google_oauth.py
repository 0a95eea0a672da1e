from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
import logging
from typing import Any, Callable
from urllib.parse import parse_qs, urlencode

import requests

from jarvisagent.errors import ReauthRequired
from jarvisagent.tools.base import Credentials

from .stores import UserAccount, UserStore
from .token_security import mask_token, redact_sensitive_text


logger = logging.getLogger(__name__)

GOOGLE_SCOPES = (
    "https://www.googleapis.com/auth/userinfo.email",
    "https://www.googleapis.com/auth/userinfo.profile",
    "https://www.googleapis.com/auth/gmail.send",
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/calendar.events",
    "https://www.googleapis.com/auth/calendar.readonly",
)

# Tokens this close to expiry are refreshed before use.
EXPIRY_SKEW = timedelta(seconds=60)


@dataclass(frozen=True)
class GoogleTokenExchange:
    access_token: str
    refresh_token: str | None
    token_type: str | None
    scope: str | None
    expires_in: int | None


class GoogleOAuthService:
    AUTH_URL = "https://accounts.google.com/o/oauth2/v2/auth"
    TOKEN_URL = "https://oauth2.googleapis.com/token"
    USERINFO_URL = "https://www.googleapis.com/oauth2/v2/userinfo"

    def __init__(
        self,
        client_id: str | None,
        client_secret: str | None,
        redirect_uri: str | None,
        users: UserStore,
        timeout_seconds: int = 8,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.client_id = (client_id or "").strip()
        self.client_secret = (client_secret or "").strip()
        self.redirect_uri = (redirect_uri or "").strip()
        self.users = users
        self.timeout_seconds = max(1, timeout_seconds)
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def is_configured(self) -> bool:
        return bool(self.client_id and self.client_secret and self.redirect_uri)

    def build_auth_url(self, state: str | None = None) -> str:
        self._require_configured()
        params = {
            "client_id": self.client_id,
            "redirect_uri": self.redirect_uri,
            "response_type": "code",
            "scope": " ".join(GOOGLE_SCOPES),
            "access_type": "offline",
            "prompt": "consent",
        }
        if state:
            params["state"] = state
        return f"{self.AUTH_URL}?{urlencode(params)}"

    def connect_account(self, code: str) -> UserAccount:
        self._require_configured()
        token = self.exchange_code(code)
        user_info = self.fetch_user_info(token.access_token)
        google_id = str(user_info.get("id") or user_info.get("sub") or "").strip()
        if not google_id:
            raise RuntimeError("Google userinfo is missing the account id.")

        existing = self.users.get_by_google_id(google_id)
        previous_refresh = (
            existing.credentials.refresh_token
            if existing is not None and existing.credentials is not None
            else None
        )
        credentials = Credentials(
            access_token=token.access_token,
            refresh_token=token.refresh_token or previous_refresh,
            expires_at=self._expires_at(token.expires_in),
            scope=token.scope,
        )
        return self.users.upsert_google_user(
            google_id=google_id,
            email=str(user_info.get("email") or ""),
            name=_opt_str(user_info.get("name")),
            credentials=credentials,
        )

    def get_valid_credentials(self, user_id: str) -> Credentials | None:
        """Return usable credentials, refreshing and persisting them when expired.

        ``None`` means no Google account is linked. ``ReauthRequired`` means one
        is linked but cannot be used without signing in again.
        """
        user = self.users.get(user_id)
        if user is None or user.credentials is None:
            return None
        current = user.credentials
        if not current.access_token and not current.refresh_token:
            return None
        if current.access_token and not current.is_expired(self._clock() + EXPIRY_SKEW):
            return current

        if not current.refresh_token:
            raise ReauthRequired("Google access token expired and no refresh token is stored.")
        try:
            refreshed = self.refresh_access_token(current.refresh_token)
        except (RuntimeError, ValueError, requests.RequestException) as exc:
            logger.warning("Google token refresh failed for user %s: %s", user_id, exc)
            raise ReauthRequired("Google token refresh failed.") from exc

        updated = Credentials(
            access_token=refreshed.access_token,
            refresh_token=refreshed.refresh_token or current.refresh_token,
            expires_at=self._expires_at(refreshed.expires_in),
            scope=refreshed.scope or current.scope,
        )
        self.users.update_credentials(user_id, updated)
        logger.info(
            "Refreshed Google access token for user %s (%s)",
            user_id,
            mask_token(updated.access_token),
        )
        return updated

    def refresh_access_token(self, refresh_token: str) -> GoogleTokenExchange:
        self._require_configured()
        return self._token_request(
            {
                "refresh_token": refresh_token.strip(),
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "grant_type": "refresh_token",
            },
            label="Google refresh",
        )

    def exchange_code(self, code: str) -> GoogleTokenExchange:
        return self._token_request(
            {
                "code": code.strip(),
                "client_id": self.client_id,
                "client_secret": self.client_secret,
                "redirect_uri": self.redirect_uri,
                "grant_type": "authorization_code",
            },
            label="Google token exchange",
        )

    def fetch_user_info(self, access_token: str) -> dict[str, Any]:
        response = requests.get(
            self.USERINFO_URL,
            headers={"Authorization": f"Bearer {access_token}"},
            timeout=self.timeout_seconds,
        )
        if not response.ok:
            raise RuntimeError(
                "Google userinfo fetch failed: "
                f"HTTP {response.status_code} {redact_sensitive_text(response.text.strip())}"
            )
        payload = response.json()
        if not isinstance(payload, dict):
            raise RuntimeError("Google userinfo returned unexpected payload.")
        return payload

    def _token_request(self, body: dict[str, str], label: str) -> GoogleTokenExchange:
        response = requests.post(
            self.TOKEN_URL,
            data=body,
            headers={"Content-Type": "application/x-www-form-urlencoded"},
            timeout=self.timeout_seconds,
        )
        if not response.ok:
            raise RuntimeError(f"{label} failed: {_extract_google_error(response)}")

        payload = response.json()
        if not isinstance(payload, dict):
            raise RuntimeError(f"{label} returned unexpected payload.")
        access_token = payload.get("access_token")
        if not isinstance(access_token, str) or not access_token.strip():
            raise RuntimeError(f"{label} missing access_token.")

        expires_in_raw = payload.get("expires_in")
        expires_in: int | None = None
        if isinstance(expires_in_raw, int):
            expires_in = expires_in_raw
        elif isinstance(expires_in_raw, str) and expires_in_raw.isdigit():
            expires_in = int(expires_in_raw)

        return GoogleTokenExchange(
            access_token=access_token.strip(),
            refresh_token=_opt_str(payload.get("refresh_token")),
            token_type=_opt_str(payload.get("token_type")),
            scope=_opt_str(payload.get("scope")),
            expires_in=expires_in,
        )

    def _expires_at(self, expires_in: int | None) -> datetime | None:
        if isinstance(expires_in, int) and expires_in > 0:
            return self._clock() + timedelta(seconds=expires_in)
        return None

    def _require_configured(self) -> None:
        if not self.is_configured():
            raise RuntimeError(
                "Google OAuth is not configured. Set GOOGLE_CLIENT_ID, "
                "GOOGLE_CLIENT_SECRET, and GOOGLE_REDIRECT_URI."
            )


def _opt_str(value: Any) -> str | None:
    return value if isinstance(value, str) and value.strip() else None


def _extract_google_error(response: requests.Response) -> str:
    text = redact_sensitive_text(response.text.strip())
    try:
        payload = response.json()
    except ValueError:
        payload = None
    if isinstance(payload, dict):
        err = payload.get("error")
        desc = payload.get("error_description")
        if isinstance(err, str) and isinstance(desc, str):
            return f"{err}: {desc}"
        if isinstance(err, str):
            return err
    if not text:
        return f"HTTP {response.status_code}"
    if "=" in text and "&" in text:
        parsed = parse_qs(text, keep_blank_values=True)
        err = parsed.get("error", [""])[0]
        desc = parsed.get("error_description", [""])[0]
        if err and desc:
            return f"{err}: {desc}"
    return text
