import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch
from urllib.parse import parse_qs, urlparse

import requests

from jarvisagent.errors import ReauthRequired
from jarvisagent.services.google_oauth import (
    GOOGLE_SCOPES,
    GoogleOAuthService,
    GoogleTokenExchange,
)
from jarvisagent.services.stores import UserAccount, UserStore
from jarvisagent.tools.base import Credentials

_NOW = datetime(2025, 3, 14, 9, 0, tzinfo=timezone.utc)


def _service(users: UserStore) -> GoogleOAuthService:
    return GoogleOAuthService(
        client_id="cid",
        client_secret="secret",
        redirect_uri="https://app.example.com/callback",
        users=users,
        clock=lambda: _NOW,
    )


def _token_response(status_code=200, payload=None, text=""):
    response = MagicMock()
    response.ok = 200 <= status_code < 300
    response.status_code = status_code
    response.text = text
    response.json.return_value = payload
    return response


class GoogleOAuthServiceTests(unittest.TestCase):
    def setUp(self):
        self.users = UserStore()
        self.service = _service(self.users)

    def _linked_user(self, credentials: Credentials) -> UserAccount:
        user = self.users.upsert_google_user(
            google_id="google-sub-1",
            email="me@example.com",
            name=None,
            credentials=credentials,
        )
        self.user_id = user.id
        return user

    def test_build_auth_url_requests_offline_access_for_all_scopes(self):
        url = self.service.build_auth_url(state="xyz")

        query = parse_qs(urlparse(url).query)
        self.assertEqual(query["access_type"], ["offline"])
        self.assertEqual(query["prompt"], ["consent"])
        self.assertEqual(query["state"], ["xyz"])
        self.assertEqual(query["scope"][0].split(" "), list(GOOGLE_SCOPES))

    def test_unconfigured_service_refuses_to_build_url(self):
        service = GoogleOAuthService(
            client_id="", client_secret=None, redirect_uri=None, users=self.users
        )

        self.assertFalse(service.is_configured())
        with self.assertRaises(RuntimeError):
            service.build_auth_url()

    def test_connect_account_creates_user_with_expiry(self):
        with patch.object(
            self.service,
            "exchange_code",
            return_value=GoogleTokenExchange(
                access_token="new-access",
                refresh_token="new-refresh",
                token_type="Bearer",
                scope="email",
                expires_in=3600,
            ),
        ), patch.object(
            self.service,
            "fetch_user_info",
            return_value={"id": "google-sub-1", "email": "me@example.com", "name": "Me"},
        ):
            user = self.service.connect_account("auth-code")

        self.assertEqual(user.email, "me@example.com")
        self.assertTrue(user.google_connected)
        self.assertEqual(user.credentials.refresh_token, "new-refresh")
        self.assertEqual(user.credentials.expires_at, _NOW + timedelta(seconds=3600))
        self.assertEqual(self.users.get_by_google_id("google-sub-1").id, user.id)

    def test_connect_account_keeps_previous_refresh_token(self):
        self._linked_user(Credentials(access_token="old", refresh_token="old-refresh"))
        with patch.object(
            self.service,
            "exchange_code",
            return_value=GoogleTokenExchange(
                access_token="new-access",
                refresh_token=None,
                token_type="Bearer",
                scope=None,
                expires_in=3600,
            ),
        ), patch.object(
            self.service,
            "fetch_user_info",
            return_value={"sub": "google-sub-1", "email": "me@example.com"},
        ):
            user = self.service.connect_account("auth-code")

        self.assertEqual(user.id, self.user_id)
        self.assertEqual(user.credentials.access_token, "new-access")
        self.assertEqual(user.credentials.refresh_token, "old-refresh")

    def test_get_valid_credentials_returns_none_when_not_linked(self):
        self._linked_user(Credentials(access_token="tok"))
        self.users.update_credentials(self.user_id, None)

        self.assertIsNone(self.service.get_valid_credentials(self.user_id))
        self.assertIsNone(self.service.get_valid_credentials("missing"))

    def test_get_valid_credentials_returns_fresh_token_untouched(self):
        creds = Credentials(access_token="live", expires_at=_NOW + timedelta(hours=1))
        self._linked_user(creds)

        with patch.object(self.service, "refresh_access_token") as refresh:
            self.assertEqual(self.service.get_valid_credentials(self.user_id), creds)
        refresh.assert_not_called()

    def test_get_valid_credentials_refreshes_near_expiry_and_persists(self):
        self._linked_user(
            Credentials(
                access_token="stale",
                refresh_token="r-1",
                expires_at=_NOW + timedelta(seconds=30),
            )
        )
        with patch.object(
            self.service,
            "refresh_access_token",
            return_value=GoogleTokenExchange(
                access_token="fresh",
                refresh_token=None,
                token_type="Bearer",
                scope=None,
                expires_in=3599,
            ),
        ) as refresh, self.assertLogs("jarvisagent.services.google_oauth", level="INFO"):
            creds = self.service.get_valid_credentials(self.user_id)

        refresh.assert_called_once_with("r-1")
        self.assertEqual(creds.access_token, "fresh")
        self.assertEqual(creds.refresh_token, "r-1")
        self.assertEqual(self.users.get(self.user_id).credentials.access_token, "fresh")

    def test_expired_without_refresh_token_requires_reauth(self):
        self._linked_user(
            Credentials(access_token="stale", expires_at=_NOW - timedelta(minutes=5))
        )

        with self.assertRaises(ReauthRequired):
            self.service.get_valid_credentials(self.user_id)

    def test_failed_refresh_requires_reauth(self):
        self._linked_user(
            Credentials(
                access_token="stale",
                refresh_token="r-1",
                expires_at=_NOW - timedelta(minutes=5),
            )
        )
        with patch(
            "jarvisagent.services.google_oauth.requests.post",
            return_value=_token_response(
                status_code=400,
                payload={"error": "invalid_grant", "error_description": "Token revoked"},
                text='{"error": "invalid_grant"}',
            ),
        ):
            with self.assertRaises(ReauthRequired):
                self.service.get_valid_credentials(self.user_id)

        self.assertEqual(self.users.get(self.user_id).credentials.access_token, "stale")

    def test_network_error_during_refresh_requires_reauth(self):
        self._linked_user(
            Credentials(
                access_token="stale",
                refresh_token="r-1",
                expires_at=_NOW - timedelta(minutes=5),
            )
        )
        with patch(
            "jarvisagent.services.google_oauth.requests.post",
            side_effect=requests.ConnectionError("down"),
        ):
            with self.assertRaises(ReauthRequired):
                self.service.get_valid_credentials(self.user_id)

    def test_token_request_parses_string_expiry(self):
        with patch(
            "jarvisagent.services.google_oauth.requests.post",
            return_value=_token_response(
                payload={"access_token": " abc ", "expires_in": "120", "scope": "email"}
            ),
        ) as post:
            token = self.service.exchange_code(" code-1 ")

        self.assertEqual(token.access_token, "abc")
        self.assertEqual(token.expires_in, 120)
        self.assertIsNone(token.refresh_token)
        self.assertEqual(post.call_args.kwargs["data"]["code"], "code-1")
        self.assertEqual(post.call_args.kwargs["data"]["grant_type"], "authorization_code")

    def test_token_request_error_includes_google_description(self):
        with patch(
            "jarvisagent.services.google_oauth.requests.post",
            return_value=_token_response(
                status_code=400,
                payload={"error": "invalid_grant", "error_description": "Bad code"},
                text="{}",
            ),
        ):
            with self.assertRaises(RuntimeError) as ctx:
                self.service.exchange_code("code-1")

        self.assertIn("invalid_grant: Bad code", str(ctx.exception))


if __name__ == "__main__":
    unittest.main()
