"""Tests for core/oauth.py: code extraction, the auth flow and silent refresh."""

import unittest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock, patch

from google.auth.exceptions import RefreshError

from core.cli_errors import (
    AuthCodeMissingError,
    AuthConfigError,
    AuthExchangeError,
    AuthRefreshError,
    ExitCode,
    NotAuthenticated,
)
from core.oauth import TokenManager, extract_code
from tests.fixtures import NOW, TempDirMixin, make_credential, make_settings, make_store

EMAIL = "me@example.com"


class ExtractCodeTests(unittest.TestCase):
    def test_code_from_redirect_url(self):
        self.assertEqual(extract_code("http://localhost:8080/?code=4/abc&scope=x"), "4/abc")

    def test_url_without_code_is_none(self):
        self.assertIsNone(extract_code("https://localhost/?error=access_denied"))

    def test_bare_code_is_trimmed(self):
        self.assertEqual(extract_code("  4/xyz \n"), "4/xyz")

    def test_blank_is_none(self):
        self.assertIsNone(extract_code("   "))
        self.assertIsNone(extract_code(None))


class _TokenTestBase(TempDirMixin, unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.store = make_store(self.tmpdir)
        self.settings = make_settings(self.tmpdir)

    def manager(self, **kwargs):
        kwargs.setdefault("clock", lambda: NOW)
        kwargs.setdefault("printer", lambda _msg: None)
        kwargs.setdefault("browser_open", MagicMock())
        return TokenManager(self.settings, self.store, **kwargs)


class RefreshTests(_TokenTestBase):
    @patch("core.oauth.Request")
    @patch("core.oauth.Credentials")
    def test_token_inside_margin_is_refreshed(self, creds_cls, _request):
        self.store.put(EMAIL, make_credential(expires_in=30))
        gcreds = creds_cls.return_value
        gcreds.token = "at-2"
        gcreds.expiry = (NOW + timedelta(hours=1)).replace(tzinfo=None)

        token = self.manager().get_valid_access_token(EMAIL)

        self.assertEqual(token, "at-2")
        gcreds.refresh.assert_called_once()
        self.assertEqual(creds_cls.call_args.kwargs["refresh_token"], "rt-1")
        stored = self.store.get(EMAIL)
        self.assertEqual(stored.access_token, "at-2")
        self.assertEqual(stored.refresh_token, "rt-1")
        self.assertEqual(stored.expires_at, NOW + timedelta(hours=1))

    @patch("core.oauth.Credentials")
    def test_fresh_token_is_returned_without_network(self, creds_cls):
        self.store.put(EMAIL, make_credential(expires_in=120))
        self.assertEqual(self.manager().get_valid_access_token(EMAIL), "at-1")
        creds_cls.assert_not_called()

    @patch("core.oauth.Request")
    @patch("core.oauth.Credentials")
    def test_refresh_failure_maps_to_auth_refresh_error(self, creds_cls, _request):
        self.store.put(EMAIL, make_credential(expires_in=-10))
        creds_cls.return_value.refresh.side_effect = RefreshError("invalid_grant: Token has been revoked")

        with self.assertRaises(AuthRefreshError) as cm:
            self.manager().get_valid_access_token(EMAIL)
        self.assertEqual(cm.exception.code, ExitCode.AUTH_ERROR)
        self.assertIn("mail-cli auth", cm.exception.hint)
        # Stored credential is untouched
        self.assertEqual(self.store.get(EMAIL).access_token, "at-1")

    def test_refresh_without_client_config_is_config_error(self):
        self.settings = make_settings(self.tmpdir, client_id=None)
        self.store.put(EMAIL, make_credential(expires_in=0))
        with self.assertRaises(AuthConfigError):
            self.manager().get_valid_access_token(EMAIL)

    def test_unknown_identity(self):
        mgr = self.manager()
        self.assertIsNone(mgr.get_valid_access_token(EMAIL))
        with self.assertRaises(NotAuthenticated):
            mgr.require_access_token(EMAIL)

    def test_revoke_forgets_credential(self):
        self.store.put(EMAIL, make_credential())
        self.manager().revoke(EMAIL)
        self.assertIsNone(self.store.get(EMAIL))


class AuthenticateTests(_TokenTestBase):
    def _flow(self, token=None, error=None):
        flow = MagicMock()
        flow.authorization_url.return_value = ("https://accounts.google.com/o/oauth2/auth?x=1", "state")
        if error is not None:
            flow.fetch_token.side_effect = error
        else:
            flow.fetch_token.return_value = token or {
                "access_token": "ya29.new",
                "refresh_token": "1//refresh",
                "expires_in": 3599,
            }
        return flow

    @patch("core.oauth.get_json", return_value=(200, {"email": EMAIL}))
    def test_flow_stores_credential_and_returns_email(self, get_json):
        flow = self._flow()
        factory = MagicMock(return_value=flow)
        browser = MagicMock(side_effect=RuntimeError("no display"))
        mgr = self.manager(
            flow_factory=factory,
            input_func=lambda _prompt: "http://localhost:8080/?code=4/abc&scope=email",
            browser_open=browser,
        )

        email = mgr.authenticate()

        self.assertEqual(email, EMAIL)
        flow.authorization_url.assert_called_once_with(access_type="offline", prompt="consent")
        flow.fetch_token.assert_called_once_with(code="4/abc")
        get_json.assert_called_once()
        cred = self.store.get(EMAIL)
        self.assertEqual(cred.access_token, "ya29.new")
        self.assertEqual(cred.refresh_token, "1//refresh")
        self.assertEqual(cred.expires_at, NOW + timedelta(seconds=3599))
        client = factory.call_args.args[0]["installed"]
        self.assertEqual(client["client_id"], "cid")

    def test_missing_client_credentials(self):
        self.settings = make_settings(self.tmpdir, client_id=None, client_secret=None)
        with self.assertRaises(AuthConfigError) as cm:
            self.manager(flow_factory=MagicMock()).authenticate()
        self.assertEqual(cm.exception.code, ExitCode.CONFIG_ERROR)

    def test_blank_input_is_missing_code(self):
        mgr = self.manager(flow_factory=MagicMock(return_value=self._flow()), input_func=lambda _p: "")
        with self.assertRaises(AuthCodeMissingError):
            mgr.authenticate()

    def test_exchange_failure(self):
        mgr = self.manager(
            flow_factory=MagicMock(return_value=self._flow(error=ValueError("invalid_grant"))),
            input_func=lambda _p: "4/abc",
        )
        with self.assertRaises(AuthExchangeError):
            mgr.authenticate()
        self.assertIsNone(self.store.get(EMAIL))

    def test_response_without_refresh_token(self):
        flow = self._flow(token={"access_token": "ya29.only", "expires_in": 3600})
        mgr = self.manager(flow_factory=MagicMock(return_value=flow), input_func=lambda _p: "4/abc")
        with self.assertRaises(AuthExchangeError):
            mgr.authenticate()

    @patch("core.oauth.get_json", return_value=(401, {"error": "invalid_token"}))
    def test_userinfo_failure(self, _get_json):
        mgr = self.manager(flow_factory=MagicMock(return_value=self._flow()), input_func=lambda _p: "4/abc")
        with self.assertRaises(AuthExchangeError):
            mgr.authenticate()


class ExpiryClockTests(_TokenTestBase):
    @patch("core.oauth.Request")
    @patch("core.oauth.Credentials")
    def test_missing_expiry_defaults_to_one_hour(self, creds_cls, _request):
        self.store.put(EMAIL, make_credential(expires_in=0))
        creds_cls.return_value.token = "at-3"
        creds_cls.return_value.expiry = None
        later = datetime(2026, 1, 15, 12, 0, 5, tzinfo=timezone.utc)
        self.manager(clock=lambda: later).get_valid_access_token(EMAIL)
        self.assertEqual(self.store.get(EMAIL).expires_at, later + timedelta(hours=1))


if __name__ == "__main__":
    unittest.main()
