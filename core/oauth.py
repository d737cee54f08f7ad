"""OAuth2 token lifecycle: authorization-code flow, storage and silent refresh.

State per identity is one Credential in the CredentialStore. A token is
treated as expired ``REFRESH_MARGIN_SECONDS`` before its recorded expiry; the
refresh keeps the stored refresh token and only replaces access token and
expiry.
"""

from __future__ import annotations

import logging
import os
import re
import webbrowser
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional
from urllib.parse import parse_qs, urlsplit

from google.auth.exceptions import RefreshError, TransportError
from google.auth.transport.requests import Request
from google.oauth2.credentials import Credentials

from .cli_errors import (
    AuthCodeMissingError,
    AuthConfigError,
    AuthExchangeError,
    AuthRefreshError,
    NotAuthenticated,
)
from .config import Settings
from .constants import (
    GOOGLE_AUTH_URI,
    GOOGLE_TOKEN_URI,
    GOOGLE_USERINFO_URI,
    REDIRECT_URI,
    REFRESH_MARGIN_SECONDS,
    SCOPES,
)
from .credential_store import Credential, CredentialStore
from .http import get_json, transport_errors

LOG = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def extract_code(text: Optional[str]) -> Optional[str]:
    """Return the auth code from a pasted redirect URL, or the raw text itself.

    An http(s) URL yields its ``code`` query parameter (None when absent);
    anything else is taken as a bare code. Blank input yields None.
    """
    s = (text or "").strip()
    if not s:
        return None
    if re.match(r"(?i)^https?://", s):
        try:
            values = parse_qs(urlsplit(s).query).get("code")
        except ValueError:
            return None
        return values[0] if values else None
    return s


def _default_flow_factory(client_config: Dict[str, Any], scopes: List[str], redirect_uri: str):
    from google_auth_oauthlib.flow import Flow

    # Google may return scopes in another order or add openid; do not treat that as an error.
    os.environ.setdefault("OAUTHLIB_RELAX_TOKEN_SCOPE", "1")
    return Flow.from_client_config(client_config, scopes=scopes, redirect_uri=redirect_uri)


class TokenManager:
    """Acquire, persist and renew access tokens for identities (emails)."""

    def __init__(
        self,
        settings: Settings,
        store: CredentialStore,
        *,
        clock: Callable[[], datetime] = utcnow,
        input_func: Callable[[str], str] = input,
        browser_open: Callable[[str], Any] = webbrowser.open,
        flow_factory: Callable[..., Any] = _default_flow_factory,
        printer: Callable[[str], None] = print,
    ) -> None:
        self.settings = settings
        self.store = store
        self._clock = clock
        self._input = input_func
        self._browser_open = browser_open
        self._flow_factory = flow_factory
        self._print = printer

    # ---- config ----
    def _require_client(self) -> None:
        if not self.settings.has_client_credentials:
            raise AuthConfigError()

    def client_config(self) -> Dict[str, Any]:
        return {
            "installed": {
                "client_id": self.settings.client_id,
                "client_secret": self.settings.client_secret,
                "auth_uri": GOOGLE_AUTH_URI,
                "token_uri": GOOGLE_TOKEN_URI,
                "redirect_uris": [REDIRECT_URI],
            }
        }

    # ---- authorization-code flow ----
    def authenticate(self) -> str:
        """Run the interactive flow; persist the credential and return the email."""
        self._require_client()
        flow = self._flow_factory(self.client_config(), SCOPES, REDIRECT_URI)
        url, _state = flow.authorization_url(access_type="offline", prompt="consent")

        self._print("Open this URL in your browser to authorize access:")
        self._print(url)
        try:
            self._browser_open(url)
        except Exception as exc:  # nosec B110 - opening a browser is best effort
            LOG.debug("Could not open browser: %s", type(exc).__name__)

        pasted = self._input("Paste the redirected URL (or the code): ")
        code = extract_code(pasted)
        if not code:
            raise AuthCodeMissingError()

        try:
            token = flow.fetch_token(code=code)
        except Exception as exc:
            raise AuthExchangeError(f"Authorization code exchange failed: {exc}") from exc

        access_token = token.get("access_token")
        refresh_token = token.get("refresh_token")
        if not access_token or not refresh_token:
            raise AuthExchangeError("Token response did not include both access and refresh tokens")
        expires_in = int(token.get("expires_in") or DEFAULT_EXPIRES_IN)

        email = self.fetch_email(access_token)
        credential = Credential(
            access_token=access_token,
            refresh_token=refresh_token,
            expires_at=self._clock() + timedelta(seconds=expires_in),
        )
        self.store.put(email, credential)
        LOG.info("Stored credential for %s", email)
        return email

    def fetch_email(self, access_token: str) -> str:
        """Resolve an access token to the account email via userinfo."""
        try:
            status, body = get_json(GOOGLE_USERINFO_URI, access_token)
        except transport_errors() as exc:
            raise AuthExchangeError(f"Userinfo lookup failed: {exc}") from exc
        if status != 200 or not isinstance(body, dict) or not body.get("email"):
            raise AuthExchangeError(f"Userinfo lookup failed: {status}")
        return str(body["email"])

    # ---- token use ----
    def get_valid_access_token(self, identity: str) -> Optional[str]:
        """Return a live access token, refreshing silently when close to expiry."""
        credential = self.store.get(identity)
        if credential is None:
            return None
        if self._clock() >= credential.expires_at - timedelta(seconds=REFRESH_MARGIN_SECONDS):
            credential = self._refresh(identity, credential)
        return credential.access_token

    def require_access_token(self, identity: str) -> str:
        token = self.get_valid_access_token(identity)
        if not token:
            raise NotAuthenticated(identity)
        return token

    def _refresh(self, identity: str, credential: Credential) -> Credential:
        self._require_client()
        LOG.debug("Refreshing access token for %s", identity)
        gcreds = Credentials(
            token=None,
            refresh_token=credential.refresh_token,
            token_uri=GOOGLE_TOKEN_URI,
            client_id=self.settings.client_id,
            client_secret=self.settings.client_secret,
        )
        try:
            gcreds.refresh(Request())
        except (RefreshError, TransportError) as exc:
            raise AuthRefreshError(f"Token refresh failed for {identity}: {exc}") from exc

        expiry = gcreds.expiry
        if expiry is None:
            expires_at = self._clock() + timedelta(seconds=DEFAULT_EXPIRES_IN)
        elif expiry.tzinfo is None:
            # google-auth reports naive UTC
            expires_at = expiry.replace(tzinfo=timezone.utc)
        else:
            expires_at = expiry
        renewed = Credential(
            access_token=gcreds.token,
            refresh_token=credential.refresh_token,
            expires_at=expires_at,
        )
        self.store.put(identity, renewed)
        return renewed

    def revoke(self, identity: str) -> None:
        """Local sign-out: forget the stored credential."""
        self.store.delete(identity)
