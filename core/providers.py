"""Shared plumbing for Google provider adapters.

Each remote operation obtains a live access token first (failing fast with
NotAuthenticated), reuses a discovery client while the token is unchanged, and
wraps transport and HTTP failures into ProviderError once at this boundary.
"""

from __future__ import annotations

import logging
from typing import Any, Callable, Optional

import httplib2
from google.auth.exceptions import TransportError
from google.oauth2.credentials import Credentials
from googleapiclient.discovery import build
from googleapiclient.errors import HttpError

from .cli_errors import ProviderError
from .oauth import TokenManager

LOG = logging.getLogger(__name__)

ServiceFactory = Callable[[str, str, str], Any]


def build_google_service(api: str, version: str, access_token: str):
    """Build a googleapiclient resource authorized with a bare access token."""
    creds = Credentials(token=access_token)
    return build(api, version, credentials=creds, cache_discovery=False)


def _http_error_body(exc: HttpError) -> str:
    content = getattr(exc, "content", b"") or b""
    if isinstance(content, bytes):
        return content.decode("utf-8", errors="replace")
    return str(content)


class GoogleAdapter:
    """Base for the Gmail and Calendar adapters (one identity per instance)."""

    api_name = ""
    api_version = ""
    api_label = "Google"

    def __init__(
        self,
        email: str,
        tokens: TokenManager,
        *,
        service_factory: Optional[ServiceFactory] = None,
    ) -> None:
        self.email = email
        self.tokens = tokens
        self._service_factory = service_factory or build_google_service
        self._service = None
        self._service_token: Optional[str] = None

    @property
    def service(self):
        token = self.tokens.require_access_token(self.email)
        if self._service is None or token != self._service_token:
            self._service = self._service_factory(self.api_name, self.api_version, token)
            self._service_token = token
        return self._service

    def _execute(self, request: Any) -> Any:
        """Run one googleapiclient request, mapping failures to ProviderError."""
        try:
            return request.execute()
        except HttpError as exc:
            status = getattr(getattr(exc, "resp", None), "status", None)
            raise ProviderError(self.api_label, int(status) if status is not None else None, _http_error_body(exc)) from exc
        except (TransportError, httplib2.HttpLib2Error, OSError) as exc:
            raise ProviderError(self.api_label, None, str(exc)) from exc
