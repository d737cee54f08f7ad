"""Thin requests helpers with default timeouts and bearer auth."""

from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from .constants import DEFAULT_REQUEST_TIMEOUT
from .secrets import mask_headers, mask_url

LOG = logging.getLogger(__name__)

# Lazy optional dep: avoid importing on --help
requests = None  # type: ignore


class _TimeoutRequestsWrapper:
    """Wrapper around requests module that adds default timeout to all calls."""

    def __init__(self, requests_module, default_timeout):
        self._requests = requests_module
        self._timeout = default_timeout

    def get(self, url, **kwargs):
        kwargs.setdefault("timeout", self._timeout)
        return self._requests.get(url, **kwargs)


_requests_wrapper = None  # type: ignore


def _requests():  # type: ignore
    """Return requests module wrapped with default timeout."""
    global requests, _requests_wrapper
    if _requests_wrapper is None:  # pragma: no cover - optional import
        import requests as _req  # type: ignore
        requests = _req
        _requests_wrapper = _TimeoutRequestsWrapper(_req, DEFAULT_REQUEST_TIMEOUT)
    return _requests_wrapper


def bearer_headers(access_token: str) -> Dict[str, str]:
    return {"Authorization": f"Bearer {access_token}"}


def get_json(url: str, access_token: str, params: Optional[Dict[str, Any]] = None):
    """GET ``url`` with a bearer token; return (status, parsed-json-or-text)."""
    headers = bearer_headers(access_token)
    LOG.debug("GET %s headers=%s", mask_url(url), mask_headers(headers))
    resp = _requests().get(url, headers=headers, params=params)
    try:
        body = resp.json()
    except ValueError:
        body = resp.text
    return resp.status_code, body


def transport_errors() -> tuple:
    """Exception types raised by requests for network failures."""
    _requests()
    return (requests.RequestException,)  # type: ignore[union-attr]
