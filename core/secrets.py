"""Secret masking utilities for logs, errors, and URLs.

Conservative, stdlib-only masking. Anything that may carry an OAuth token is
passed through here before it reaches a log file or stderr.
"""

from __future__ import annotations

import re
from typing import Dict
from urllib.parse import parse_qsl, urlsplit, urlunsplit


SENSITIVE_PARAM_KEYS = {
    "token",
    "access_token",
    "refresh_token",
    "id_token",
    "code",
    "auth",
    "authorization",
    "password",
    "secret",
    "client_secret",
}

_JSON_KEYS = r"access[_-]?token|refresh[_-]?token|id[_-]?token|accessToken|refreshToken|token|secret|client_secret|password"


def _mask_value(value: str) -> str:
    if not value:
        return value
    s = value.strip().lower()
    if s.startswith("bearer "):
        return "Bearer ***REDACTED***"
    if s.startswith("basic "):
        return "Basic ***REDACTED***"
    return "***REDACTED***"


def mask_headers(headers: Dict[str, str]) -> Dict[str, str]:
    masked: Dict[str, str] = {}
    for k, v in (headers or {}).items():
        lk = (k or "").strip().lower()
        if lk in {"authorization", "proxy-authorization"}:
            masked[k] = _mask_value(v)
        else:
            masked[k] = v
    return masked


def mask_url(url: str) -> str:
    try:
        parts = urlsplit(url or "")
        qs = parse_qsl(parts.query, keep_blank_values=True)
    except ValueError:
        return url
    items = []
    for k, v in qs:
        if (k or "").strip().lower() in SENSITIVE_PARAM_KEYS:
            items.append(f"{k}=***REDACTED***")
        else:
            items.append(f"{k}={v}")
    return urlunsplit((parts.scheme, parts.netloc, parts.path, "&".join(items), parts.fragment))


def mask_text(text: str) -> str:
    s = text or ""
    # Authorization: Scheme token
    s = re.sub(r"(?i)(Authorization\s*:\s*)(Bearer|Basic)\s+[^\s]+", r"\1\2 ***REDACTED***", s)
    s = re.sub(r"(?i)\bBearer\s+[A-Za-z0-9\-\._~+/]+=*", "Bearer ***REDACTED***", s)
    # JSON fields
    s = re.sub(r"(?i)(\"(?:" + _JSON_KEYS + r")\"\s*:\s*\")(.*?)(\")", r"\1***REDACTED***\3", s)
    # Google token shapes
    s = re.sub(r"ya29\.[A-Za-z0-9\-_\.]+", "ya29.***REDACTED***", s)
    s = re.sub(r"1//[A-Za-z0-9\-_]{20,}", "1//***REDACTED***", s)
    # URL query tokens
    s = re.sub(r"(?i)([?&](?:" + "|".join(map(re.escape, SENSITIVE_PARAM_KEYS)) + ")=)([^&\s]+)", r"\1***REDACTED***", s)
    return s
