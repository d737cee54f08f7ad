"""Shared constants used by the mail and calendar CLIs.

Paths, endpoints, scopes and defaults live here so both entry points and the
core layer agree on them.
"""

from __future__ import annotations

import os
from typing import Tuple

# -----------------------------------------------------------------------------
# Config paths
# -----------------------------------------------------------------------------

APP_NAME = "mail-cli"


def _config_roots() -> list[str]:
    """Return ordered list of config root directories."""
    roots: list[str] = []
    env_cfg = os.environ.get("CREDENTIALS")
    if env_cfg:
        roots.append(os.path.expanduser(os.path.dirname(env_cfg)))
    xdg = os.environ.get("XDG_CONFIG_HOME")
    if xdg:
        roots.append(os.path.expanduser(xdg))
    roots.append(os.path.expanduser("~/.config"))
    return roots


def app_home() -> str:
    """Directory holding the cache database, fallback token file and logs."""
    return os.path.join(_config_roots()[0], APP_NAME)


def credential_ini_paths() -> list[str]:
    """Return ordered list of credentials.ini paths to search."""
    paths: list[str] = []

    env_creds = os.environ.get("CREDENTIALS")
    if env_creds:
        paths.append(os.path.expanduser(env_creds))

    for root in _config_roots():
        paths.append(os.path.join(root, "credentials.ini"))
        paths.append(os.path.join(root, APP_NAME, "credentials.ini"))

    seen: set[str] = set()
    unique: list[str] = []
    for p in paths:
        if p and p not in seen:
            seen.add(p)
            unique.append(p)
    return unique


def default_db_path() -> str:
    return os.path.join(app_home(), "mail.db")


def default_tokens_file() -> str:
    return os.path.join(app_home(), "tokens.json")


def default_log_path() -> str:
    return os.path.join(app_home(), "logs", "mail_cli.log")


# -----------------------------------------------------------------------------
# Environment variable names
# -----------------------------------------------------------------------------

ENV_CLIENT_ID = "GMAIL_CLIENT_ID"
ENV_CLIENT_SECRET = "GMAIL_CLIENT_SECRET"  # noqa: S105 - env var name, not a secret
ENV_DB_PATH = "MAIL_DB_PATH"
ENV_TOKENS_FILE = "MAIL_CLI_TOKENS_FILE"  # noqa: S105 - env var name, not a secret
ENV_LOG_PATH = "MAIL_CLI_LOG"

# -----------------------------------------------------------------------------
# Google OAuth / APIs
# -----------------------------------------------------------------------------

KEYRING_SERVICE = APP_NAME
REDIRECT_URI = "http://127.0.0.1:8765/callback"

GOOGLE_AUTH_URI = "https://accounts.google.com/o/oauth2/v2/auth"
GOOGLE_TOKEN_URI = "https://oauth2.googleapis.com/token"  # noqa: S105 - endpoint URL
GOOGLE_USERINFO_URI = "https://www.googleapis.com/oauth2/v2/userinfo"
GOOGLE_CALENDAR_PROBE_URI = "https://www.googleapis.com/calendar/v3/users/me/calendarList"

SCOPES = [
    # Read/search and label changes
    "https://www.googleapis.com/auth/gmail.readonly",
    "https://www.googleapis.com/auth/gmail.modify",
    "https://www.googleapis.com/auth/gmail.labels",
    # Calendar read/write
    "https://www.googleapis.com/auth/calendar",
    # Identity
    "https://www.googleapis.com/auth/userinfo.email",
    "openid",
]

# Access tokens are refreshed this many seconds before their recorded expiry.
REFRESH_MARGIN_SECONDS = 60

# -----------------------------------------------------------------------------
# HTTP and timeouts
# -----------------------------------------------------------------------------

# Default timeout for HTTP requests: (connect_seconds, read_seconds)
DEFAULT_REQUEST_TIMEOUT: Tuple[int, int] = (10, 30)

# -----------------------------------------------------------------------------
# CLI defaults
# -----------------------------------------------------------------------------

DEFAULT_DAYS_BACK = 30
DEFAULT_LIST_LIMIT = 20
DEFAULT_EVENT_LIMIT = 50
DEFAULT_PAGE_SIZE = 100
DEFAULT_CALENDAR_ID = "primary"
