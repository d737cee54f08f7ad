"""Settings resolution for the mail and calendar CLIs.

Resolution order per value: CLI arg > environment > INI profile section >
INI base section > default.
"""

from __future__ import annotations

import configparser
import os
from dataclasses import dataclass
from typing import Any, Dict, Optional

from .constants import (
    ENV_CLIENT_ID,
    ENV_CLIENT_SECRET,
    ENV_DB_PATH,
    ENV_LOG_PATH,
    ENV_TOKENS_FILE,
    credential_ini_paths,
    default_db_path,
    default_log_path,
    default_tokens_file,
)

_SECTION = "mail_cli"


def expand_path(path: Optional[str]) -> Optional[str]:
    if not path:
        return path
    return os.path.expanduser(path)


def _read_ini() -> Dict[str, Dict[str, str]]:
    merged_sections: Dict[str, Dict[str, str]] = {}
    # Earlier paths win; later files only fill missing keys
    for p in credential_ini_paths():
        if not os.path.exists(p):
            continue
        cp = configparser.ConfigParser()
        try:
            cp.read(p)
        except configparser.Error:  # nosec B112 - skip unreadable file
            continue
        for section in cp.sections():
            sec = merged_sections.setdefault(section, {})
            for k, v in cp.items(section):
                sec.setdefault(k, v)
    return merged_sections


def _get_ini_section(profile: Optional[str]) -> Dict[str, str]:
    ini = _read_ini()
    base = dict(ini.get(_SECTION, {}))
    if profile:
        base.update(ini.get(f"{_SECTION}.{profile}", {}))
    return base


@dataclass(frozen=True)
class Settings:
    """Resolved settings for one CLI invocation."""

    client_id: Optional[str]
    client_secret: Optional[str]
    db_path: str
    tokens_file: str
    log_path: str
    profile: Optional[str] = None

    @property
    def has_client_credentials(self) -> bool:
        return bool(self.client_id and self.client_secret)


def resolve_settings(
    *,
    profile: Optional[str] = None,
    db_path: Optional[str] = None,
    tokens_file: Optional[str] = None,
) -> Settings:
    sec = _get_ini_section(profile)
    env = os.environ
    return Settings(
        client_id=env.get(ENV_CLIENT_ID) or sec.get("client_id"),
        client_secret=env.get(ENV_CLIENT_SECRET) or sec.get("client_secret"),
        db_path=expand_path(db_path or env.get(ENV_DB_PATH) or sec.get("db_path") or default_db_path()),
        tokens_file=expand_path(
            tokens_file or env.get(ENV_TOKENS_FILE) or sec.get("tokens_file") or default_tokens_file()
        ),
        log_path=expand_path(env.get(ENV_LOG_PATH) or sec.get("log_path") or default_log_path()),
        profile=profile,
    )


def settings_from_args(args: Any) -> Settings:
    """Build Settings from a parsed argparse namespace."""
    return resolve_settings(
        profile=getattr(args, "profile", None),
        db_path=getattr(args, "db", None),
    )
