"""Per-invocation application context shared by the mail and calendar CLIs."""
from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from typing import Any, Optional

from .accounts import get_account
from .config import Settings, settings_from_args
from .credential_store import CredentialStore
from .db import connect
from .models import Account
from .oauth import TokenManager


@dataclass
class AppContext:
    """Lazily opens the cache and wires the credential store and token manager.

    The active identity is always explicit: ``args.account`` or the only
    account on file.
    """

    settings: Settings
    args: Any = None
    conn: Optional[sqlite3.Connection] = field(default=None)
    store: Optional[CredentialStore] = field(default=None)
    tokens: Optional[TokenManager] = field(default=None)

    @classmethod
    def from_args(cls, args: Any) -> "AppContext":
        return cls(settings=settings_from_args(args), args=args)

    def __post_init__(self) -> None:
        if self.store is None:
            self.store = CredentialStore.default(self.settings.tokens_file)
        if self.tokens is None:
            self.tokens = TokenManager(self.settings, self.store)

    @property
    def db(self) -> sqlite3.Connection:
        if self.conn is None:
            self.conn = connect(self.settings.db_path)
        return self.conn

    def account(self) -> Account:
        return get_account(self.db, getattr(self.args, "account", None))

    def close(self) -> None:
        if self.conn is not None:
            self.conn.close()
            self.conn = None
