"""Account rows: creation on first auth and explicit identity selection."""

from __future__ import annotations

import sqlite3
from datetime import datetime, timezone
from typing import List, Optional

from .cli_errors import NotAuthenticated, UsageError
from .constants import DEFAULT_DAYS_BACK
from .db import from_db_time, to_db_time, transaction
from .models import Account


def _account(row: sqlite3.Row) -> Account:
    return Account(
        id=row["id"],
        provider=row["provider"],
        email=row["email"],
        created_at=from_db_time(row["created_at"]),
    )


def list_accounts(conn: sqlite3.Connection) -> List[Account]:
    return [_account(r) for r in conn.execute("SELECT * FROM accounts ORDER BY id").fetchall()]


def find_account(conn: sqlite3.Connection, email: str) -> Optional[Account]:
    row = conn.execute("SELECT * FROM accounts WHERE email = ?", (email,)).fetchone()
    return _account(row) if row is not None else None


def authenticate_account(
    conn: sqlite3.Connection,
    email: str,
    provider: str = "gmail",
    *,
    window_days: int = DEFAULT_DAYS_BACK,
) -> Account:
    """Return the account for ``email``, creating it and its sync state once."""
    existing = find_account(conn, email)
    if existing is not None:
        return existing
    with transaction(conn):
        cur = conn.execute(
            "INSERT INTO accounts (provider, email, created_at) VALUES (?, ?, ?)",
            (provider, email, to_db_time(datetime.now(timezone.utc))),
        )
        conn.execute(
            "INSERT INTO sync_state (account_id, sync_window_days) VALUES (?, ?)",
            (cur.lastrowid, int(window_days)),
        )
    account = find_account(conn, email)
    assert account is not None  # nosec B101 - row written above
    return account


def get_account(conn: sqlite3.Connection, email: Optional[str] = None) -> Account:
    """Return the active account.

    With ``email`` the account must exist. Without it, exactly one account
    must be on file; several accounts require an explicit ``--account``.
    """
    if email:
        account = find_account(conn, email)
        if account is None:
            raise NotAuthenticated(email)
        return account
    accounts = list_accounts(conn)
    if not accounts:
        raise NotAuthenticated()
    if len(accounts) > 1:
        raise UsageError(
            "Several accounts are configured",
            hint="Pass --account EMAIL (one of: " + ", ".join(a.email for a in accounts) + ")",
        )
    return accounts[0]
