"""SQLite cache: connection, idempotent schema, transactions."""

from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Dict, Iterator, Optional

SCHEMA = """
CREATE TABLE IF NOT EXISTS accounts (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    provider TEXT NOT NULL CHECK(provider IN ('gmail', 'outlook')),
    email TEXT NOT NULL UNIQUE,
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS messages (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id INTEGER NOT NULL REFERENCES accounts(id),
    provider_message_id TEXT NOT NULL,
    thread_id TEXT,
    subject TEXT,
    from_email TEXT,
    from_name TEXT,
    snippet TEXT,
    received_at TEXT,
    is_read INTEGER NOT NULL DEFAULT 0,
    is_archived INTEGER NOT NULL DEFAULT 0,
    is_deleted INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS tags (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id INTEGER NOT NULL REFERENCES accounts(id),
    name TEXT NOT NULL,
    provider_label_id TEXT
);

CREATE TABLE IF NOT EXISTS message_tags (
    message_id INTEGER NOT NULL REFERENCES messages(id) ON DELETE CASCADE,
    tag_id INTEGER NOT NULL REFERENCES tags(id) ON DELETE CASCADE,
    PRIMARY KEY (message_id, tag_id)
);

CREATE TABLE IF NOT EXISTS sync_state (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id INTEGER NOT NULL UNIQUE REFERENCES accounts(id),
    last_sync_at TEXT,
    sync_window_days INTEGER NOT NULL DEFAULT 30
);

CREATE TABLE IF NOT EXISTS calendars (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id INTEGER NOT NULL REFERENCES accounts(id),
    provider_calendar_id TEXT NOT NULL,
    summary TEXT,
    time_zone TEXT,
    is_primary INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS calendar_events (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    account_id INTEGER NOT NULL REFERENCES accounts(id),
    provider_calendar_id TEXT NOT NULL,
    provider_event_id TEXT NOT NULL,
    title TEXT,
    description TEXT,
    location TEXT,
    start_at TEXT,
    end_at TEXT,
    is_all_day INTEGER NOT NULL DEFAULT 0,
    status TEXT,
    html_link TEXT,
    rrule TEXT,
    recurring_event_id TEXT,
    original_start_time TEXT,
    updated_at TEXT
);

CREATE INDEX IF NOT EXISTS idx_messages_account ON messages(account_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_messages_account_provider ON messages(account_id, provider_message_id);
CREATE INDEX IF NOT EXISTS idx_messages_received ON messages(account_id, received_at);
CREATE UNIQUE INDEX IF NOT EXISTS idx_tags_account_name ON tags(account_id, name);
CREATE INDEX IF NOT EXISTS idx_message_tags_tag ON message_tags(tag_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_calendars_account_provider ON calendars(account_id, provider_calendar_id);
CREATE UNIQUE INDEX IF NOT EXISTS idx_events_account_provider ON calendar_events(account_id, provider_event_id);
"""

TABLES = (
    "accounts",
    "messages",
    "tags",
    "message_tags",
    "sync_state",
    "calendars",
    "calendar_events",
)


def connect(path: str) -> sqlite3.Connection:
    """Open (creating if needed) the cache database and ensure its schema."""
    if path != ":memory:":
        d = os.path.dirname(os.path.abspath(path))
        os.makedirs(d, exist_ok=True)
    conn = sqlite3.connect(path)
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    ensure_schema(conn)
    return conn


def ensure_schema(conn: sqlite3.Connection) -> None:
    conn.executescript(SCHEMA)
    conn.commit()


@contextmanager
def transaction(conn: sqlite3.Connection) -> Iterator[sqlite3.Connection]:
    """Commit on success, roll back on any error."""
    try:
        yield conn
    except BaseException:
        conn.rollback()
        raise
    else:
        conn.commit()


def table_counts(conn: sqlite3.Connection) -> Dict[str, int]:
    counts: Dict[str, int] = {}
    for table in TABLES:
        row = conn.execute(f"SELECT COUNT(*) FROM {table}").fetchone()  # nosec B608 - fixed table names
        counts[table] = int(row[0])
    return counts


# ---- timestamp helpers ----
def to_db_time(value: Optional[datetime]) -> Optional[str]:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def from_db_time(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    return datetime.fromisoformat(value)
