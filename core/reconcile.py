"""Map provider records onto cache rows and local ids back onto provider ids.

Rows are keyed by the natural key (account_id, provider id). Upserts overwrite
every provider-owned field in place and keep the surrogate id stable. Lookups
by local id are always scoped to the calling account.
"""

from __future__ import annotations

import sqlite3
from datetime import datetime
from typing import Dict, List, Optional

from .cli_errors import LocalRecordNotFound
from .db import from_db_time, to_db_time, transaction
from .models import CalendarRecord, EventRecord, EventRow, MessageRecord, MessageRow, TagRow

MESSAGE_RESYNC_HINT = "Run `mail-cli sync` (or `mail-cli ls`) to refresh local IDs."
EVENT_RESYNC_HINT = "Run `calendar-cli event ls` to sync local IDs."


def _upsert(
    conn: sqlite3.Connection,
    table: str,
    key_column: str,
    account_id: int,
    key: str,
    values: Dict[str, object],
) -> int:
    row = conn.execute(
        f"SELECT id FROM {table} WHERE account_id = ? AND {key_column} = ?",  # nosec B608 - fixed identifiers
        (account_id, key),
    ).fetchone()
    if row is not None:
        assignments = ", ".join(f"{col} = ?" for col in values)
        conn.execute(
            f"UPDATE {table} SET {assignments} WHERE id = ?",  # nosec B608 - fixed identifiers
            (*values.values(), row["id"]),
        )
        return int(row["id"])
    columns = ["account_id", key_column, *values]
    placeholders = ", ".join("?" for _ in columns)
    cur = conn.execute(
        f"INSERT INTO {table} ({', '.join(columns)}) VALUES ({placeholders})",  # nosec B608 - fixed identifiers
        (account_id, key, *values.values()),
    )
    return int(cur.lastrowid)


# -----------------------------------------------------------------------------
# Messages
# -----------------------------------------------------------------------------

def upsert_message(conn: sqlite3.Connection, account_id: int, record: MessageRecord) -> int:
    """Insert or refresh one message row; returns its local id.

    The deleted flag is local-only state and is left untouched on refresh.
    """
    values = {
        "thread_id": record.thread_id,
        "subject": record.subject,
        "from_email": record.from_email,
        "from_name": record.from_name,
        "snippet": record.snippet,
        "received_at": to_db_time(record.received_at),
        "is_read": int(bool(record.is_read)),
        "is_archived": int(bool(record.is_archived)),
    }
    with transaction(conn):
        return _upsert(conn, "messages", "provider_message_id", account_id, record.id, values)


def _message_row(row: sqlite3.Row) -> MessageRow:
    return MessageRow(
        id=row["id"],
        account_id=row["account_id"],
        provider_message_id=row["provider_message_id"],
        thread_id=row["thread_id"],
        subject=row["subject"],
        from_email=row["from_email"],
        from_name=row["from_name"],
        snippet=row["snippet"],
        received_at=from_db_time(row["received_at"]),
        is_read=bool(row["is_read"]),
        is_archived=bool(row["is_archived"]),
        is_deleted=bool(row["is_deleted"]),
    )


def resolve_message(conn: sqlite3.Connection, account_id: int, local_id: int) -> MessageRow:
    row = conn.execute(
        "SELECT * FROM messages WHERE id = ? AND account_id = ?",
        (local_id, account_id),
    ).fetchone()
    if row is None:
        raise LocalRecordNotFound("message", local_id, MESSAGE_RESYNC_HINT)
    return _message_row(row)


def list_messages(
    conn: sqlite3.Connection,
    account_id: int,
    *,
    tag: Optional[str] = None,
    limit: int = 20,
    include_archived: bool = False,
    include_deleted: bool = False,
) -> List[MessageRow]:
    sql = "SELECT m.* FROM messages m"
    params: List[object] = []
    if tag:
        sql += " JOIN message_tags mt ON mt.message_id = m.id JOIN tags t ON t.id = mt.tag_id AND t.name = ?"
        params.append(tag)
    sql += " WHERE m.account_id = ?"
    params.append(account_id)
    if not include_archived:
        sql += " AND m.is_archived = 0"
    if not include_deleted:
        sql += " AND m.is_deleted = 0"
    sql += " ORDER BY m.received_at DESC, m.id DESC LIMIT ?"
    params.append(int(limit))
    return [_message_row(r) for r in conn.execute(sql, params).fetchall()]


def mark_archived(conn: sqlite3.Connection, message: MessageRow) -> None:
    with transaction(conn):
        conn.execute(
            "UPDATE messages SET is_archived = 1 WHERE id = ? AND account_id = ?",
            (message.id, message.account_id),
        )


def mark_deleted(conn: sqlite3.Connection, message: MessageRow) -> None:
    with transaction(conn):
        conn.execute(
            "UPDATE messages SET is_deleted = 1 WHERE id = ? AND account_id = ?",
            (message.id, message.account_id),
        )


# -----------------------------------------------------------------------------
# Tags
# -----------------------------------------------------------------------------

def _tag_row(row: sqlite3.Row) -> TagRow:
    return TagRow(
        id=row["id"],
        account_id=row["account_id"],
        name=row["name"],
        provider_label_id=row["provider_label_id"],
    )


def find_tag(conn: sqlite3.Connection, account_id: int, name: str) -> Optional[TagRow]:
    row = conn.execute(
        "SELECT * FROM tags WHERE account_id = ? AND name = ?",
        (account_id, name),
    ).fetchone()
    return _tag_row(row) if row is not None else None


def ensure_tag(
    conn: sqlite3.Connection,
    account_id: int,
    name: str,
    provider_label_id: Optional[str] = None,
) -> TagRow:
    """Return the tag row for ``name``, creating it (or filling its label id)."""
    with transaction(conn):
        existing = find_tag(conn, account_id, name)
        if existing is None:
            conn.execute(
                "INSERT INTO tags (account_id, name, provider_label_id) VALUES (?, ?, ?)",
                (account_id, name, provider_label_id),
            )
        elif provider_label_id and existing.provider_label_id != provider_label_id:
            conn.execute(
                "UPDATE tags SET provider_label_id = ? WHERE id = ?",
                (provider_label_id, existing.id),
            )
    tag = find_tag(conn, account_id, name)
    assert tag is not None  # nosec B101 - row written above
    return tag


def link_tag(conn: sqlite3.Connection, message_id: int, tag_id: int) -> None:
    with transaction(conn):
        conn.execute(
            "INSERT OR IGNORE INTO message_tags (message_id, tag_id) VALUES (?, ?)",
            (message_id, tag_id),
        )


def unlink_tag(conn: sqlite3.Connection, message_id: int, tag_id: int) -> None:
    with transaction(conn):
        conn.execute(
            "DELETE FROM message_tags WHERE message_id = ? AND tag_id = ?",
            (message_id, tag_id),
        )


def tag_counts(conn: sqlite3.Connection, account_id: int) -> List[Dict[str, object]]:
    rows = conn.execute(
        """
        SELECT t.id, t.name, COUNT(mt.message_id) AS count
        FROM tags t LEFT JOIN message_tags mt ON mt.tag_id = t.id
        WHERE t.account_id = ?
        GROUP BY t.id, t.name
        ORDER BY t.name
        """,
        (account_id,),
    ).fetchall()
    return [{"id": r["id"], "name": r["name"], "count": int(r["count"])} for r in rows]


# -----------------------------------------------------------------------------
# Calendars and events
# -----------------------------------------------------------------------------

def upsert_calendar(conn: sqlite3.Connection, account_id: int, record: CalendarRecord) -> int:
    values = {
        "summary": record.summary,
        "time_zone": record.time_zone,
        "is_primary": int(bool(record.is_primary)),
    }
    with transaction(conn):
        return _upsert(conn, "calendars", "provider_calendar_id", account_id, record.id, values)


def upsert_event(conn: sqlite3.Connection, account_id: int, record: EventRecord) -> int:
    """Insert or refresh one calendar event row; returns its local id."""
    values = {
        "provider_calendar_id": record.calendar_id,
        "title": record.title,
        "description": record.description,
        "location": record.location,
        "start_at": to_db_time(record.start_at),
        "end_at": to_db_time(record.end_at),
        "is_all_day": int(bool(record.is_all_day)),
        "status": record.status,
        "html_link": record.html_link,
        "rrule": record.rrule,
        "recurring_event_id": record.recurring_event_id,
        "original_start_time": to_db_time(record.original_start_time),
        "updated_at": to_db_time(record.updated_at),
    }
    with transaction(conn):
        return _upsert(conn, "calendar_events", "provider_event_id", account_id, record.id, values)


def resolve_event(conn: sqlite3.Connection, account_id: int, local_id: int) -> EventRow:
    row = conn.execute(
        "SELECT * FROM calendar_events WHERE id = ? AND account_id = ?",
        (local_id, account_id),
    ).fetchone()
    if row is None:
        raise LocalRecordNotFound("event", local_id, EVENT_RESYNC_HINT)
    return EventRow(
        id=row["id"],
        account_id=row["account_id"],
        provider_calendar_id=row["provider_calendar_id"],
        provider_event_id=row["provider_event_id"],
        title=row["title"],
        start_at=from_db_time(row["start_at"]),
        end_at=from_db_time(row["end_at"]),
        is_all_day=bool(row["is_all_day"]),
        rrule=row["rrule"],
    )


def delete_event_row(conn: sqlite3.Connection, event: EventRow) -> None:
    with transaction(conn):
        conn.execute(
            "DELETE FROM calendar_events WHERE id = ? AND account_id = ?",
            (event.id, event.account_id),
        )


# -----------------------------------------------------------------------------
# Sync state
# -----------------------------------------------------------------------------

def record_sync(conn: sqlite3.Connection, account_id: int, when: datetime) -> None:
    with transaction(conn):
        cur = conn.execute(
            "UPDATE sync_state SET last_sync_at = ? WHERE account_id = ?",
            (to_db_time(when), account_id),
        )
        if cur.rowcount == 0:
            conn.execute(
                "INSERT INTO sync_state (account_id, last_sync_at) VALUES (?, ?)",
                (account_id, to_db_time(when)),
            )


def sync_window_days(conn: sqlite3.Connection, account_id: int, default: int = 30) -> int:
    row = conn.execute(
        "SELECT sync_window_days FROM sync_state WHERE account_id = ?",
        (account_id,),
    ).fetchone()
    return int(row["sync_window_days"]) if row is not None else default


def last_sync_at(conn: sqlite3.Connection, account_id: int) -> Optional[datetime]:
    row = conn.execute(
        "SELECT last_sync_at FROM sync_state WHERE account_id = ?",
        (account_id,),
    ).fetchone()
    return from_db_time(row["last_sync_at"]) if row is not None else None
