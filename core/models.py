"""Normalized records exchanged between provider adapters and the cache."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import List, Optional


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    """Parse an RFC-3339 timestamp or a bare YYYY-MM-DD date (midnight UTC)."""
    if not value:
        return None
    s = value.strip()
    if len(s) == 10:
        return datetime.fromisoformat(s).replace(tzinfo=timezone.utc)
    if s.endswith(("Z", "z")):
        s = s[:-1] + "+00:00"
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


@dataclass
class Account:
    id: int
    provider: str
    email: str
    created_at: Optional[datetime] = None


@dataclass
class MessageRecord:
    """A provider message as seen by the cache."""

    id: str
    thread_id: Optional[str] = None
    subject: Optional[str] = None
    from_email: Optional[str] = None
    from_name: Optional[str] = None
    snippet: Optional[str] = None
    received_at: Optional[datetime] = None
    is_read: bool = False
    is_archived: bool = False
    label_ids: List[str] = field(default_factory=list)


@dataclass
class MessageDetail(MessageRecord):
    body: Optional[str] = None


@dataclass
class CalendarRecord:
    id: str
    summary: Optional[str] = None
    time_zone: Optional[str] = None
    is_primary: bool = False


@dataclass
class EventRecord:
    """A provider calendar event; ``rrule`` carries no ``RRULE:`` prefix."""

    id: str
    calendar_id: str
    title: Optional[str] = None
    description: Optional[str] = None
    location: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    is_all_day: bool = False
    status: Optional[str] = None
    html_link: Optional[str] = None
    rrule: Optional[str] = None
    recurring_event_id: Optional[str] = None
    original_start_time: Optional[datetime] = None
    updated_at: Optional[datetime] = None


@dataclass
class MessageRow:
    """A cached message row (local surrogate id plus provider id)."""

    id: int
    account_id: int
    provider_message_id: str
    thread_id: Optional[str]
    subject: Optional[str]
    from_email: Optional[str]
    from_name: Optional[str]
    snippet: Optional[str]
    received_at: Optional[datetime]
    is_read: bool
    is_archived: bool
    is_deleted: bool


@dataclass
class EventRow:
    id: int
    account_id: int
    provider_calendar_id: str
    provider_event_id: str
    title: Optional[str]
    start_at: Optional[datetime]
    end_at: Optional[datetime]
    is_all_day: bool
    rrule: Optional[str]


@dataclass
class TagRow:
    id: int
    account_id: int
    name: str
    provider_label_id: Optional[str]
