"""Google Calendar adapter over the googleapiclient ``calendar/v3`` resource."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from core.constants import DEFAULT_CALENDAR_ID, DEFAULT_EVENT_LIMIT
from core.models import CalendarRecord, EventRecord, parse_iso
from core.providers import GoogleAdapter

from .rrule import from_google_recurrence, to_google_recurrence

LOG = logging.getLogger(__name__)


@dataclass
class EventInput:
    """Fields for create/update; ``None`` means "not provided"."""

    title: Optional[str] = None
    start_at: Optional[datetime] = None
    end_at: Optional[datetime] = None
    description: Optional[str] = None
    location: Optional[str] = None
    is_all_day: bool = False
    rrule: Optional[str] = None
    clear_rrule: bool = False


def _parse_google_time(value: Optional[Dict[str, Any]]) -> Optional[datetime]:
    if not value:
        return None
    if value.get("dateTime"):
        return parse_iso(value["dateTime"])
    if value.get("date"):
        # Date-only values are midnight UTC
        return parse_iso(value["date"])
    return None


def _to_google_time(value: datetime, all_day: bool) -> Dict[str, str]:
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    utc = value.astimezone(timezone.utc)
    if all_day:
        return {"date": utc.date().isoformat()}
    return {"dateTime": utc.isoformat().replace("+00:00", "Z")}


def map_event(calendar_id: str, event: Dict[str, Any]) -> EventRecord:
    start = event.get("start") or {}
    return EventRecord(
        id=event["id"],
        calendar_id=calendar_id,
        title=event.get("summary"),
        description=event.get("description"),
        location=event.get("location"),
        start_at=_parse_google_time(start),
        end_at=_parse_google_time(event.get("end")),
        is_all_day=bool(start.get("date")) and not start.get("dateTime"),
        status=event.get("status"),
        html_link=event.get("htmlLink"),
        rrule=from_google_recurrence(event.get("recurrence")),
        recurring_event_id=event.get("recurringEventId"),
        original_start_time=_parse_google_time(event.get("originalStartTime")),
        updated_at=parse_iso(event.get("updated")),
    )


def build_create_body(data: EventInput) -> Dict[str, Any]:
    if data.start_at is None or data.end_at is None:
        raise ValueError("start_at and end_at are required to create an event")
    body: Dict[str, Any] = {
        "summary": data.title,
        "start": _to_google_time(data.start_at, data.is_all_day),
        "end": _to_google_time(data.end_at, data.is_all_day),
    }
    if data.description:
        body["description"] = data.description
    if data.location:
        body["location"] = data.location
    recurrence = to_google_recurrence(data.rrule)
    if recurrence:
        body["recurrence"] = recurrence
    return body


def build_patch_body(data: EventInput) -> Dict[str, Any]:
    """Only provided fields; ``clear_rrule`` sends an empty recurrence list."""
    body: Dict[str, Any] = {}
    if data.title is not None:
        body["summary"] = data.title
    if data.description is not None:
        body["description"] = data.description
    if data.location is not None:
        body["location"] = data.location
    if data.start_at is not None:
        body["start"] = _to_google_time(data.start_at, data.is_all_day)
    if data.end_at is not None:
        body["end"] = _to_google_time(data.end_at, data.is_all_day)
    if data.clear_rrule:
        # Omitting the field would keep the old rule
        body["recurrence"] = []
    elif data.rrule:
        body["recurrence"] = to_google_recurrence(data.rrule)
    return body


class CalendarProvider(ABC):
    """Calendar capability interface used by the calendar commands."""

    @abstractmethod
    def list_calendars(self) -> List[CalendarRecord]:
        ...

    @abstractmethod
    def list_events(
        self,
        calendar_id: str = DEFAULT_CALENDAR_ID,
        *,
        time_min: Optional[datetime] = None,
        time_max: Optional[datetime] = None,
        limit: int = DEFAULT_EVENT_LIMIT,
    ) -> List[EventRecord]:
        ...

    @abstractmethod
    def get_event(self, event_id: str, calendar_id: str = DEFAULT_CALENDAR_ID) -> EventRecord:
        ...

    @abstractmethod
    def create_event(self, data: EventInput, calendar_id: str = DEFAULT_CALENDAR_ID) -> EventRecord:
        ...

    @abstractmethod
    def update_event(self, event_id: str, data: EventInput, calendar_id: str = DEFAULT_CALENDAR_ID) -> EventRecord:
        ...

    @abstractmethod
    def delete_event(self, event_id: str, calendar_id: str = DEFAULT_CALENDAR_ID) -> None:
        ...


class GoogleCalendarProvider(GoogleAdapter, CalendarProvider):
    api_name = "calendar"
    api_version = "v3"
    api_label = "Google Calendar"

    def _events(self):
        return self.service.events()

    def list_calendars(self) -> List[CalendarRecord]:
        out: List[CalendarRecord] = []
        token: Optional[str] = None
        while True:
            kwargs: Dict[str, Any] = {}
            if token:
                kwargs["pageToken"] = token
            resp = self._execute(self.service.calendarList().list(**kwargs)) or {}
            for cal in resp.get("items", []):
                out.append(CalendarRecord(
                    id=cal["id"],
                    summary=cal.get("summary"),
                    time_zone=cal.get("timeZone"),
                    is_primary=bool(cal.get("primary")),
                ))
            token = resp.get("nextPageToken")
            if not token:
                return out

    def list_events(
        self,
        calendar_id: str = DEFAULT_CALENDAR_ID,
        *,
        time_min: Optional[datetime] = None,
        time_max: Optional[datetime] = None,
        limit: int = DEFAULT_EVENT_LIMIT,
    ) -> List[EventRecord]:
        out: List[EventRecord] = []
        token: Optional[str] = None
        while len(out) < limit:
            kwargs: Dict[str, Any] = {
                "calendarId": calendar_id,
                "maxResults": limit - len(out),
                "singleEvents": False,
            }
            if time_min is not None:
                kwargs["timeMin"] = _to_google_time(time_min, False)["dateTime"]
            if time_max is not None:
                kwargs["timeMax"] = _to_google_time(time_max, False)["dateTime"]
            if token:
                kwargs["pageToken"] = token
            resp = self._execute(self._events().list(**kwargs)) or {}
            out.extend(map_event(calendar_id, ev) for ev in resp.get("items", []))
            token = resp.get("nextPageToken")
            if not token:
                break
        return out[:limit]

    def get_event(self, event_id: str, calendar_id: str = DEFAULT_CALENDAR_ID) -> EventRecord:
        ev = self._execute(self._events().get(calendarId=calendar_id, eventId=event_id))
        return map_event(calendar_id, ev)

    def create_event(self, data: EventInput, calendar_id: str = DEFAULT_CALENDAR_ID) -> EventRecord:
        body = build_create_body(data)
        ev = self._execute(self._events().insert(calendarId=calendar_id, body=body))
        return map_event(calendar_id, ev)

    def update_event(self, event_id: str, data: EventInput, calendar_id: str = DEFAULT_CALENDAR_ID) -> EventRecord:
        body = build_patch_body(data)
        LOG.debug("Patching event %s fields: %s", event_id, sorted(body))
        ev = self._execute(self._events().patch(calendarId=calendar_id, eventId=event_id, body=body))
        return map_event(calendar_id, ev)

    def delete_event(self, event_id: str, calendar_id: str = DEFAULT_CALENDAR_ID) -> None:
        self._execute(self._events().delete(calendarId=calendar_id, eventId=event_id))
