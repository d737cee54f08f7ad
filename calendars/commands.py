"""Calendar command implementations.

Listing and show re-fetch from Google and refresh the cached rows before
printing; mutations hit Google first and update the cache from its response.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any, Dict, Optional

from core import reconcile
from core.cli_errors import UsageError
from core.constants import DEFAULT_CALENDAR_ID
from core.models import EventRecord, parse_iso

from .context import CalendarContext
from .provider import EventInput
from .rrule import normalize_and_validate

LOG = logging.getLogger(__name__)


def parse_when(value: Optional[str], field_name: str) -> Optional[datetime]:
    """Parse an ISO-8601 date or date-time argument (naive values are UTC)."""
    if not value:
        return None
    try:
        return parse_iso(value)
    except ValueError as exc:
        raise UsageError(f"Invalid --{field_name}: expected ISO-8601 date/time", hint="e.g. 2026-03-01 or 2026-03-01T09:00:00Z") from exc


def _event_dict(local_id: int, event: EventRecord) -> Dict[str, Any]:
    return {
        "id": local_id,
        "title": event.title,
        "start_at": event.start_at,
        "end_at": event.end_at,
        "is_all_day": event.is_all_day,
        "location": event.location,
        "status": event.status,
        "rrule": event.rrule,
        "calendar_id": event.calendar_id,
        "provider_event_id": event.id,
        "html_link": event.html_link,
    }


def _event_line(row: Dict[str, Any]) -> str:
    when = row.get("start_at") or "N/A"
    title = row.get("title") or "(no title)"
    recur = " [R]" if row.get("rrule") else ""
    return f"[{row['id']}] {when}{recur} | {title}"


def run_calendars(args) -> int:
    out = args._output
    ctx = CalendarContext.from_args(args)
    try:
        account = ctx.account()
        rows = []
        for cal in ctx.provider(account).list_calendars():
            local_id = reconcile.upsert_calendar(ctx.db, account.id, cal)
            rows.append({"id": local_id, "calendar_id": cal.id, "summary": cal.summary,
                         "time_zone": cal.time_zone, "primary": cal.is_primary})
        out.print_records(
            rows,
            headers=["id", "summary", "calendar_id", "time_zone", "primary"],
            text_line=lambda r: f"[{r['id']}] {r['summary'] or r['calendar_id']}{' (primary)' if r['primary'] else ''}",
            empty="No calendars found",
        )
        return 0
    finally:
        ctx.close()


def run_event_ls(args) -> int:
    out = args._output
    time_min = parse_when(args.from_, "from")
    time_max = parse_when(args.to, "to")
    ctx = CalendarContext.from_args(args)
    try:
        account = ctx.account()
        events = ctx.provider(account).list_events(
            args.calendar or DEFAULT_CALENDAR_ID,
            time_min=time_min,
            time_max=time_max,
            limit=args.limit,
        )
        rows = [_event_dict(reconcile.upsert_event(ctx.db, account.id, ev), ev) for ev in events]
        out.print_records(
            rows,
            headers=["id", "start_at", "title", "rrule"],
            text_line=_event_line,
            empty="No events found",
        )
        return 0
    finally:
        ctx.close()


def run_event_show(args) -> int:
    out = args._output
    ctx = CalendarContext.from_args(args)
    try:
        account = ctx.account()
        row = reconcile.resolve_event(ctx.db, account.id, args.id)
        detail = ctx.provider(account).get_event(row.provider_event_id, row.provider_calendar_id)
        reconcile.upsert_event(ctx.db, account.id, detail)
        if out.structured:
            data = _event_dict(row.id, detail)
            data["description"] = detail.description
            data["recurring_event_id"] = detail.recurring_event_id
            data["updated_at"] = detail.updated_at
            out.print_dict(data)
            return 0
        start = detail.start_at.isoformat() if detail.start_at else "N/A"
        end = detail.end_at.isoformat() if detail.end_at else "N/A"
        out.print("=" * 60)
        out.print(f"Title: {detail.title or '(no title)'}")
        out.print(f"When: {start} - {end}{' (all day)' if detail.is_all_day else ''}")
        out.print(f"Location: {detail.location or 'N/A'}")
        out.print(f"Status: {detail.status or 'N/A'}")
        if detail.rrule:
            out.print(f"RRULE: {detail.rrule}")
        if detail.description:
            out.print("")
            out.print(detail.description)
        out.print("=" * 60)
        return 0
    finally:
        ctx.close()


def run_event_add(args) -> int:
    out = args._output
    start_at = parse_when(args.start, "start")
    end_at = parse_when(args.end, "end")
    if start_at is None or end_at is None:
        raise UsageError("--start and --end are required")
    if end_at <= start_at:
        raise UsageError("--end must be after --start")
    rrule = normalize_and_validate(args.rrule) if args.rrule else None

    ctx = CalendarContext.from_args(args)
    try:
        account = ctx.account()
        created = ctx.provider(account).create_event(
            EventInput(
                title=args.title,
                start_at=start_at,
                end_at=end_at,
                description=args.description,
                location=args.location,
                is_all_day=bool(args.all_day),
                rrule=rrule,
            ),
            args.calendar or DEFAULT_CALENDAR_ID,
        )
        local_id = reconcile.upsert_event(ctx.db, account.id, created)
        out.print(f"Created event {local_id}")
        return 0
    finally:
        ctx.close()


def run_event_update(args) -> int:
    out = args._output
    if args.rrule and args.clear_rrule:
        raise UsageError("Use either --rrule or --clear-rrule, not both")
    if args.all_day and args.timed:
        raise UsageError("Use either --all-day or --timed, not both")
    start_at = parse_when(args.start, "start")
    end_at = parse_when(args.end, "end")
    rrule = normalize_and_validate(args.rrule) if args.rrule else None

    ctx = CalendarContext.from_args(args)
    try:
        account = ctx.account()
        row = reconcile.resolve_event(ctx.db, account.id, args.id)
        if start_at and end_at and end_at <= start_at:
            raise UsageError("--end must be after --start")
        is_all_day = row.is_all_day
        if args.all_day or args.timed:
            is_all_day = bool(args.all_day)
        if is_all_day != row.is_all_day and not (start_at and end_at):
            raise UsageError(
                "Switching between all-day and timed needs both --start and --end",
                hint=f"Pass the new --start and --end for event {row.id}",
            )
        updated = ctx.provider(account).update_event(
            row.provider_event_id,
            EventInput(
                title=args.title,
                start_at=start_at,
                end_at=end_at,
                description=args.description,
                location=args.location,
                is_all_day=is_all_day,
                rrule=rrule,
                clear_rrule=bool(args.clear_rrule),
            ),
            args.calendar or row.provider_calendar_id,
        )
        reconcile.upsert_event(ctx.db, account.id, updated)
        out.print(f"Updated event {row.id}")
        return 0
    finally:
        ctx.close()


def run_event_rm(args) -> int:
    out = args._output
    ctx = CalendarContext.from_args(args)
    try:
        account = ctx.account()
        row = reconcile.resolve_event(ctx.db, account.id, args.id)
        ctx.provider(account).delete_event(row.provider_event_id, row.provider_calendar_id)
        reconcile.delete_event_row(ctx.db, row)
        out.print(f"Deleted event {row.id}")
        return 0
    finally:
        ctx.close()
