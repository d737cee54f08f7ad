"""calendar-cli: Google Calendar side of the local cache, using CLIApp.

Commands:
  calendars
  event ls|show|add|update|rm

Events are addressed by local IDs assigned when `event ls` (or `event add`)
caches them.
"""

from __future__ import annotations

from typing import List, Optional

from core.cli_framework import CLIApp
from core.config import settings_from_args
from core.constants import DEFAULT_LIST_LIMIT

from ..commands import (
    run_calendars,
    run_event_add,
    run_event_ls,
    run_event_rm,
    run_event_show,
    run_event_update,
)

HELP_CALENDAR = "Calendar ID (default: primary)"
HELP_RRULE = "Recurrence rule, e.g. FREQ=WEEKLY;BYDAY=MO (RRULE: prefix optional)"

app = CLIApp(
    "calendar-cli",
    "Mirror Google Calendar events into a local cache and relay changes back",
    version="0.1.0",
    log_path=lambda args: settings_from_args(args).log_path,
)


@app.command("calendars", help="List calendars")
def cmd_calendars(args) -> int:
    return run_calendars(args)


# --- event group ---
event_group = app.group("event", help="Calendar events")


@event_group.command("ls", help="List events (refreshes the cache)")
@event_group.argument("--from", dest="from_", help="Start of range (ISO-8601)")
@event_group.argument("--to", help="End of range (ISO-8601)")
@event_group.argument("--limit", type=int, default=DEFAULT_LIST_LIMIT, help="Maximum events (default: 20)")
@event_group.argument("--calendar", help=HELP_CALENDAR)
def cmd_event_ls(args) -> int:
    return run_event_ls(args)


@event_group.command("show", help="Show an event (re-fetched from Google)")
@event_group.argument("id", type=int, help="Local event ID")
def cmd_event_show(args) -> int:
    return run_event_show(args)


@event_group.command("add", help="Create an event")
@event_group.argument("--title", required=True, help="Event title")
@event_group.argument("--start", required=True, help="Start (ISO-8601 date or date-time)")
@event_group.argument("--end", required=True, help="End (ISO-8601 date or date-time)")
@event_group.argument("--calendar", help=HELP_CALENDAR)
@event_group.argument("--location", help="Location")
@event_group.argument("--description", help="Description")
@event_group.argument("--all-day", action="store_true", help="All-day event (dates only)")
@event_group.argument("--rrule", help=HELP_RRULE)
def cmd_event_add(args) -> int:
    return run_event_add(args)


@event_group.command("update", help="Update an event (only the given fields)")
@event_group.argument("id", type=int, help="Local event ID")
@event_group.argument("--title", help="Event title")
@event_group.argument("--start", help="Start (ISO-8601 date or date-time)")
@event_group.argument("--end", help="End (ISO-8601 date or date-time)")
@event_group.argument("--calendar", help=HELP_CALENDAR)
@event_group.argument("--location", help="Location")
@event_group.argument("--description", help="Description")
@event_group.argument("--all-day", action="store_true", help="Send start/end as dates")
@event_group.argument("--timed", action="store_true", help="Send start/end as date-times (turns an all-day event into a timed one)")
@event_group.argument("--rrule", help=HELP_RRULE)
@event_group.argument("--clear-rrule", action="store_true", help="Remove the recurrence rule")
def cmd_event_update(args) -> int:
    return run_event_update(args)


@event_group.command("rm", help="Delete an event")
@event_group.argument("id", type=int, help="Local event ID")
def cmd_event_rm(args) -> int:
    return run_event_rm(args)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for calendar-cli."""
    return app.run(argv)


if __name__ == "__main__":
    raise SystemExit(main())
