"""RRULE normalization, validation and Google recurrence-line conversion."""

from __future__ import annotations

import re
from typing import List, Optional, Sequence

from icalendar.prop import vRecur

from core.cli_errors import UsageError

_PREFIX_RE = re.compile(r"^RRULE:", re.IGNORECASE)


class InvalidRRule(UsageError):
    """Recurrence rule text is not a valid RFC-5545 RRULE."""
    def __init__(self, text: str, reason: str = ""):
        detail = f": {reason}" if reason else ""
        super().__init__(
            f"Invalid recurrence rule {text!r}{detail}",
            hint="Use RFC-5545 syntax, e.g. FREQ=WEEKLY;BYDAY=MO",
        )


def strip_prefix(text: str) -> str:
    return _PREFIX_RE.sub("", text.strip(), count=1)


def normalize_and_validate(text: str) -> str:
    """Trim, drop a leading ``RRULE:`` and validate; returns the bare rule."""
    rule = strip_prefix(text or "")
    if not rule:
        raise InvalidRRule(text, "empty rule")
    try:
        parsed = vRecur.from_ical(rule)
    except ValueError as exc:
        raise InvalidRRule(text, str(exc)) from exc
    if "FREQ" not in parsed:
        raise InvalidRRule(text, "FREQ is required")
    return rule


def to_google_recurrence(text: Optional[str]) -> Optional[List[str]]:
    """Recurrence lines for the Calendar API, or None when there is no rule."""
    if not text or not text.strip():
        return None
    return [f"RRULE:{normalize_and_validate(text)}"]


def from_google_recurrence(lines: Optional[Sequence[str]]) -> Optional[str]:
    """First ``RRULE:`` line (case-insensitive) with its prefix removed."""
    for line in lines or []:
        if line.upper().startswith("RRULE:"):
            return line[len("RRULE:"):]
    return None
