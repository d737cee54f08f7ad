"""Calendar CLI application context."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from core.cli_errors import UsageError
from core.context import AppContext
from core.models import Account

from .provider import CalendarProvider, GoogleCalendarProvider


@dataclass
class CalendarContext(AppContext):
    calendar_provider: Optional[CalendarProvider] = field(default=None)

    def provider(self, account: Account) -> CalendarProvider:
        if self.calendar_provider is None:
            if account.provider != "gmail":
                raise UsageError(f"No calendar adapter for {account.provider} accounts")
            self.calendar_provider = GoogleCalendarProvider(account.email, self.tokens)
        return self.calendar_provider
