"""Mail CLI application context."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Optional

from core.context import AppContext
from core.models import Account

from .providers import MailProvider, get_provider


@dataclass
class MailContext(AppContext):
    mail_provider: Optional[MailProvider] = field(default=None)

    def provider(self, account: Account) -> MailProvider:
        # One adapter per invocation so its label memo spans the whole command
        if self.mail_provider is None:
            self.mail_provider = get_provider(account.provider, email=account.email, tokens=self.tokens)
        return self.mail_provider
