from __future__ import annotations

from core.cli_errors import UsageError
from core.oauth import TokenManager

from .base import MailProvider


def get_provider(name: str, *, email: str, tokens: TokenManager) -> MailProvider:
    n = (name or "").lower()
    if n == "gmail":
        # Lazy import to avoid importing Google libs during --help
        from .gmail import GmailProvider  # type: ignore
        return GmailProvider(email, tokens)
    raise UsageError(f"Unsupported provider: {name}", hint="Only gmail accounts have a mail adapter.")


__all__ = [
    "MailProvider",
    "get_provider",
]
