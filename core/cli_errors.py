"""CLI error codes and the error taxonomy of the account/cache core.

Every failure the core surfaces to a command is a CLIError subclass, so the
CLI runner maps it to an exit code and an actionable hint in one place.
"""
from __future__ import annotations

import sys
from dataclasses import dataclass
from enum import IntEnum
from typing import Optional

from .secrets import mask_text


class ExitCode(IntEnum):
    """Standard CLI exit codes."""
    SUCCESS = 0
    ERROR = 1
    USAGE = 2
    CONFIG_ERROR = 3
    AUTH_ERROR = 4
    NETWORK_ERROR = 5
    NOT_FOUND = 6
    PERMISSION_DENIED = 7
    INTERRUPTED = 130  # Standard for Ctrl+C


@dataclass
class CLIError(Exception):
    """CLI error with exit code and message."""
    message: str
    code: ExitCode = ExitCode.ERROR
    hint: Optional[str] = None

    def __str__(self) -> str:
        return self.message


class ConfigError(CLIError):
    """Configuration-related error."""
    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message, ExitCode.CONFIG_ERROR, hint)


class AuthError(CLIError):
    """Authentication-related error."""
    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message, ExitCode.AUTH_ERROR, hint)


class NetworkError(CLIError):
    """Network-related error."""
    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message, ExitCode.NETWORK_ERROR, hint)


class NotFoundError(CLIError):
    """Resource not found error."""
    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message, ExitCode.NOT_FOUND, hint)


class UsageError(CLIError):
    """Usage/argument error."""
    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(message, ExitCode.USAGE, hint)


# -----------------------------------------------------------------------------
# Auth flow
# -----------------------------------------------------------------------------

_AUTH_CONFIG_HINT = "Set GMAIL_CLIENT_ID and GMAIL_CLIENT_SECRET (or client_id/client_secret under [mail_cli] in credentials.ini)."
_REAUTH_HINT = "Run `mail-cli auth` to sign in again."


class AuthConfigError(ConfigError):
    """OAuth client credentials are not configured."""
    def __init__(self, message: str = "OAuth client credentials are not configured", hint: Optional[str] = _AUTH_CONFIG_HINT):
        super().__init__(message, hint)


class AuthCodeMissingError(AuthError):
    """No authorization code could be extracted from the pasted input."""
    def __init__(self, message: str = "No authorization code found in input", hint: Optional[str] = None):
        super().__init__(message, hint or "Paste the full redirect URL (it contains ?code=...) or the bare code.")


class AuthExchangeError(AuthError):
    """The provider rejected the authorization code exchange."""
    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(mask_text(message), hint or _REAUTH_HINT)


class AuthRefreshError(AuthError):
    """The provider rejected the stored refresh token."""
    def __init__(self, message: str, hint: Optional[str] = None):
        super().__init__(mask_text(message), hint or _REAUTH_HINT)


class NotAuthenticated(AuthError):
    """No credential or account is on file for the active identity."""
    def __init__(self, identity: Optional[str] = None, hint: Optional[str] = None):
        message = f"Not authenticated for {identity}" if identity else "No authenticated account"
        super().__init__(message, hint or _REAUTH_HINT)
        self.identity = identity


# -----------------------------------------------------------------------------
# Provider and local cache
# -----------------------------------------------------------------------------

class ProviderError(NetworkError):
    """A remote API call failed; carries the HTTP status and response body."""
    def __init__(self, api: str, status: Optional[int], body: str = "", hint: Optional[str] = None):
        self.api = api
        self.status = status
        self.body = mask_text(body or "")
        label = status if status is not None else "transport"
        super().__init__(f"{api} API error: {label} {self.body}".rstrip(), hint)


class LocalRecordNotFound(NotFoundError):
    """A local surrogate ID is unknown or belongs to another account."""
    def __init__(self, kind: str, local_id: int, hint: Optional[str] = None):
        self.kind = kind
        self.local_id = local_id
        super().__init__(f"{kind.capitalize()} {local_id} not found", hint)


def handle_error(error: BaseException, verbose: bool = False) -> int:
    """Handle an exception and return appropriate exit code.

    Args:
        error: The exception to handle.
        verbose: If True, print stack trace for unexpected errors.

    Returns:
        Exit code to use.
    """
    if isinstance(error, CLIError):
        print(f"Error: {error.message}", file=sys.stderr)
        if error.hint:
            print(f"Hint: {error.hint}", file=sys.stderr)
        return error.code

    if isinstance(error, KeyboardInterrupt):
        print("\nInterrupted.", file=sys.stderr)
        return ExitCode.INTERRUPTED

    # Unexpected error
    print(f"Error: {mask_text(str(error))}", file=sys.stderr)
    if verbose:
        import traceback
        traceback.print_exc()
    return ExitCode.ERROR
