"""mail-cli: local Gmail cache CLI using the CLIApp framework.

Commands:
  auth | logout | accounts
  sync | ls | show
  tag ls|add|rm
  archive | delete
  doctor

Messages are addressed by local IDs; every mutation goes to Gmail first and
the cache is updated only after Gmail confirms it.
"""

from __future__ import annotations

from typing import List, Optional

from core.cli_framework import CLIApp
from core.config import settings_from_args
from core.constants import DEFAULT_LIST_LIMIT

from ..commands import (
    run_accounts,
    run_archive,
    run_auth,
    run_delete,
    run_doctor,
    run_logout,
    run_ls,
    run_show,
    run_sync,
    run_tag_add,
    run_tag_ls,
    run_tag_rm,
)

app = CLIApp(
    "mail-cli",
    "Mirror Gmail into a local cache and relay changes back",
    version="0.1.0",
    log_path=lambda args: settings_from_args(args).log_path,
)


@app.command("auth", help="Sign in with Google and register the account")
def cmd_auth(args) -> int:
    return run_auth(args)


@app.command("logout", help="Forget the stored credential for the active account")
def cmd_logout(args) -> int:
    return run_logout(args)


@app.command("accounts", help="List known accounts")
def cmd_accounts(args) -> int:
    return run_accounts(args)


@app.command("sync", help="Fetch recent messages into the local cache")
@app.argument("--days", type=int, help="Look back N days (default: account sync window, 30)")
def cmd_sync(args) -> int:
    return run_sync(args)


@app.command("ls", help="List cached messages (refreshes the sync window first)")
@app.argument("--tag", help="Only messages with this tag")
@app.argument("--limit", type=int, default=DEFAULT_LIST_LIMIT, help="Maximum rows (default: 20)")
@app.argument("--include-archived", action="store_true", help="Include archived messages")
@app.argument("--include-deleted", action="store_true", help="Include deleted messages")
@app.argument("--cached", action="store_true", help="Skip the refresh and list the cache as is")
def cmd_ls(args) -> int:
    return run_ls(args)


@app.command("show", help="Show a message (re-fetched from Gmail)")
@app.argument("id", type=int, help="Local message ID")
def cmd_show(args) -> int:
    return run_show(args)


@app.command("archive", help="Archive a message (remove from Inbox)")
@app.argument("id", type=int, help="Local message ID")
def cmd_archive(args) -> int:
    return run_archive(args)


@app.command("delete", help="Delete a message in Gmail")
@app.argument("id", type=int, help="Local message ID")
def cmd_delete(args) -> int:
    return run_delete(args)


@app.command("doctor", help="Check database, configuration and tokens")
def cmd_doctor(args) -> int:
    return run_doctor(args)


# --- tag group ---
tag_group = app.group("tag", help="Manage tags (Gmail labels)")


@tag_group.command("ls", help="List tags with message counts")
@tag_group.argument("--remote", action="store_true", help="List Gmail labels instead of cached tags")
def cmd_tag_ls(args) -> int:
    return run_tag_ls(args)


@tag_group.command("add", help="Add a tag to a message")
@tag_group.argument("id", type=int, help="Local message ID")
@tag_group.argument("name", help="Tag name")
def cmd_tag_add(args) -> int:
    return run_tag_add(args)


@tag_group.command("rm", help="Remove a tag from a message")
@tag_group.argument("id", type=int, help="Local message ID")
@tag_group.argument("name", help="Tag name")
def cmd_tag_rm(args) -> int:
    return run_tag_rm(args)


def main(argv: Optional[List[str]] = None) -> int:
    """Main entry point for mail-cli."""
    return app.run(argv)


if __name__ == "__main__":
    raise SystemExit(main())
