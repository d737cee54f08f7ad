"""Mail command implementations.

Each ``run_*`` takes parsed args and returns an exit code. Provider calls
happen first; the cache is written only after they succeed.
"""

from __future__ import annotations

import logging
import os
import sqlite3
from datetime import datetime, timezone
from typing import Any, Dict, List, Tuple

from core import reconcile
from core.accounts import authenticate_account, list_accounts
from core.cli_errors import CLIError, NotFoundError
from core.constants import (
    ENV_CLIENT_ID,
    ENV_CLIENT_SECRET,
    GOOGLE_CALENDAR_PROBE_URI,
    GOOGLE_USERINFO_URI,
)
from core.db import table_counts
from core.http import get_json, transport_errors
from core.models import Account, MessageRow

from .context import MailContext
from .providers import MailProvider

LOG = logging.getLogger(__name__)

BODY_PREVIEW_CHARS = 2000


def _message_line(row: Dict[str, Any]) -> str:
    received = (row.get("received_at") or "")[:10] or "N/A"
    sender = row.get("from_name") or row.get("from_email") or "Unknown"
    subject = row.get("subject") or "(no subject)"
    mark = " " if row.get("is_read") else "*"
    return f"{mark} [{row['id']}] {received} | {sender}: {subject}"


def sync_account(
    ctx: MailContext,
    account: Account,
    provider: MailProvider,
    days: int,
    session: Any = None,
) -> Tuple[int, int]:
    """Fetch the window and upsert every message; returns (fetched, new)."""
    conn = ctx.db
    before = conn.execute("SELECT COUNT(*) FROM messages WHERE account_id = ?", (account.id,)).fetchone()[0]
    records = provider.list_messages(days)
    for record in records:
        reconcile.upsert_message(conn, account.id, record)
    reconcile.record_sync(conn, account.id, datetime.now(timezone.utc))
    after = conn.execute("SELECT COUNT(*) FROM messages WHERE account_id = ?", (account.id,)).fetchone()[0]
    LOG.info("Synced %d message(s) for %s (%d new)", len(records), account.email, after - before)
    if session is not None:
        session.info({"account": account.email, "days": days, "fetched": len(records), "new": after - before})
    return len(records), after - before


# -----------------------------------------------------------------------------
# Auth and accounts
# -----------------------------------------------------------------------------

def run_auth(args) -> int:
    out = args._output
    ctx = MailContext.from_args(args)
    try:
        email = ctx.tokens.authenticate()
        account = authenticate_account(ctx.db, email)
        out.print(f"Authenticated as {account.email} (account {account.id})")
        return 0
    finally:
        ctx.close()


def run_logout(args) -> int:
    out = args._output
    ctx = MailContext.from_args(args)
    try:
        account = ctx.account()
        ctx.tokens.revoke(account.email)
        out.print(f"Removed stored credential for {account.email}")
        return 0
    finally:
        ctx.close()


def run_accounts(args) -> int:
    out = args._output
    ctx = MailContext.from_args(args)
    try:
        rows = []
        for account in list_accounts(ctx.db):
            rows.append({
                "id": account.id,
                "provider": account.provider,
                "email": account.email,
                "last_sync_at": reconcile.last_sync_at(ctx.db, account.id),
                "sync_window_days": reconcile.sync_window_days(ctx.db, account.id),
            })
        out.print_records(
            rows,
            headers=["id", "provider", "email", "last_sync_at"],
            text_line=lambda r: f"[{r['id']}] {r['email']} ({r['provider']}) last sync: {r['last_sync_at'] or 'never'}",
            empty="No accounts. Run `mail-cli auth` first.",
        )
        return 0
    finally:
        ctx.close()


# -----------------------------------------------------------------------------
# Sync and read
# -----------------------------------------------------------------------------

def run_sync(args) -> int:
    out = args._output
    ctx = MailContext.from_args(args)
    try:
        account = ctx.account()
        days = args.days or reconcile.sync_window_days(ctx.db, account.id)
        if not out.structured:
            out.print(f"Syncing last {days} days for {account.email}...")
        fetched, created = sync_account(ctx, account, ctx.provider(account), days, session=getattr(args, "_session", None))
        if out.structured:
            out.print_dict({"account": account.email, "days": days, "fetched": fetched, "new": created})
        else:
            out.print(f"Fetched {fetched} message(s), {created} new. Sync complete.")
        return 0
    finally:
        ctx.close()


def run_ls(args) -> int:
    out = args._output
    ctx = MailContext.from_args(args)
    try:
        account = ctx.account()
        if not args.cached:
            days = reconcile.sync_window_days(ctx.db, account.id)
            sync_account(ctx, account, ctx.provider(account), days, session=getattr(args, "_session", None))
        rows = reconcile.list_messages(
            ctx.db,
            account.id,
            tag=args.tag,
            limit=args.limit,
            include_archived=args.include_archived,
            include_deleted=args.include_deleted,
        )
        out.print_records(
            rows,
            headers=["id", "received_at", "from_email", "subject", "is_read"],
            text_line=_message_line,
            empty="No messages found",
        )
        return 0
    finally:
        ctx.close()


def run_show(args) -> int:
    out = args._output
    ctx = MailContext.from_args(args)
    try:
        account = ctx.account()
        row = reconcile.resolve_message(ctx.db, account.id, args.id)
        detail = ctx.provider(account).get_message(row.provider_message_id)
        reconcile.upsert_message(ctx.db, account.id, detail)
        if out.structured:
            data = out.normalize(detail)
            data["provider_message_id"] = data.pop("id")
            data["id"] = row.id
            out.print_dict(data)
            return 0
        sender = f"{detail.from_name} <{detail.from_email}>" if detail.from_name else (detail.from_email or "Unknown")
        out.print("=" * 60)
        out.print(f"Subject: {detail.subject or '(no subject)'}")
        out.print(f"From: {sender}")
        out.print(f"Date: {detail.received_at.isoformat() if detail.received_at else 'N/A'}")
        out.print("=" * 60)
        if detail.body:
            suffix = "..." if len(detail.body) > BODY_PREVIEW_CHARS else ""
            out.print(detail.body[:BODY_PREVIEW_CHARS] + suffix)
        elif detail.snippet:
            out.print(detail.snippet)
        return 0
    finally:
        ctx.close()


# -----------------------------------------------------------------------------
# Tags
# -----------------------------------------------------------------------------

def run_tag_ls(args) -> int:
    out = args._output
    ctx = MailContext.from_args(args)
    try:
        account = ctx.account()
        counts = reconcile.tag_counts(ctx.db, account.id)
        if args.remote:
            local = {c["name"]: c["count"] for c in counts}
            labels = [
                {
                    "id": lab.get("id"),
                    "name": lab.get("name"),
                    "type": lab.get("type", "user"),
                    "count": local.get(lab.get("name"), 0),
                }
                for lab in ctx.provider(account).list_labels()
            ]
            out.print_records(
                sorted(labels, key=lambda r: (r["type"] != "user", str(r["name"]).lower())),
                headers=["id", "name", "type", "count"],
                text_line=lambda r: f"  {r['name']} [{r['id']}] ({r['count']})",
                empty="No labels found in Gmail",
            )
            return 0
        out.print_records(
            counts,
            headers=["name", "count"],
            text_line=lambda r: f"  {r['name']} ({r['count']})",
            empty="No tags found",
        )
        return 0
    finally:
        ctx.close()


def run_tag_add(args) -> int:
    out = args._output
    ctx = MailContext.from_args(args)
    try:
        account = ctx.account()
        message: MessageRow = reconcile.resolve_message(ctx.db, account.id, args.id)
        provider = ctx.provider(account)
        tag = reconcile.find_tag(ctx.db, account.id, args.name)
        if tag is None or not tag.provider_label_id:
            tag = reconcile.ensure_tag(ctx.db, account.id, args.name, provider.ensure_label(args.name))
        provider.add_label(message.provider_message_id, args.name)
        reconcile.link_tag(ctx.db, message.id, tag.id)
        out.print(f'Added tag "{args.name}" to message {message.id}')
        return 0
    finally:
        ctx.close()


def run_tag_rm(args) -> int:
    out = args._output
    ctx = MailContext.from_args(args)
    try:
        account = ctx.account()
        message = reconcile.resolve_message(ctx.db, account.id, args.id)
        tag = reconcile.find_tag(ctx.db, account.id, args.name)
        if tag is None:
            raise NotFoundError(f'Tag "{args.name}" not found', hint="Run `mail-cli tag ls` to see known tags.")
        ctx.provider(account).remove_label(message.provider_message_id, args.name)
        reconcile.unlink_tag(ctx.db, message.id, tag.id)
        out.print(f'Removed tag "{args.name}" from message {message.id}')
        return 0
    finally:
        ctx.close()


# -----------------------------------------------------------------------------
# Mutations
# -----------------------------------------------------------------------------

def run_archive(args) -> int:
    out = args._output
    ctx = MailContext.from_args(args)
    try:
        account = ctx.account()
        message = reconcile.resolve_message(ctx.db, account.id, args.id)
        ctx.provider(account).archive(message.provider_message_id)
        reconcile.mark_archived(ctx.db, message)
        out.print(f"Archived message {message.id}")
        return 0
    finally:
        ctx.close()


def run_delete(args) -> int:
    out = args._output
    ctx = MailContext.from_args(args)
    try:
        account = ctx.account()
        message = reconcile.resolve_message(ctx.db, account.id, args.id)
        ctx.provider(account).delete(message.provider_message_id)
        reconcile.mark_deleted(ctx.db, message)
        out.print(f"Deleted message {message.id}")
        return 0
    finally:
        ctx.close()


# -----------------------------------------------------------------------------
# Doctor
# -----------------------------------------------------------------------------

def _probe_account(ctx: MailContext, account: Account) -> Dict[str, Any]:
    status: Dict[str, Any] = {"account": account.email, "token": "missing", "calendar": "unknown"}
    try:
        token = ctx.tokens.get_valid_access_token(account.email)
    except CLIError as exc:
        status["token"] = f"invalid ({exc.message})"
        return status
    if not token:
        return status
    try:
        code, _body = get_json(GOOGLE_USERINFO_URI, token)
        status["token"] = "valid" if code == 200 else f"invalid ({code})"
        if code == 200:
            cal_code, _ = get_json(GOOGLE_CALENDAR_PROBE_URI, token, params={"maxResults": 1})
            status["calendar"] = "ok" if cal_code == 200 else "missing/re-auth needed"
    except transport_errors() as exc:
        status["token"] = f"unreachable ({type(exc).__name__})"
    return status


def _check(name: str, ok: bool, detail: str = "") -> Dict[str, Any]:
    return {"check": name, "ok": bool(ok), "detail": detail}


def run_doctor(args) -> int:
    out = args._output
    ctx = MailContext.from_args(args)
    settings = ctx.settings
    try:
        checks: List[Dict[str, Any]] = [_check("DB file exists", os.path.exists(settings.db_path), settings.db_path)]
        try:
            for table, count in table_counts(ctx.db).items():
                checks.append(_check(f"{table} table", True, f"{count} row(s)"))
        except sqlite3.Error as exc:
            checks.append(_check("Database", False, str(exc)))
        checks.append(_check(f"{ENV_CLIENT_ID} set", bool(os.environ.get(ENV_CLIENT_ID))))
        checks.append(_check(f"{ENV_CLIENT_SECRET} set", bool(os.environ.get(ENV_CLIENT_SECRET))))
        checks.append(_check("Client credentials resolved", settings.has_client_credentials))
        checks.append(_check("Token file exists", os.path.exists(settings.tokens_file), settings.tokens_file))
        checks.append(_check("Keyring available", ctx.store.vault_available()))

        accounts = [_probe_account(ctx, a) for a in list_accounts(ctx.db)]
        if out.structured:
            out.print_dict({"checks": checks, "accounts": accounts})
            return 0
        out.print("Mail CLI Health Check")
        for c in checks:
            mark = "ok " if c["ok"] else "FAIL"
            out.print(f"  [{mark}] {c['check']}" + (f": {c['detail']}" if c["detail"] else ""))
        if accounts:
            out.print("Per-account token status:")
            for a in accounts:
                out.print(f"  {a['account']}: token {a['token']} | calendar: {a['calendar']}")
        return 0
    finally:
        ctx.close()
