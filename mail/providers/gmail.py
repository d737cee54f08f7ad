"""Gmail adapter over the googleapiclient ``gmail/v1`` resource."""

from __future__ import annotations

import base64
import logging
import re
import time
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from core.models import MessageDetail, MessageRecord
from core.providers import GoogleAdapter

from ..paging import gather_pages, paginate_gmail_messages
from .base import MailProvider

LOG = logging.getLogger(__name__)

_FROM_RE = re.compile(r'(?:"?([^"]*)"?\s)?<?(.+?@[^>]+)>?')

INBOX = "INBOX"
UNREAD = "UNREAD"


def headers_to_dict(msg: Dict[str, Any]) -> Dict[str, str]:
    hdrs: Dict[str, str] = {}
    for h in ((msg.get("payload") or {}).get("headers") or []):
        name = h.get("name")
        value = h.get("value")
        if name and value is not None:
            hdrs[name.lower()] = value
    return hdrs


def parse_from(value: Optional[str]) -> Tuple[Optional[str], Optional[str]]:
    """Split a From header into (name, email)."""
    if not value:
        return None, None
    m = _FROM_RE.match(value.strip())
    if not m:
        return None, value.strip()
    name = (m.group(1) or "").strip() or None
    return name, m.group(2).strip()


def decode_body_data(data: str) -> str:
    """Decode Gmail's URL-safe base64 body data (padding optional)."""
    padded = data + "=" * (-len(data) % 4)
    try:
        return base64.urlsafe_b64decode(padded.encode("ascii")).decode("utf-8", errors="replace")
    except (ValueError, UnicodeEncodeError):
        return ""


def _walk_message_parts(payload: Dict[str, Any]) -> List[Dict[str, Any]]:
    """Recursively walk message parts to find all MIME parts."""
    out = []
    for part in payload.get("parts") or []:
        out.append(part)
        out.extend(_walk_message_parts(part))
    return out


def extract_body(payload: Dict[str, Any]) -> Optional[str]:
    """Top-level body data if present, else the first text/plain part."""
    data = (payload.get("body") or {}).get("data")
    if data:
        return decode_body_data(data)
    for part in _walk_message_parts(payload):
        if (part.get("mimeType") or "").lower() != "text/plain":
            continue
        part_data = (part.get("body") or {}).get("data")
        if part_data:
            return decode_body_data(part_data)
    return None


def map_message(msg: Dict[str, Any]) -> MessageDetail:
    hdrs = headers_to_dict(msg)
    from_name, from_email = parse_from(hdrs.get("from"))
    label_ids = list(msg.get("labelIds") or [])
    received_at = None
    internal = msg.get("internalDate")
    if internal:
        received_at = datetime.fromtimestamp(int(internal) / 1000.0, tz=timezone.utc)
    return MessageDetail(
        id=msg["id"],
        thread_id=msg.get("threadId"),
        subject=hdrs.get("subject"),
        from_email=from_email,
        from_name=from_name,
        snippet=msg.get("snippet"),
        received_at=received_at,
        is_read=UNREAD not in label_ids,
        is_archived=INBOX not in label_ids,
        label_ids=label_ids,
        body=extract_body(msg.get("payload") or {}),
    )


class GmailProvider(GoogleAdapter, MailProvider):
    provider_name = "gmail"
    api_name = "gmail"
    api_version = "v1"
    api_label = "Gmail"

    def __init__(self, email, tokens, *, service_factory=None, clock=time.time) -> None:
        super().__init__(email, tokens, service_factory=service_factory)
        self._clock = clock
        # Label memo for this adapter instance: loaded once, then kept in step with creates.
        self._label_list: Optional[List[Dict[str, Any]]] = None
        self._label_ids: Dict[str, str] = {}

    def _messages(self):
        return self.service.users().messages()

    # ---- messages ----
    def list_message_ids(self, days: int) -> List[str]:
        after = int(self._clock() - days * 24 * 60 * 60)
        pages = paginate_gmail_messages(self._messages(), query=f"after:{after}", execute=self._execute)
        return gather_pages(pages)

    def list_messages(self, days: int) -> List[MessageRecord]:
        ids = self.list_message_ids(days)
        LOG.debug("Fetching %d message(s) for %s", len(ids), self.email)
        return [self.get_message(mid) for mid in ids]

    def get_message(self, message_id: str) -> MessageDetail:
        msg = self._execute(self._messages().get(userId="me", id=message_id, format="full"))
        return map_message(msg)

    def modify(self, message_id: str, add: Optional[List[str]] = None, remove: Optional[List[str]] = None) -> None:
        body: Dict[str, Any] = {}
        if add:
            body["addLabelIds"] = list(add)
        if remove:
            body["removeLabelIds"] = list(remove)
        self._execute(self._messages().modify(userId="me", id=message_id, body=body))

    def archive(self, message_id: str) -> None:
        self.modify(message_id, remove=[INBOX])

    def delete(self, message_id: str) -> None:
        self._execute(self._messages().delete(userId="me", id=message_id))

    # ---- labels ----
    def _load_labels(self) -> None:
        if self._label_list is not None:
            return
        resp = self._execute(self.service.users().labels().list(userId="me")) or {}
        self._label_list = list(resp.get("labels", []))
        for lab in self._label_list:
            self._remember(lab)

    def _remember(self, label: Dict[str, Any]) -> None:
        lid = label.get("id")
        if not lid:
            return
        self._label_ids[lid] = lid
        if label.get("name"):
            self._label_ids[label["name"]] = lid

    def list_labels(self) -> List[Dict[str, Any]]:
        self._load_labels()
        return list(self._label_list or [])

    def label_id(self, name_or_id: str) -> Optional[str]:
        self._load_labels()
        return self._label_ids.get(name_or_id)

    def ensure_label(self, name: str) -> str:
        """Return the label id for ``name``, creating the label once if missing."""
        existing = self.label_id(name)
        if existing:
            return existing
        created = self._execute(self.service.users().labels().create(userId="me", body={"name": name})) or {}
        self._label_list = (self._label_list or []) + [created]
        self._remember(created)
        return str(created.get("id", ""))

    def add_label(self, message_id: str, name: str) -> None:
        self.modify(message_id, add=[self.ensure_label(name)])

    def remove_label(self, message_id: str, name: str) -> None:
        """Remove label ``name``; a label missing in Gmail counts as already removed."""
        lid = self.label_id(name)
        if not lid:
            LOG.debug("Label %r not in Gmail; nothing to remove from %s", name, message_id)
            return
        self.modify(message_id, remove=[lid])
