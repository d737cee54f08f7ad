"""Tests for core/db.py and core/reconcile.py: upserts, scoping and tags."""

import unittest
from datetime import datetime, timedelta, timezone

from core import reconcile
from core.accounts import authenticate_account
from core.cli_errors import ExitCode, LocalRecordNotFound
from core.db import connect, ensure_schema, table_counts
from core.models import CalendarRecord, EventRecord, MessageRecord
from tests.fixtures import NOW, CacheTestCase


def _message(mid, **kwargs):
    kwargs.setdefault("subject", f"subject {mid}")
    kwargs.setdefault("received_at", NOW)
    return MessageRecord(id=mid, thread_id=f"t-{mid}", from_email="alice@example.com", **kwargs)


class SchemaTests(CacheTestCase, unittest.TestCase):
    def test_schema_is_idempotent(self):
        ensure_schema(self.conn)
        ensure_schema(self.conn)
        counts = table_counts(self.conn)
        self.assertEqual(counts["accounts"], 1)
        self.assertEqual(counts["sync_state"], 1)

    def test_memory_database(self):
        conn = connect(":memory:")
        try:
            self.assertEqual(table_counts(conn)["messages"], 0)
        finally:
            conn.close()


class MessageUpsertTests(CacheTestCase, unittest.TestCase):
    def test_upsert_is_idempotent_and_keeps_local_id(self):
        first = reconcile.upsert_message(self.conn, self.account.id, _message("m1"))
        second = reconcile.upsert_message(
            self.conn, self.account.id, _message("m1", subject="edited", is_read=True)
        )
        self.assertEqual(first, second)
        count = self.conn.execute("SELECT COUNT(*) FROM messages").fetchone()[0]
        self.assertEqual(count, 1)
        row = reconcile.resolve_message(self.conn, self.account.id, first)
        self.assertEqual(row.subject, "edited")
        self.assertTrue(row.is_read)
        self.assertEqual(row.provider_message_id, "m1")

    def test_refresh_keeps_local_deleted_flag(self):
        mid = reconcile.upsert_message(self.conn, self.account.id, _message("m1"))
        reconcile.mark_deleted(self.conn, reconcile.resolve_message(self.conn, self.account.id, mid))
        reconcile.upsert_message(self.conn, self.account.id, _message("m1"))
        self.assertTrue(reconcile.resolve_message(self.conn, self.account.id, mid).is_deleted)

    def test_timestamps_round_trip_as_utc(self):
        mid = reconcile.upsert_message(self.conn, self.account.id, _message("m1"))
        self.assertEqual(reconcile.resolve_message(self.conn, self.account.id, mid).received_at, NOW)

    def test_resolve_is_scoped_to_account(self):
        other = authenticate_account(self.conn, "other@example.com")
        mid = reconcile.upsert_message(self.conn, self.account.id, _message("m1"))
        with self.assertRaises(LocalRecordNotFound) as cm:
            reconcile.resolve_message(self.conn, other.id, mid)
        self.assertEqual(cm.exception.code, ExitCode.NOT_FOUND)
        self.assertIn("sync", cm.exception.hint)

    def test_same_provider_id_in_two_accounts(self):
        other = authenticate_account(self.conn, "other@example.com")
        a = reconcile.upsert_message(self.conn, self.account.id, _message("m1"))
        b = reconcile.upsert_message(self.conn, other.id, _message("m1"))
        self.assertNotEqual(a, b)


class ListMessagesTests(CacheTestCase, unittest.TestCase):
    def setUp(self):
        super().setUp()
        self.ids = {}
        for i, mid in enumerate(["old", "mid", "new"]):
            self.ids[mid] = reconcile.upsert_message(
                self.conn, self.account.id, _message(mid, received_at=NOW + timedelta(hours=i))
            )

    def test_newest_first_with_limit(self):
        rows = reconcile.list_messages(self.conn, self.account.id, limit=2)
        self.assertEqual([r.provider_message_id for r in rows], ["new", "mid"])

    def test_archived_and_deleted_hidden_by_default(self):
        reconcile.mark_archived(self.conn, reconcile.resolve_message(self.conn, self.account.id, self.ids["new"]))
        reconcile.mark_deleted(self.conn, reconcile.resolve_message(self.conn, self.account.id, self.ids["old"]))
        visible = [r.provider_message_id for r in reconcile.list_messages(self.conn, self.account.id)]
        self.assertEqual(visible, ["mid"])
        everything = reconcile.list_messages(
            self.conn, self.account.id, include_archived=True, include_deleted=True
        )
        self.assertEqual(len(everything), 3)

    def test_filter_by_tag(self):
        tag = reconcile.ensure_tag(self.conn, self.account.id, "Work", "Label_1")
        reconcile.link_tag(self.conn, self.ids["mid"], tag.id)
        rows = reconcile.list_messages(self.conn, self.account.id, tag="Work")
        self.assertEqual([r.id for r in rows], [self.ids["mid"]])


class TagTests(CacheTestCase, unittest.TestCase):
    def test_ensure_tag_fills_label_id_once(self):
        first = reconcile.ensure_tag(self.conn, self.account.id, "Work")
        self.assertIsNone(first.provider_label_id)
        second = reconcile.ensure_tag(self.conn, self.account.id, "Work", "Label_9")
        self.assertEqual(first.id, second.id)
        self.assertEqual(second.provider_label_id, "Label_9")

    def test_link_twice_and_counts(self):
        mid = reconcile.upsert_message(self.conn, self.account.id, _message("m1"))
        tag = reconcile.ensure_tag(self.conn, self.account.id, "Work", "Label_1")
        reconcile.link_tag(self.conn, mid, tag.id)
        reconcile.link_tag(self.conn, mid, tag.id)
        reconcile.ensure_tag(self.conn, self.account.id, "Empty")
        self.assertEqual(
            [(c["name"], c["count"]) for c in reconcile.tag_counts(self.conn, self.account.id)],
            [("Empty", 0), ("Work", 1)],
        )
        reconcile.unlink_tag(self.conn, mid, tag.id)
        self.assertEqual(reconcile.tag_counts(self.conn, self.account.id)[1]["count"], 0)


class EventUpsertTests(CacheTestCase, unittest.TestCase):
    def _event(self, **kwargs):
        kwargs.setdefault("title", "Standup")
        kwargs.setdefault("start_at", NOW)
        kwargs.setdefault("end_at", NOW + timedelta(minutes=15))
        return EventRecord(id="ev1", calendar_id="primary", **kwargs)

    def test_upsert_and_resolve(self):
        local_id = reconcile.upsert_event(self.conn, self.account.id, self._event(rrule="FREQ=DAILY"))
        again = reconcile.upsert_event(self.conn, self.account.id, self._event(title="Sync", rrule=None))
        self.assertEqual(local_id, again)
        row = reconcile.resolve_event(self.conn, self.account.id, local_id)
        self.assertEqual(row.title, "Sync")
        self.assertIsNone(row.rrule)
        self.assertEqual(row.provider_event_id, "ev1")
        self.assertEqual(row.provider_calendar_id, "primary")

    def test_delete_event_row(self):
        local_id = reconcile.upsert_event(self.conn, self.account.id, self._event())
        row = reconcile.resolve_event(self.conn, self.account.id, local_id)
        reconcile.delete_event_row(self.conn, row)
        with self.assertRaises(LocalRecordNotFound) as cm:
            reconcile.resolve_event(self.conn, self.account.id, local_id)
        self.assertIn("calendar-cli event ls", cm.exception.hint)

    def test_upsert_calendar(self):
        cal = CalendarRecord(id="primary", summary="Me", time_zone="UTC", is_primary=True)
        self.assertEqual(
            reconcile.upsert_calendar(self.conn, self.account.id, cal),
            reconcile.upsert_calendar(self.conn, self.account.id, cal),
        )


class SyncStateTests(CacheTestCase, unittest.TestCase):
    def test_window_defaults_and_record_sync(self):
        self.assertEqual(reconcile.sync_window_days(self.conn, self.account.id), 30)
        self.assertIsNone(reconcile.last_sync_at(self.conn, self.account.id))
        when = datetime(2026, 1, 2, 3, 4, 5, tzinfo=timezone.utc)
        reconcile.record_sync(self.conn, self.account.id, when)
        self.assertEqual(reconcile.last_sync_at(self.conn, self.account.id), when)

    def test_record_sync_creates_missing_row(self):
        self.conn.execute("DELETE FROM sync_state")
        self.conn.commit()
        reconcile.record_sync(self.conn, self.account.id, NOW)
        self.assertEqual(reconcile.last_sync_at(self.conn, self.account.id), NOW)


if __name__ == "__main__":
    unittest.main()
