"""Tests for GmailProvider against a fake discovery service."""

import unittest

from core.cli_errors import ProviderError, UsageError
from mail.paging import gather_pages, paginate_gmail_messages
from mail.providers import MailProvider, get_provider
from mail.providers.gmail import GmailProvider
from tests.fakes import FakeGmailService, gmail_message, http_error, service_factory
from tests.fixtures import make_tokens

NOW_TS = 1768478400.0  # 2026-01-15T12:00:00Z


def _provider(svc):
    return GmailProvider("me@example.com", make_tokens(), service_factory=service_factory(svc), clock=lambda: NOW_TS)


class ListMessagesTests(unittest.TestCase):
    def test_window_query_and_pages(self):
        svc = FakeGmailService(messages={m: gmail_message(m) for m in ("a", "b", "c")}, pages=[["a", "b"], ["c"]])
        records = _provider(svc).list_messages(7)

        self.assertEqual([r.id for r in records], ["a", "b", "c"])
        self.assertEqual(len(svc.list_calls), 2)
        self.assertEqual(svc.list_calls[0]["q"], f"after:{int(NOW_TS - 7 * 86400)}")
        self.assertEqual(svc.list_calls[1]["pageToken"], "1")
        self.assertEqual(svc.get_calls, ["a", "b", "c"])

    def test_empty_mailbox(self):
        self.assertEqual(_provider(FakeGmailService()).list_messages(30), [])

    def test_http_error_surfaces_as_provider_error(self):
        svc = FakeGmailService(messages={"a": gmail_message("a")}, errors={"messages.get": http_error(500)})
        with self.assertRaises(ProviderError) as cm:
            _provider(svc).list_messages(1)
        self.assertEqual(cm.exception.status, 500)


class MutationTests(unittest.TestCase):
    def test_archive_removes_inbox(self):
        svc = FakeGmailService()
        _provider(svc).archive("m1")
        self.assertEqual(svc.modify_calls, [("m1", {"removeLabelIds": ["INBOX"]})])

    def test_delete(self):
        svc = FakeGmailService()
        _provider(svc).delete("m1")
        self.assertEqual(svc.deleted_ids, ["m1"])


class LabelMemoTests(unittest.TestCase):
    def test_missing_label_is_created_once(self):
        svc = FakeGmailService(labels=[{"id": "INBOX", "name": "INBOX"}])
        provider = _provider(svc)

        provider.add_label("m1", "Work")
        provider.add_label("m2", "Work")

        self.assertEqual(svc.created_labels, ["Work"])
        self.assertEqual(svc.label_list_calls, 1)
        self.assertEqual(
            svc.modify_calls,
            [("m1", {"addLabelIds": ["Label_2"]}), ("m2", {"addLabelIds": ["Label_2"]})],
        )
        self.assertIn("Work", [lab["name"] for lab in provider.list_labels()])

    def test_existing_label_is_reused(self):
        svc = FakeGmailService(labels=[{"id": "Label_7", "name": "Work"}])
        self.assertEqual(_provider(svc).ensure_label("Work"), "Label_7")
        self.assertEqual(svc.created_labels, [])

    def test_remove_label(self):
        svc = FakeGmailService(labels=[{"id": "Label_7", "name": "Work"}])
        _provider(svc).remove_label("m1", "Work")
        self.assertEqual(svc.modify_calls, [("m1", {"removeLabelIds": ["Label_7"]})])

    def test_remove_label_missing_in_gmail_is_a_no_op(self):
        svc = FakeGmailService()
        _provider(svc).remove_label("m1", "Nope")
        self.assertEqual(svc.modify_calls, [])
        self.assertEqual(svc.label_list_calls, 1)


class PagingTests(unittest.TestCase):
    def test_paginate_skips_empty_pages_and_passes_query(self):
        svc = FakeGmailService(pages=[["a"], [], ["b"]])
        pages = list(paginate_gmail_messages(svc.users().messages(), query="after:1", page_size=5))
        self.assertEqual(pages, [["a"], ["b"]])
        self.assertEqual(svc.list_calls[0]["q"], "after:1")
        self.assertEqual(svc.list_calls[0]["maxResults"], 5)
        self.assertNotIn("labelIds", svc.list_calls[0])

    def test_gather_pages_keeps_order(self):
        self.assertEqual(gather_pages(iter([["a", "b"], [], ["c"]])), ["a", "b", "c"])


class RegistryTests(unittest.TestCase):
    def test_gmail_provider(self):
        provider = get_provider("gmail", email="me@example.com", tokens=make_tokens())
        self.assertIsInstance(provider, MailProvider)
        self.assertEqual(provider.email, "me@example.com")

    def test_unknown_provider(self):
        with self.assertRaises(UsageError):
            get_provider("outlook", email="me@example.com", tokens=make_tokens())


if __name__ == "__main__":
    unittest.main()
