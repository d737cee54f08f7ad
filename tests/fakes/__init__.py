"""Shared fake/mock objects for testing.

Centralized location for fake Google API resources used across test suites.

Modules:
    google - FakeGmailService, FakeCalendarService and the request helpers
"""

from __future__ import annotations

from tests.fakes.google import (
    FakeCalendarService,
    FakeGmailService,
    FakeRequest,
    gmail_message,
    http_error,
    service_factory,
)

__all__ = [
    "FakeCalendarService",
    "FakeGmailService",
    "FakeRequest",
    "gmail_message",
    "http_error",
    "service_factory",
]
