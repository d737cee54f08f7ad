"""Shared test fixtures and utilities.

This module provides common fakes, stubs, and helpers to simplify testing
across the mail and calendar test suites.
"""

from __future__ import annotations

import io
import os
import tempfile
from contextlib import contextmanager, redirect_stderr, redirect_stdout
from datetime import datetime, timedelta, timezone
from types import SimpleNamespace
from typing import Any, Dict, Optional
from unittest.mock import MagicMock

from core.accounts import authenticate_account
from core.cli_output import OutputConfig, OutputFormat, OutputWriter
from core.config import Settings
from core.credential_store import Credential, CredentialStore, FileBackend
from core.db import connect

NOW = datetime(2026, 1, 15, 12, 0, 0, tzinfo=timezone.utc)


# -----------------------------------------------------------------------------
# Output capture helpers
# -----------------------------------------------------------------------------


@contextmanager
def capture_stdout():
    """Context manager that captures stdout and yields a StringIO buffer."""
    buf = io.StringIO()
    with redirect_stdout(buf):
        yield buf


@contextmanager
def capture_stderr():
    buf = io.StringIO()
    with redirect_stderr(buf):
        yield buf


def make_args(output: str = "text", **kwargs) -> SimpleNamespace:
    """Create a SimpleNamespace with common CLI arg defaults merged with kwargs."""
    defaults: Dict[str, Any] = {
        "profile": None,
        "account": None,
        "db": None,
        "verbose": False,
        "quiet": False,
        "output": output,
        "_output": OutputWriter(OutputConfig(format=OutputFormat(output))),
    }
    defaults.update(kwargs)
    return SimpleNamespace(**defaults)


# -----------------------------------------------------------------------------
# Temp directories, settings and stores
# -----------------------------------------------------------------------------


class TempDirMixin:
    """Mixin providing a temporary directory that's cleaned up after each test.

    Usage:
        class MyTest(TempDirMixin, unittest.TestCase):
            def test_something(self):
                path = os.path.join(self.tmpdir, "file.txt")
                ...
    """

    tmpdir: str

    def setUp(self):
        super().setUp()
        self.tmpdir = tempfile.mkdtemp()

    def tearDown(self):
        import shutil
        shutil.rmtree(self.tmpdir, ignore_errors=True)
        super().tearDown()


def make_settings(tmpdir: str, *, client_id: Optional[str] = "cid", client_secret: Optional[str] = "csecret") -> Settings:
    return Settings(
        client_id=client_id,
        client_secret=client_secret,
        db_path=os.path.join(tmpdir, "mail.db"),
        tokens_file=os.path.join(tmpdir, "tokens.json"),
        log_path=os.path.join(tmpdir, "logs", "mail_cli.log"),
    )


class BrokenVault:
    """Keyring stand-in where every operation fails (headless host)."""

    def __init__(self, exc: Optional[BaseException] = None):
        self.exc = exc or RuntimeError("no secret service")

    def get(self, identity):
        raise self.exc

    def put(self, identity, blob):
        raise self.exc

    def delete(self, identity):
        raise self.exc


class DictVault:
    """In-memory keyring stand-in."""

    def __init__(self):
        self.data: Dict[str, str] = {}

    def get(self, identity):
        return self.data.get(identity)

    def put(self, identity, blob):
        self.data[identity] = blob

    def delete(self, identity):
        self.data.pop(identity, None)


def make_store(tmpdir: str, vault: Any = None) -> CredentialStore:
    return CredentialStore(vault if vault is not None else BrokenVault(), FileBackend(os.path.join(tmpdir, "tokens.json")))


def make_credential(expires_in: float = 3600, *, now: datetime = NOW, access: str = "at-1", refresh: str = "rt-1") -> Credential:
    return Credential(access_token=access, refresh_token=refresh, expires_at=now + timedelta(seconds=expires_in))


def make_tokens(access_token: str = "tok") -> MagicMock:
    """TokenManager stand-in that always hands out ``access_token``."""
    tokens = MagicMock()
    tokens.require_access_token.return_value = access_token
    tokens.get_valid_access_token.return_value = access_token
    return tokens


# -----------------------------------------------------------------------------
# Cache helpers
# -----------------------------------------------------------------------------


class CacheTestCase(TempDirMixin):
    """Mixin with a fresh on-disk cache and one authenticated account."""

    email = "me@example.com"

    def setUp(self):
        super().setUp()
        self.settings = make_settings(self.tmpdir)
        self.conn = connect(self.settings.db_path)
        self.account = authenticate_account(self.conn, self.email)

    def tearDown(self):
        self.conn.close()
        super().tearDown()

    def reopen(self):
        """Reconnect so rows written by another connection are visible."""
        self.conn.close()
        self.conn = connect(self.settings.db_path)
        return self.conn
