"""Per-identity OAuth credential storage.

The OS keyring is the primary backend. When it is unusable (headless host,
no secret-service daemon, permission failure) every operation silently falls
back to a JSON map file readable only by the owner.
"""

from __future__ import annotations

import json
import logging
import os
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Optional

import keyring
import keyring.errors

from .constants import KEYRING_SERVICE

LOG = logging.getLogger(__name__)


@dataclass
class Credential:
    """Access token, refresh token and absolute expiry for one identity."""

    access_token: str
    refresh_token: str
    expires_at: datetime

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accessToken": self.access_token,
            "refreshToken": self.refresh_token,
            "expiresAt": self.expires_at.astimezone(timezone.utc).isoformat(),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Credential":
        expires = data.get("expiresAt")
        if isinstance(expires, (int, float)):
            # Epoch milliseconds
            expires_at = datetime.fromtimestamp(expires / 1000.0, tz=timezone.utc)
        else:
            expires_at = datetime.fromisoformat(str(expires))
            if expires_at.tzinfo is None:
                expires_at = expires_at.replace(tzinfo=timezone.utc)
        return cls(
            access_token=str(data["accessToken"]),
            refresh_token=str(data["refreshToken"]),
            expires_at=expires_at,
        )

    def to_json(self) -> str:
        return json.dumps(self.to_dict())

    @classmethod
    def from_json(cls, text: str) -> "Credential":
        return cls.from_dict(json.loads(text))

    def __repr__(self) -> str:
        return f"Credential(expires_at={self.expires_at.isoformat()})"


class KeyringBackend:
    """OS credential vault addressed by (service, identity)."""

    def __init__(self, service: str = KEYRING_SERVICE) -> None:
        self.service = service

    def get(self, identity: str) -> Optional[str]:
        return keyring.get_password(self.service, identity)

    def put(self, identity: str, blob: str) -> None:
        keyring.set_password(self.service, identity, blob)

    def delete(self, identity: str) -> None:
        try:
            keyring.delete_password(self.service, identity)
        except keyring.errors.PasswordDeleteError:
            pass  # Not present


class FileBackend:
    """JSON map ``{identity: blob}`` in a 0600 file."""

    def __init__(self, path: str) -> None:
        self.path = os.path.expanduser(path)

    def _load(self) -> Dict[str, str]:
        if not os.path.exists(self.path):
            return {}
        try:
            with open(self.path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError):
            LOG.warning("Token file %s is unreadable; treating it as empty", self.path)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def _save(self, data: Dict[str, str]) -> None:
        d = os.path.dirname(self.path)
        if d:
            os.makedirs(d, exist_ok=True)
        fd = os.open(self.path, os.O_WRONLY | os.O_CREAT | os.O_TRUNC, 0o600)
        with os.fdopen(fd, "w", encoding="utf-8") as fh:
            json.dump(data, fh, indent=2)
        os.chmod(self.path, 0o600)

    def get(self, identity: str) -> Optional[str]:
        return self._load().get(identity)

    def put(self, identity: str, blob: str) -> None:
        data = self._load()
        data[identity] = blob
        self._save(data)

    def delete(self, identity: str) -> None:
        data = self._load()
        if data.pop(identity, None) is not None:
            self._save(data)


class CredentialStore:
    """Keyring first, file fallback; values are Credential objects."""

    def __init__(self, primary: Any, fallback: FileBackend) -> None:
        self.primary = primary
        self.fallback = fallback

    @classmethod
    def default(cls, tokens_file: str, service: str = KEYRING_SERVICE) -> "CredentialStore":
        return cls(KeyringBackend(service), FileBackend(tokens_file))

    def put(self, identity: str, credential: Credential) -> None:
        blob = credential.to_json()
        try:
            self.primary.put(identity, blob)
        except Exception as exc:  # nosec B110 - vault unavailable, fall back to file
            LOG.debug("Keyring write failed (%s); using token file", type(exc).__name__)
        else:
            # A copy left by an earlier fallback write would now be stale
            self.fallback.delete(identity)
            return
        self.fallback.put(identity, blob)

    def _decode(self, identity: str, blob: Optional[str]) -> Optional[Credential]:
        if blob is None:
            return None
        try:
            return Credential.from_json(blob)
        except (KeyError, TypeError, ValueError):
            LOG.warning("Stored credential for %s is malformed; ignoring it", identity)
            return None

    def get(self, identity: str) -> Optional[Credential]:
        """Vault entry, or the file entry when it is missing there or newer."""
        vault_blob: Optional[str] = None
        try:
            vault_blob = self.primary.get(identity)
        except Exception as exc:  # nosec B110 - vault unavailable, fall back to file
            LOG.debug("Keyring read failed (%s); using token file", type(exc).__name__)
        from_vault = self._decode(identity, vault_blob)
        from_file = self._decode(identity, self.fallback.get(identity))
        if from_vault is None:
            return from_file
        if from_file is not None and from_file.expires_at > from_vault.expires_at:
            return from_file
        return from_vault

    def delete(self, identity: str) -> None:
        try:
            self.primary.delete(identity)
        except Exception as exc:  # nosec B110 - vault unavailable, fall back to file
            LOG.debug("Keyring delete failed (%s); using token file", type(exc).__name__)
        self.fallback.delete(identity)

    def vault_available(self) -> bool:
        """Best-effort probe of the primary backend."""
        try:
            self.primary.get("__probe__")
        except Exception:
            return False
        return True
