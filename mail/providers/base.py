from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any, Dict, List

from core.models import MessageDetail, MessageRecord


class MailProvider(ABC):
    """Mail capability interface used by the mail commands.

    Implementations fetch fresh state on every call and never touch the local
    cache; callers update the cache only after a mutating call returns.
    """

    provider_name: str = "mail"

    # ---- messages ----
    @abstractmethod
    def list_messages(self, days: int) -> List[MessageRecord]:
        ...

    @abstractmethod
    def get_message(self, message_id: str) -> MessageDetail:
        ...

    @abstractmethod
    def archive(self, message_id: str) -> None:
        ...

    @abstractmethod
    def delete(self, message_id: str) -> None:
        ...

    # ---- labels ----
    @abstractmethod
    def list_labels(self) -> List[Dict[str, Any]]:
        ...

    @abstractmethod
    def ensure_label(self, name: str) -> str:
        ...

    @abstractmethod
    def add_label(self, message_id: str, name: str) -> None:
        ...

    @abstractmethod
    def remove_label(self, message_id: str, name: str) -> None:
        ...
