"""
Client-side message list for one conversation.

Outgoing messages are shown immediately as *pending* entries carrying a
freshly generated ``clientMessageId``.  The server stores that key with
the message and echoes it in both the REST response and the
``receive_message`` broadcast, so the authoritative copy replaces the
pending entry by exact key lookup, whichever of the two arrives first.

Entry states::

    pending --confirm/receive--> sent
    pending --fail-------------> failed --retry--> pending

Messages from other users are appended; copies of a message that is
already listed (same server id) are dropped.
"""

from __future__ import annotations

import enum
import logging
import uuid
from dataclasses import dataclass, field, replace
from datetime import datetime, timezone
from typing import Any, Iterable, Optional

logger = logging.getLogger(__name__)


class DeliveryStatus(str, enum.Enum):
    PENDING = "pending"
    SENT = "sent"
    FAILED = "failed"


def new_client_message_id() -> str:
    return uuid.uuid4().hex


def _parse_time(value: Any) -> datetime:
    if isinstance(value, datetime):
        return value
    if isinstance(value, str) and value:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    return datetime.now(timezone.utc)


@dataclass
class ChatEntry:
    """One visible message, optimistic or stored."""

    conversation_id: str
    sender_id: Optional[str]
    content: str
    created_at: datetime
    id: Optional[str] = None
    client_message_id: Optional[str] = None
    attachment: Optional[dict[str, Any]] = None
    sender_name: Optional[str] = None
    read_by: list[str] = field(default_factory=list)
    status: DeliveryStatus = DeliveryStatus.SENT

    @classmethod
    def from_payload(cls, payload: dict[str, Any]) -> "ChatEntry":
        """Build from a server message (``MessageOut`` JSON, camelCase)."""
        sender = payload.get("sender") or {}
        return cls(
            id=str(payload["id"]),
            conversation_id=str(payload["conversationId"]),
            sender_id=str(sender["id"]) if sender.get("id") else None,
            sender_name=sender.get("name"),
            content=payload.get("content") or "",
            attachment=payload.get("attachment"),
            read_by=[str(u) for u in payload.get("readBy") or []],
            client_message_id=payload.get("clientMessageId"),
            created_at=_parse_time(payload.get("createdAt")),
            status=DeliveryStatus.SENT,
        )

    @property
    def is_pending(self) -> bool:
        return self.status == DeliveryStatus.PENDING


class ConversationView:
    """Ordered, de-duplicated message list of a single conversation."""

    def __init__(self, conversation_id: str, self_id: str) -> None:
        self.conversation_id = str(conversation_id)
        self.self_id = str(self_id)
        self._entries: list[ChatEntry] = []

    # -- queries ------------------------------------------------------------

    @property
    def messages(self) -> list[ChatEntry]:
        return list(self._entries)

    def pending(self) -> list[ChatEntry]:
        return [e for e in self._entries if e.is_pending]

    def __len__(self) -> int:
        return len(self._entries)

    def _index_of_local(self, client_message_id: str) -> int | None:
        for i, entry in enumerate(self._entries):
            if entry.id is None and entry.client_message_id == client_message_id:
                return i
        return None

    def _index_of_id(self, message_id: str) -> int | None:
        for i, entry in enumerate(self._entries):
            if entry.id == message_id:
                return i
        return None

    # -- mutations ----------------------------------------------------------

    def add_optimistic(
        self,
        content: str,
        attachment: Optional[dict[str, Any]] = None,
    ) -> ChatEntry:
        """Append a pending entry for a message about to be sent."""
        entry = ChatEntry(
            conversation_id=self.conversation_id,
            sender_id=self.self_id,
            content=content,
            attachment=attachment,
            client_message_id=new_client_message_id(),
            created_at=datetime.now(timezone.utc),
            status=DeliveryStatus.PENDING,
        )
        self._entries.append(entry)
        return entry

    def receive(self, payload: dict[str, Any]) -> Optional[ChatEntry]:
        """Merge a stored message from the REST response or the socket.

        Returns the entry now in the list, or None when the message
        belongs to another conversation.
        """
        incoming = ChatEntry.from_payload(payload)
        if incoming.conversation_id != self.conversation_id:
            return None

        existing = self._index_of_id(incoming.id)
        if existing is not None:
            return self._entries[existing]

        if incoming.client_message_id and incoming.sender_id == self.self_id:
            local = self._index_of_local(incoming.client_message_id)
            if local is not None:
                self._entries[local] = incoming
                return incoming

        self._entries.append(incoming)
        return incoming

    confirm = receive

    def fail(self, client_message_id: str) -> Optional[ChatEntry]:
        index = self._index_of_local(client_message_id)
        if index is None:
            return None
        entry = replace(self._entries[index], status=DeliveryStatus.FAILED)
        self._entries[index] = entry
        logger.warning("Message %s failed to send", client_message_id)
        return entry

    def retry(self, client_message_id: str) -> Optional[ChatEntry]:
        """Put a failed entry back to pending.  The key is reused as is."""
        index = self._index_of_local(client_message_id)
        if index is None or self._entries[index].status != DeliveryStatus.FAILED:
            return None
        entry = replace(self._entries[index], status=DeliveryStatus.PENDING)
        self._entries[index] = entry
        return entry

    def load_history(self, payloads: Iterable[dict[str, Any]]) -> None:
        """Replace the list with server history.

        Local entries whose message is not in the history yet stay at the
        end, in their original order.
        """
        history = [ChatEntry.from_payload(p) for p in payloads]
        history = [e for e in history if e.conversation_id == self.conversation_id]
        stored_keys = {
            e.client_message_id
            for e in history
            if e.client_message_id and e.sender_id == self.self_id
        }
        local = [
            e for e in self._entries
            if e.id is None and e.client_message_id not in stored_keys
        ]
        self._entries = history + local
