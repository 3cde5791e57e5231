"""
Async chat client for the Campus Gigs API.

Wraps the REST chat endpoints (httpx) and the Socket.IO connection
(python-socketio) and keeps one ``ConversationView`` per opened
conversation in sync with both.

Usage::

    client = ChatClient("http://localhost:8000", token, user_id)
    await client.connect()
    conv = await client.start_conversation(recipient_id=other_id)
    view = await client.open(conv["id"])
    await client.send(view, "hi")
    ...
    await client.close()
"""

from __future__ import annotations

import logging
from pathlib import Path
from typing import Any, Awaitable, Callable, Optional

import httpx
import socketio
from socketio.exceptions import SocketIOError

from src.client.reconciliation import ChatEntry, ConversationView

logger = logging.getLogger(__name__)

_REQUEST_TIMEOUT_SECONDS = 10.0

EventCallback = Callable[[dict[str, Any]], Awaitable[None]]


class ChatClientError(Exception):
    """Raised when the API answers with an error status."""

    def __init__(self, message: str, status: int | None = None) -> None:
        super().__init__(message)
        self.status = status


class ChatClient:
    def __init__(
        self,
        base_url: str,
        token: str,
        user_id: str,
        *,
        api_prefix: str = "/api",
        http: Optional[httpx.AsyncClient] = None,
        sio: Optional[socketio.AsyncClient] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.token = token
        self.user_id = str(user_id)
        self._http = http or httpx.AsyncClient(
            base_url=f"{self.base_url}{api_prefix}",
            timeout=_REQUEST_TIMEOUT_SECONDS,
        )
        self._http.headers["Authorization"] = f"Bearer {token}"
        self._sio = sio or socketio.AsyncClient(reconnection=True)
        self._views: dict[str, ConversationView] = {}
        self._listeners: dict[str, list[EventCallback]] = {}
        self._rejoin_task = None
        self._register_socket_handlers()

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    async def _request(self, method: str, url: str, **kwargs: Any) -> Any:
        response = await self._http.request(method, url, **kwargs)
        if response.status_code >= 400:
            try:
                message = response.json().get("message", response.text)
            except ValueError:
                message = response.text
            raise ChatClientError(message, status=response.status_code)
        body = response.json()
        return body.get("data", body)

    def _register_socket_handlers(self) -> None:
        self._sio.on("connect", self._on_connect)
        self._sio.on("receive_message", self._on_receive_message)
        for event in ("new_message_notification", "typing", "stop_typing",
                      "messages_read", "system_announcement"):
            self._sio.on(event, self._make_dispatcher(event))

    def _make_dispatcher(self, event: str):
        async def dispatch(data: dict[str, Any]) -> None:
            await self._emit_local(event, data)
        return dispatch

    async def _emit_local(self, event: str, data: dict[str, Any]) -> None:
        for callback in self._listeners.get(event, []):
            try:
                await callback(data)
            except Exception:
                logger.exception("Listener for %s failed", event)

    async def _on_receive_message(self, data: dict[str, Any]) -> None:
        view = self._views.get(str(data.get("conversationId")))
        if view is not None:
            view.receive(data)
        await self._emit_local("receive_message", data)

    def on(self, event: str, callback: EventCallback) -> None:
        """Subscribe to a socket event (after the view has been updated)."""
        self._listeners.setdefault(event, []).append(callback)

    # ------------------------------------------------------------------
    # Connection
    # ------------------------------------------------------------------

    async def connect(self) -> None:
        """Connect once; python-socketio reconnects on its own afterwards."""
        await self._sio.connect(
            self.base_url,
            auth={"token": self.token},
            socketio_path="/ws/socket.io",
        )

    async def _on_connect(self) -> None:
        # A new sid starts in no rooms.  Acks cannot be awaited from inside
        # the connect handler, so the rejoin runs as a background task.
        if self._views:
            self._rejoin_task = self._sio.start_background_task(self._rejoin_views)

    async def _rejoin_views(self) -> None:
        """Rejoin every open room and merge what arrived while offline."""
        for conversation_id, view in list(self._views.items()):
            try:
                ack = await self._sio.call("join_conversation", conversation_id)
                if not (ack or {}).get("ok"):
                    raise ChatClientError((ack or {}).get("error", "Join failed"))
                history = await self._request("GET", f"/chat/{conversation_id}/messages")
            except (ChatClientError, httpx.HTTPError, SocketIOError) as exc:
                logger.warning("Rejoin of %s failed: %s", conversation_id, exc)
                continue
            view.load_history(history)
        logger.info("Rejoined %d conversation(s) after connect", len(self._views))

    async def close(self) -> None:
        if self._sio.connected:
            await self._sio.disconnect()
        await self._http.aclose()

    # ------------------------------------------------------------------
    # Conversations
    # ------------------------------------------------------------------

    async def list_conversations(self) -> list[dict[str, Any]]:
        return await self._request("GET", "/chat/conversations")

    async def start_conversation(
        self,
        *,
        recipient_id: Optional[str] = None,
        job_id: Optional[str] = None,
    ) -> dict[str, Any]:
        body: dict[str, Any] = {}
        if recipient_id:
            body["recipientId"] = str(recipient_id)
        if job_id:
            body["jobId"] = str(job_id)
        return await self._request("POST", "/chat/start", json=body)

    async def open(self, conversation_id: str) -> ConversationView:
        """Join the room first, then load history, so no broadcast is missed."""
        conversation_id = str(conversation_id)
        view = self._views.get(conversation_id)
        if view is None:
            view = ConversationView(conversation_id, self.user_id)
            self._views[conversation_id] = view

        if self._sio.connected:
            ack = await self._sio.call("join_conversation", conversation_id)
            if not (ack or {}).get("ok"):
                raise ChatClientError((ack or {}).get("error", "Join failed"))

        history = await self._request("GET", f"/chat/{conversation_id}/messages")
        view.load_history(history)
        return view

    async def leave(self, conversation_id: str) -> None:
        conversation_id = str(conversation_id)
        self._views.pop(conversation_id, None)
        if self._sio.connected:
            await self._sio.call("leave_conversation", conversation_id)

    # ------------------------------------------------------------------
    # Messages
    # ------------------------------------------------------------------

    async def _deliver(self, view: ConversationView, entry: ChatEntry) -> ChatEntry:
        body: dict[str, Any] = {
            "content": entry.content,
            "clientMessageId": entry.client_message_id,
        }
        if entry.attachment:
            body["attachment"] = entry.attachment
        try:
            stored = await self._request(
                "POST", f"/chat/{view.conversation_id}/messages", json=body
            )
        except (ChatClientError, httpx.HTTPError) as exc:
            logger.warning("Send failed for %s: %s", entry.client_message_id, exc)
            return view.fail(entry.client_message_id) or entry
        return view.confirm(stored) or entry

    async def send(
        self,
        view: ConversationView,
        content: str,
        attachment: Optional[dict[str, Any]] = None,
    ) -> ChatEntry:
        """Show the message at once, then store it.

        A failed send leaves a ``failed`` entry that ``retry`` can resend
        with the same key.
        """
        entry = view.add_optimistic(content, attachment)
        return await self._deliver(view, entry)

    async def retry(self, view: ConversationView, client_message_id: str) -> Optional[ChatEntry]:
        entry = view.retry(client_message_id)
        if entry is None:
            return None
        return await self._deliver(view, entry)

    async def mark_read(self, conversation_id: str) -> int:
        data = await self._request("PATCH", f"/chat/{conversation_id}/read")
        return data["marked"]

    async def upload(self, path: str | Path) -> dict[str, Any]:
        """Upload a file and return the attachment dict for ``send``."""
        path = Path(path)
        with path.open("rb") as fh:
            data = await self._request(
                "POST", "/chat/upload", files={"file": (path.name, fh)}
            )
        return {
            "path": data["path"],
            "type": data["type"],
            "originalName": data["originalName"],
        }

    # ------------------------------------------------------------------
    # Typing
    # ------------------------------------------------------------------

    async def typing(self, conversation_id: str) -> None:
        await self._sio.emit(
            "typing", {"conversationId": str(conversation_id), "userId": self.user_id}
        )

    async def stop_typing(self, conversation_id: str) -> None:
        await self._sio.emit(
            "stop_typing", {"conversationId": str(conversation_id), "userId": self.user_id}
        )
