"""
E2E tests for conversations and messages.

Covers:
- DIRECT and JOB conversation resolution is idempotent (one row per pair / job)
- Message posting, history order, preview and unread counters
- clientMessageId echo and duplicate suppression on retry
- Non-participants get 404
- Fan-out: room broadcast, online notification, offline email
- Read receipts
"""

from __future__ import annotations

import uuid

import pytest
from httpx import AsyncClient
from sqlalchemy import func, select

from src.models.chat import Conversation, ConversationParticipant, Message
from src.realtime.presenceRegistry import presence
from src.services import chatService
from src.services.notificationService import NotificationKind
from tests.e2e.conftest import (
    accept_job_via_api,
    create_job_via_api,
    emitted,
    send_message,
    start_conversation,
)

pytestmark = pytest.mark.asyncio


async def _count(session_factory, model, *filters) -> int:
    async with session_factory() as session:
        stmt = select(func.count()).select_from(model).where(*filters)
        return (await session.execute(stmt)).scalar_one()


# ---------------------------------------------------------------------------
# Conversation resolution
# ---------------------------------------------------------------------------


class TestDirectConversations:

    async def test_start_creates_direct_conversation(self, client: AsyncClient, alice, bob):
        resp = await start_conversation(client, alice, recipient_id=bob.id)

        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["type"] == "DIRECT"
        assert {p["id"] for p in data["participants"]} == {str(alice.id), str(bob.id)}
        assert data["context"] is None
        assert data["lastMessageContent"] == ""
        assert data["unreadCount"] == 0

    async def test_repeated_start_returns_same_conversation(
        self, client: AsyncClient, session_factory, alice, bob
    ):
        first = await start_conversation(client, alice, recipient_id=bob.id)
        again = await start_conversation(client, alice, recipient_id=bob.id)
        reverse = await start_conversation(client, bob, recipient_id=alice.id)

        ids = {r.json()["data"]["id"] for r in (first, again, reverse)}
        assert len(ids) == 1
        assert await _count(session_factory, Conversation) == 1
        assert await _count(session_factory, ConversationParticipant) == 2

    async def test_cannot_start_with_self(self, client: AsyncClient, alice):
        resp = await start_conversation(client, alice, recipient_id=alice.id)
        assert resp.status_code == 400
        assert "yourself" in resp.json()["message"]

    async def test_unknown_recipient(self, client: AsyncClient, alice):
        resp = await start_conversation(client, alice, recipient_id=uuid.uuid4())
        assert resp.status_code == 404

    async def test_recipient_required(self, client: AsyncClient, alice):
        resp = await start_conversation(client, alice)
        assert resp.status_code == 400
        assert resp.json()["message"] == "Recipient ID is required"

    async def test_requires_authentication(self, client: AsyncClient, bob):
        resp = await client.post("/api/chat/start", json={"recipientId": str(bob.id)})
        assert resp.status_code == 401
        assert resp.json()["message"] == "No token"

    async def test_insert_if_absent_converges(self, session_factory, alice, bob):
        """A second create for the same key is a no-op, not a duplicate."""
        key = chatService.direct_key_for(alice.id, bob.id)
        values = {"type": chatService.ConversationType.DIRECT, "direct_key": key}

        async with session_factory() as session:
            first = await chatService._create_if_absent(
                session, values=values, key_column="direct_key",
                participant_ids=[alice.id, bob.id],
            )
            second = await chatService._create_if_absent(
                session, values=values, key_column="direct_key",
                participant_ids=[alice.id, bob.id],
            )
            await session.commit()

        assert (first, second) == (True, False)
        assert await _count(session_factory, Conversation) == 1
        assert await _count(session_factory, ConversationParticipant) == 2


class TestJobConversations:

    async def test_job_conversation_has_poster_and_worker(self, client: AsyncClient, alice, bob):
        job = await create_job_via_api(client, alice)
        await accept_job_via_api(client, bob, job["id"])

        resp = await start_conversation(client, alice, job_id=job["id"])

        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["type"] == "JOB"
        assert data["context"] == {
            "id": job["id"],
            "title": "Fix my laptop",
            "status": "in-progress",
        }
        assert {p["id"] for p in data["participants"]} == {str(alice.id), str(bob.id)}

    async def test_job_conversation_is_unique_per_job(
        self, client: AsyncClient, session_factory, alice, bob
    ):
        job = await create_job_via_api(client, alice)
        await accept_job_via_api(client, bob, job["id"])

        by_worker = await start_conversation(client, bob, job_id=job["id"])
        by_poster = await start_conversation(client, alice, job_id=job["id"])
        # recipientId is ignored when jobId is present
        with_recipient = await start_conversation(
            client, alice, job_id=job["id"], recipient_id=bob.id
        )

        ids = {r.json()["data"]["id"] for r in (by_worker, by_poster, with_recipient)}
        assert len(ids) == 1
        assert await _count(session_factory, Conversation) == 1

    async def test_outsider_cannot_open_assigned_job_chat(
        self, client: AsyncClient, alice, bob, carol
    ):
        job = await create_job_via_api(client, alice)
        await accept_job_via_api(client, bob, job["id"])

        resp = await start_conversation(client, carol, job_id=job["id"])
        assert resp.status_code == 403

    async def test_nobody_can_open_unassigned_job_chat(
        self, client: AsyncClient, session_factory, alice, bob, carol
    ):
        job = await create_job_via_api(client, alice)

        for actor in (alice, bob, carol):
            resp = await start_conversation(client, actor, job_id=job["id"])
            assert resp.status_code == 400
            assert resp.json()["message"] == "Nobody has accepted this job yet"
        assert await _count(session_factory, Conversation) == 0

    async def test_earlier_asker_is_not_let_in_after_accept(
        self, client: AsyncClient, alice, bob, carol
    ):
        job = await create_job_via_api(client, alice)
        await start_conversation(client, carol, job_id=job["id"])
        await accept_job_via_api(client, bob, job["id"])

        by_worker = await start_conversation(client, bob, job_id=job["id"])
        by_asker = await start_conversation(client, carol, job_id=job["id"])

        assert {p["id"] for p in by_worker.json()["data"]["participants"]} == {
            str(alice.id), str(bob.id)
        }
        assert by_asker.status_code == 403
        assert by_asker.json()["message"] == "You are not part of this job"

    async def test_unknown_job(self, client: AsyncClient, alice):
        resp = await start_conversation(client, alice, job_id=str(uuid.uuid4()))
        assert resp.status_code == 404
        assert resp.json()["message"] == "Job not found"


class TestJobReassignment:

    async def _reassign(self, client: AsyncClient, admin, poster, old_worker, new_worker):
        job = await create_job_via_api(client, poster)
        await accept_job_via_api(client, old_worker, job["id"])
        conv = (await start_conversation(client, poster, job_id=job["id"])).json()["data"]
        await send_message(client, poster, conv["id"], "keys are under the mat")

        reopened = await client.put(
            f"/api/admin/jobs/{job['id']}", json={"status": "open"}, headers=admin.headers
        )
        assert reopened.status_code == 200, reopened.text
        await accept_job_via_api(client, new_worker, job["id"])
        return job, conv

    async def test_new_worker_replaces_old_one(self, client: AsyncClient, admin, alice, bob, carol):
        job, conv = await self._reassign(client, admin, alice, bob, carol)

        resp = await start_conversation(client, carol, job_id=job["id"])

        assert resp.status_code == 200, resp.text
        data = resp.json()["data"]
        assert data["id"] == conv["id"]
        assert {p["id"] for p in data["participants"]} == {str(alice.id), str(carol.id)}

    async def test_old_worker_loses_access(self, client: AsyncClient, admin, alice, bob, carol):
        job, conv = await self._reassign(client, admin, alice, bob, carol)

        history = await client.get(f"/api/chat/{conv['id']}/messages", headers=bob.headers)
        restart = await start_conversation(client, bob, job_id=job["id"])
        listed = await client.get("/api/chat/conversations", headers=bob.headers)

        assert history.status_code == 404
        assert restart.status_code == 403
        assert listed.json()["data"] == []

    async def test_only_current_worker_is_emailed(
        self, client: AsyncClient, admin, alice, bob, carol, notifier
    ):
        _, conv = await self._reassign(client, admin, alice, bob, carol)
        before = len(notifier.of_kind(NotificationKind.NEW_MESSAGE))

        await send_message(client, alice, conv["id"], "carol, the address is 12 Main St")

        emails = notifier.of_kind(NotificationKind.NEW_MESSAGE)[before:]
        assert [e.to for e in emails] == [carol.email]


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class TestMessages:

    async def _direct(self, client, alice, bob) -> str:
        resp = await start_conversation(client, alice, recipient_id=bob.id)
        return resp.json()["data"]["id"]

    async def test_send_returns_stored_message(self, client: AsyncClient, alice, bob):
        conv_id = await self._direct(client, alice, bob)

        resp = await send_message(client, alice, conv_id, "hello", clientMessageId="c-1")

        assert resp.status_code == 201, resp.text
        msg = resp.json()["data"]
        assert msg["conversationId"] == conv_id
        assert msg["content"] == "hello"
        assert msg["sender"]["id"] == str(alice.id)
        assert msg["sender"]["name"] == "Alice"
        assert msg["clientMessageId"] == "c-1"
        assert msg["readBy"] == []
        assert msg["attachment"] is None

    async def test_history_is_oldest_first(self, client: AsyncClient, alice, bob):
        conv_id = await self._direct(client, alice, bob)
        for text, sender in [("one", alice), ("two", bob), ("three", alice)]:
            resp = await send_message(client, sender, conv_id, text)
            assert resp.status_code == 201

        resp = await client.get(f"/api/chat/{conv_id}/messages", headers=bob.headers)

        assert resp.status_code == 200
        assert [m["content"] for m in resp.json()["data"]] == ["one", "two", "three"]

    async def test_preview_and_ordering_of_conversation_list(
        self, client: AsyncClient, alice, bob, carol
    ):
        with_bob = await self._direct(client, alice, bob)
        with_carol = await self._direct(client, alice, carol)
        await send_message(client, alice, with_carol, "to carol")
        resp = await send_message(client, alice, with_bob, "to bob")
        last_id = resp.json()["data"]["id"]

        resp = await client.get("/api/chat/conversations", headers=alice.headers)

        data = resp.json()["data"]
        assert [c["id"] for c in data] == [with_bob, with_carol]
        assert data[0]["lastMessageContent"] == "to bob"
        assert data[0]["lastMessageId"] == last_id

    async def test_unread_counter_and_mark_read(
        self, client: AsyncClient, alice, bob, sio_emit
    ):
        conv_id = await self._direct(client, alice, bob)
        await send_message(client, alice, conv_id, "one")
        await send_message(client, alice, conv_id, "two")

        convs = (await client.get("/api/chat/conversations", headers=bob.headers)).json()["data"]
        assert convs[0]["unreadCount"] == 2
        own = (await client.get("/api/chat/conversations", headers=alice.headers)).json()["data"]
        assert own[0]["unreadCount"] == 0

        resp = await client.patch(f"/api/chat/{conv_id}/read", headers=bob.headers)
        assert resp.status_code == 200
        assert resp.json()["data"]["marked"] == 2

        again = await client.patch(f"/api/chat/{conv_id}/read", headers=bob.headers)
        assert again.json()["data"]["marked"] == 0

        convs = (await client.get("/api/chat/conversations", headers=bob.headers)).json()["data"]
        assert convs[0]["unreadCount"] == 0

        history = (await client.get(f"/api/chat/{conv_id}/messages", headers=alice.headers)).json()
        assert all(m["readBy"] == [str(bob.id)] for m in history["data"])

        [(payload, kwargs)] = emitted(sio_emit, "messages_read")
        assert payload == {"conversationId": conv_id, "readBy": str(bob.id)}
        assert kwargs["room"] == conv_id

    async def test_empty_message_rejected(self, client: AsyncClient, alice, bob):
        conv_id = await self._direct(client, alice, bob)
        resp = await send_message(client, alice, conv_id, "   ")
        assert resp.status_code == 400
        assert "content or attachment" in resp.json()["message"]

    async def test_too_long_message_rejected(self, client: AsyncClient, alice, bob):
        conv_id = await self._direct(client, alice, bob)
        resp = await send_message(client, alice, conv_id, "x" * 5001)
        assert resp.status_code == 400

    async def test_attachment_only_message(self, client: AsyncClient, alice, bob):
        conv_id = await self._direct(client, alice, bob)
        attachment = {"path": "uploads/a.png", "type": "image", "originalName": "a.png"}

        resp = await send_message(client, alice, conv_id, "", attachment=attachment)

        assert resp.status_code == 201, resp.text
        assert resp.json()["data"]["attachment"] == attachment

    async def test_upload_then_send(self, client: AsyncClient, alice, bob):
        conv_id = await self._direct(client, alice, bob)
        resp = await client.post(
            "/api/chat/upload",
            files={"file": ("notes.pdf", b"%PDF-1.4", "application/pdf")},
            headers=alice.headers,
        )
        assert resp.status_code == 201, resp.text
        upload = resp.json()["data"]
        assert upload["type"] == "file"
        assert upload["originalName"] == "notes.pdf"

        resp = await send_message(client, alice, conv_id, "see attached", attachment=upload)
        assert resp.json()["data"]["attachment"]["path"] == upload["path"]


class TestTaggedTargets:

    async def test_send_to_direct_target_creates_conversation(
        self, client: AsyncClient, session_factory, alice, bob
    ):
        body = {"content": "hi", "target": {"kind": "direct", "recipientId": str(bob.id)}}

        first = await client.post("/api/chat/messages", json=body, headers=alice.headers)
        second = await client.post("/api/chat/messages", json=body, headers=alice.headers)

        assert first.status_code == 201, first.text
        assert first.json()["data"]["conversationId"] == second.json()["data"]["conversationId"]
        assert await _count(session_factory, Conversation) == 1

    async def test_send_to_job_target(self, client: AsyncClient, alice, bob):
        job = await create_job_via_api(client, alice)
        await accept_job_via_api(client, bob, job["id"])
        body = {"content": "on my way", "target": {"kind": "job", "jobId": job["id"]}}

        resp = await client.post("/api/chat/messages", json=body, headers=bob.headers)

        assert resp.status_code == 201, resp.text
        convs = (await client.get("/api/chat/conversations", headers=alice.headers)).json()
        assert convs["data"][0]["context"]["id"] == job["id"]
        assert convs["data"][0]["lastMessageContent"] == "on my way"

    async def test_send_to_conversation_target(self, client: AsyncClient, alice, bob):
        conv = (await start_conversation(client, alice, recipient_id=bob.id)).json()["data"]
        body = {"content": "yo", "target": {"kind": "conversation", "conversationId": conv["id"]}}

        resp = await client.post("/api/chat/messages", json=body, headers=bob.headers)

        assert resp.status_code == 201
        assert resp.json()["data"]["conversationId"] == conv["id"]

    async def test_unknown_target_kind(self, client: AsyncClient, alice):
        body = {"content": "hi", "target": {"kind": "group", "groupId": "x"}}
        resp = await client.post("/api/chat/messages", json=body, headers=alice.headers)
        assert resp.status_code == 400


# ---------------------------------------------------------------------------
# Idempotent retries
# ---------------------------------------------------------------------------


class TestClientMessageIdReplay:

    async def test_retry_returns_same_message_without_duplicate(
        self, client: AsyncClient, session_factory, alice, bob, sio_emit
    ):
        conv_id = (await start_conversation(client, alice, recipient_id=bob.id)).json()["data"]["id"]

        first = await send_message(client, alice, conv_id, "pay?", clientMessageId="k-1")
        retry = await send_message(client, alice, conv_id, "pay?", clientMessageId="k-1")

        assert first.status_code == 201
        assert retry.status_code == 200
        assert retry.json()["data"]["id"] == first.json()["data"]["id"]
        assert await _count(session_factory, Message) == 1
        # The replay is not broadcast again
        assert len(emitted(sio_emit, "receive_message")) == 1

        convs = (await client.get("/api/chat/conversations", headers=bob.headers)).json()["data"]
        assert convs[0]["unreadCount"] == 1

    async def test_same_key_from_different_senders_is_independent(
        self, client: AsyncClient, session_factory, alice, bob
    ):
        conv_id = (await start_conversation(client, alice, recipient_id=bob.id)).json()["data"]["id"]

        await send_message(client, alice, conv_id, "a", clientMessageId="same")
        await send_message(client, bob, conv_id, "b", clientMessageId="same")

        assert await _count(session_factory, Message) == 2

    async def test_key_reused_in_other_conversation_conflicts(
        self, client: AsyncClient, alice, bob, carol
    ):
        with_bob = (await start_conversation(client, alice, recipient_id=bob.id)).json()["data"]["id"]
        with_carol = (await start_conversation(client, alice, recipient_id=carol.id)).json()["data"]["id"]

        await send_message(client, alice, with_bob, "x", clientMessageId="dup")
        resp = await send_message(client, alice, with_carol, "x", clientMessageId="dup")

        assert resp.status_code == 400
        assert "another conversation" in resp.json()["message"]

    async def test_identical_texts_with_distinct_keys_are_both_stored(
        self, client: AsyncClient, alice, bob
    ):
        conv_id = (await start_conversation(client, alice, recipient_id=bob.id)).json()["data"]["id"]

        a = await send_message(client, alice, conv_id, "ok", clientMessageId="k-a")
        b = await send_message(client, alice, conv_id, "ok", clientMessageId="k-b")

        assert a.json()["data"]["clientMessageId"] == "k-a"
        assert b.json()["data"]["clientMessageId"] == "k-b"
        assert a.json()["data"]["id"] != b.json()["data"]["id"]


# ---------------------------------------------------------------------------
# Participant checks
# ---------------------------------------------------------------------------


class TestNonParticipants:

    async def test_outsider_gets_404_everywhere(self, client: AsyncClient, alice, bob, carol):
        conv_id = (await start_conversation(client, alice, recipient_id=bob.id)).json()["data"]["id"]
        await send_message(client, alice, conv_id, "private")

        history = await client.get(f"/api/chat/{conv_id}/messages", headers=carol.headers)
        post = await send_message(client, carol, conv_id, "let me in")
        read = await client.patch(f"/api/chat/{conv_id}/read", headers=carol.headers)

        assert history.status_code == 404
        assert post.status_code == 404
        assert read.status_code == 404
        assert history.json()["message"] == "Conversation not found"

    async def test_missing_conversation_looks_the_same(self, client: AsyncClient, carol):
        resp = await client.get(f"/api/chat/{uuid.uuid4()}/messages", headers=carol.headers)
        assert resp.status_code == 404
        assert resp.json()["message"] == "Conversation not found"

    async def test_outsider_does_not_see_conversation_in_list(
        self, client: AsyncClient, alice, bob, carol
    ):
        await start_conversation(client, alice, recipient_id=bob.id)
        resp = await client.get("/api/chat/conversations", headers=carol.headers)
        assert resp.json()["data"] == []


# ---------------------------------------------------------------------------
# Fan-out
# ---------------------------------------------------------------------------


class TestFanOut:

    async def test_room_broadcast_carries_client_message_id(
        self, client: AsyncClient, alice, bob, sio_emit
    ):
        conv_id = (await start_conversation(client, alice, recipient_id=bob.id)).json()["data"]["id"]

        resp = await send_message(client, alice, conv_id, "hello", clientMessageId="c-9")

        [(payload, kwargs)] = emitted(sio_emit, "receive_message")
        assert kwargs["room"] == conv_id
        assert payload["id"] == resp.json()["data"]["id"]
        assert payload["clientMessageId"] == "c-9"
        assert payload["conversationId"] == conv_id
        assert len(emitted(sio_emit, "receive_direct_message")) == 1

    async def test_offline_recipient_is_emailed(
        self, client: AsyncClient, alice, bob, notifier, sio_emit
    ):
        conv_id = (await start_conversation(client, alice, recipient_id=bob.id)).json()["data"]["id"]

        await send_message(client, alice, conv_id, "are you there?")

        emails = notifier.of_kind(NotificationKind.NEW_MESSAGE)
        assert [e.to for e in emails] == [bob.email]
        assert emails[0].context["sender_name"] == "Alice"
        assert emitted(sio_emit, "new_message_notification") == []

    async def test_online_recipient_gets_socket_notification(
        self, client: AsyncClient, alice, bob, notifier, sio_emit
    ):
        presence.connect(str(bob.id), "bob-tab-1")
        presence.connect(str(bob.id), "bob-tab-2")
        conv_id = (await start_conversation(client, alice, recipient_id=bob.id)).json()["data"]["id"]

        await send_message(client, alice, conv_id, "ping")

        notes = emitted(sio_emit, "new_message_notification")
        assert {kw["to"] for _, kw in notes} == {"bob-tab-1", "bob-tab-2"}
        assert notes[0][0] == {
            "conversationId": conv_id,
            "senderName": "Alice",
            "content": "ping",
        }
        assert notifier.of_kind(NotificationKind.NEW_MESSAGE) == []

    async def test_broadcast_failure_does_not_fail_the_send(
        self, client: AsyncClient, session_factory, alice, bob, sio_emit
    ):
        sio_emit.side_effect = RuntimeError("socket layer down")
        conv_id = (await start_conversation(client, alice, recipient_id=bob.id)).json()["data"]["id"]

        resp = await send_message(client, alice, conv_id, "still stored")

        assert resp.status_code == 201
        assert await _count(session_factory, Message) == 1
