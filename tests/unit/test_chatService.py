"""
Unit tests for chat service rules that do not need a database:
message validation, conversation keys and JOB participant derivation.
"""

import uuid
from types import SimpleNamespace

import pytest

from src.core.exceptions import ConflictError, ValidationError
from src.models.chat import direct_key_for
from src.services import chatService
from src.services.chatService import (
    AttachmentDTO,
    ConversationTarget,
    MAX_MESSAGE_LENGTH,
    _job_participants,
    _validate_content,
)


class TestValidateContent:

    def test_plain_text(self):
        assert _validate_content("hello", None, None) == "hello"

    def test_blank_without_attachment_rejected(self):
        with pytest.raises(ValidationError, match="content or attachment"):
            _validate_content("   ", None, None)

    def test_none_without_attachment_rejected(self):
        with pytest.raises(ValidationError):
            _validate_content(None, None, None)

    def test_attachment_only_allowed(self):
        attachment = AttachmentDTO(path="uploads/x.png", type="image", original_name="x.png")
        assert _validate_content("", attachment, None) == ""

    def test_max_length_boundary(self):
        assert len(_validate_content("a" * MAX_MESSAGE_LENGTH, None, None)) == MAX_MESSAGE_LENGTH
        with pytest.raises(ValidationError, match="maximum length"):
            _validate_content("a" * (MAX_MESSAGE_LENGTH + 1), None, None)

    @pytest.mark.parametrize("cmid", ["", "x" * 65])
    def test_invalid_client_message_id(self, cmid):
        with pytest.raises(ValidationError, match="clientMessageId"):
            _validate_content("hi", None, cmid)


class TestDirectKey:

    def test_order_independent(self):
        a, b = uuid.uuid4(), uuid.uuid4()
        assert direct_key_for(a, b) == direct_key_for(b, a)

    def test_distinct_pairs_differ(self):
        a, b, c = uuid.uuid4(), uuid.uuid4(), uuid.uuid4()
        assert direct_key_for(a, b) != direct_key_for(a, c)


class TestTargets:

    def test_targets_are_hashable_values(self):
        cid = uuid.uuid4()
        assert ConversationTarget(cid) == ConversationTarget(cid)
        assert len({ConversationTarget(cid), ConversationTarget(cid)}) == 1


class TestJobParticipants:

    def test_assigned_job_uses_poster_and_worker(self):
        job = SimpleNamespace(posted_by_id=uuid.uuid4(), accepted_by_id=uuid.uuid4())
        assert _job_participants(job) == [job.posted_by_id, job.accepted_by_id]

    def test_unassigned_job_has_no_participants_yet(self):
        job = SimpleNamespace(posted_by_id=uuid.uuid4(), accepted_by_id=None)
        with pytest.raises(ConflictError, match="Nobody has accepted"):
            _job_participants(job)


@pytest.mark.asyncio
class TestResolveWithoutDatabase:

    async def test_direct_with_self_rejected(self, mock_db):
        me = uuid.uuid4()
        with pytest.raises(ValidationError, match="yourself"):
            await chatService.resolve_direct(mock_db, me, me)
        mock_db.execute.assert_not_awaited()

    async def test_missing_recipient_rejected(self, mock_db):
        with pytest.raises(ValidationError, match="Recipient ID is required"):
            await chatService.resolve_conversation(mock_db, uuid.uuid4())

    async def test_unknown_target_rejected(self, mock_db):
        with pytest.raises(ValidationError, match="Unknown message target"):
            await chatService.resolve_target(mock_db, uuid.uuid4(), object())

    async def test_post_validates_before_touching_database(self, mock_db):
        with pytest.raises(ValidationError):
            await chatService.post_message(mock_db, uuid.uuid4(), uuid.uuid4(), "")
        mock_db.execute.assert_not_awaited()
