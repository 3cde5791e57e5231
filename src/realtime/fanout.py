"""
Real-time fan-out of newly stored chat messages.

After a message is persisted:

  1. ``receive_message`` goes to the conversation room (DIRECT rooms also
     get the legacy ``receive_direct_message``).
  2. Every other participant is notified: online users get
     ``new_message_notification`` on each of their connections, offline
     users get an email through the notification port.

Delivery is best effort.  Failures are logged and never propagate to the
request that stored the message.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any

from src.models.chat import ConversationType
from src.realtime.presenceRegistry import presence
from src.realtime.socketServer import emit_to_room, send_to_user
from src.services import notificationService
from src.services.chatService import ConversationDTO, PostResult

logger = logging.getLogger(__name__)

ATTACHMENT_PREVIEW = "Sent an attachment"


@dataclass
class FanOutReport:
    room: str
    notified_online: list[str] = field(default_factory=list)
    emailed: list[str] = field(default_factory=list)
    failed: list[str] = field(default_factory=list)


async def broadcast_message(conversation: ConversationDTO, payload: dict[str, Any]) -> str:
    """Push the stored message to everyone joined to the conversation room."""
    room = str(conversation.id)
    await emit_to_room(room, "receive_message", payload)
    if conversation.type == ConversationType.DIRECT.value:
        await emit_to_room(room, "receive_direct_message", payload)
    return room


async def notify_recipients(post: PostResult, report: FanOutReport) -> None:
    sender_name = post.message.sender.name if post.message.sender else "Someone"
    content = post.message.content
    notification = {
        "conversationId": str(post.conversation.id),
        "senderName": sender_name,
        "content": content,
    }

    for recipient in post.recipients:
        user_id = str(recipient.id)
        try:
            if presence.is_online(user_id):
                await send_to_user(user_id, "new_message_notification", notification)
                report.notified_online.append(user_id)
            else:
                notificationService.notify_new_message(
                    recipient.email,
                    sender_name,
                    content or ATTACHMENT_PREVIEW,
                )
                report.emailed.append(user_id)
        except Exception:
            logger.exception(
                "Failed to notify user=%s of message=%s", user_id, post.message.id
            )
            report.failed.append(user_id)


async def fan_out(post: PostResult, payload: dict[str, Any]) -> FanOutReport:
    """Broadcast and notify for a freshly stored message.  Never raises."""
    report = FanOutReport(room=str(post.conversation.id))
    try:
        await broadcast_message(post.conversation, payload)
    except Exception:
        logger.exception(
            "Failed to broadcast message=%s to room=%s", post.message.id, report.room
        )
    await notify_recipients(post, report)
    logger.info(
        "Fan-out message=%s room=%s online=%d emailed=%d failed=%d",
        post.message.id, report.room,
        len(report.notified_online), len(report.emailed), len(report.failed),
    )
    return report
