"""
Notification Service
====================

Outbound notification port used by business logic (auth, jobs, chat
fan-out).  Callers build a notification through one of the ``notify_*``
helpers; the active ``Notifier`` delivers it.

Delivery is fire-and-forget: ``dispatch`` schedules the send and returns
immediately.  A failed send is logged and never reaches the request that
triggered it.

The default notifier emails through ``emailService``.  Tests install a
recording notifier with ``set_notifier``.
"""

from __future__ import annotations

import asyncio
import enum
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

from src.services import emailService

logger = logging.getLogger(__name__)


class NotificationKind(str, enum.Enum):
    OTP = "otp"
    WELCOME = "welcome"
    JOB_ACCEPTED = "job_accepted"
    JOB_COMPLETED = "job_completed"
    NEW_MESSAGE = "new_message"


@dataclass(frozen=True)
class Notification:
    kind: NotificationKind
    to: str
    subject: str
    html: str
    context: dict[str, Any] = field(default_factory=dict)


class Notifier(Protocol):
    def dispatch(self, notification: Notification) -> None:
        """Schedule delivery without waiting for it."""
        ...


class EmailNotifier:
    """Sends notifications as emails on background asyncio tasks."""

    def __init__(self) -> None:
        # Strong references so pending tasks are not garbage collected.
        self._tasks: set[asyncio.Task] = set()

    def dispatch(self, notification: Notification) -> None:
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.warning(
                "No running event loop; dropping %s notification to %s",
                notification.kind.value, notification.to,
            )
            return
        task = loop.create_task(
            emailService.send_email(notification.to, notification.subject, notification.html),
            name=f"notify-{notification.kind.value}",
        )
        self._tasks.add(task)
        task.add_done_callback(self._on_done)

    def _on_done(self, task: asyncio.Task) -> None:
        self._tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Notification task %s failed: %s", task.get_name(), exc)

    async def drain(self) -> None:
        """Wait for every pending send (used on shutdown)."""
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


_notifier: Notifier = EmailNotifier()


def get_notifier() -> Notifier:
    return _notifier


def set_notifier(notifier: Notifier) -> Notifier:
    """Install ``notifier`` and return the previous one."""
    global _notifier
    previous = _notifier
    _notifier = notifier
    return previous


def _dispatch(kind: NotificationKind, to: str, rendered: tuple[str, str], **context: Any) -> None:
    subject, html_body = rendered
    notification = Notification(kind=kind, to=to, subject=subject, html=html_body, context=context)
    try:
        _notifier.dispatch(notification)
    except Exception:
        logger.exception("Failed to dispatch %s notification to %s", kind.value, to)


# ---------------------------------------------------------------------------
# Public helpers
# ---------------------------------------------------------------------------

def notify_otp(to: str, otp: str) -> None:
    _dispatch(NotificationKind.OTP, to, emailService.otp_email(otp), otp=otp)


def notify_welcome(to: str, name: str) -> None:
    _dispatch(NotificationKind.WELCOME, to, emailService.welcome_email(name), name=name)


def notify_job_accepted(to: str, job_title: str, worker_name: str) -> None:
    _dispatch(
        NotificationKind.JOB_ACCEPTED,
        to,
        emailService.job_accepted_email(job_title, worker_name),
        job_title=job_title,
        worker_name=worker_name,
    )


def notify_job_completed(to: str, job_title: str, worker_name: str) -> None:
    _dispatch(
        NotificationKind.JOB_COMPLETED,
        to,
        emailService.job_completed_email(job_title, worker_name),
        job_title=job_title,
        worker_name=worker_name,
    )


def notify_new_message(to: str, sender_name: str, preview: str) -> None:
    _dispatch(
        NotificationKind.NEW_MESSAGE,
        to,
        emailService.new_message_email(sender_name, preview),
        sender_name=sender_name,
        preview=preview,
    )
