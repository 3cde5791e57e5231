"""
Shared pytest fixtures for Campus Gigs backend tests.

Provides mock database sessions, sample users and a recording notifier so
unit tests run without a live database or email provider.
"""

import os
import tempfile

# Settings are read once at import time; point them at throwaway resources
# before any ``src`` module is imported.
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("UPLOAD_DIR", tempfile.mkdtemp(prefix="campusgigs-uploads-"))
os.environ.setdefault("RESEND_API_KEY", "")

import uuid  # noqa: E402
from datetime import datetime, timezone  # noqa: E402
from unittest.mock import AsyncMock, MagicMock  # noqa: E402

import pytest  # noqa: E402

from src.models.job import ExpectedDuration, Job, JobCategory, JobStatus  # noqa: E402
from src.models.user import User, UserRole  # noqa: E402
from src.realtime.presenceRegistry import presence  # noqa: E402
from src.services import notificationService  # noqa: E402


# ---------------------------------------------------------------------------
# Notifications
# ---------------------------------------------------------------------------


class RecordingNotifier:
    """Notifier that keeps every dispatched notification in memory."""

    def __init__(self) -> None:
        self.sent: list[notificationService.Notification] = []

    def dispatch(self, notification: notificationService.Notification) -> None:
        self.sent.append(notification)

    def of_kind(self, kind: notificationService.NotificationKind) -> list:
        return [n for n in self.sent if n.kind == kind]


@pytest.fixture
def notifier():
    """Install a ``RecordingNotifier`` for the duration of a test."""
    recorder = RecordingNotifier()
    previous = notificationService.set_notifier(recorder)
    yield recorder
    notificationService.set_notifier(previous)


@pytest.fixture(autouse=True)
def _reset_presence():
    presence.clear()
    yield
    presence.clear()


# ---------------------------------------------------------------------------
# Database session mock
# ---------------------------------------------------------------------------


@pytest.fixture
def mock_db() -> AsyncMock:
    """Async mock of ``AsyncSession``.

    Supports ``db.execute()``, ``db.add()``, ``db.flush()`` and
    ``db.commit()`` out of the box.  Tests configure
    ``mock_db.execute.return_value`` to control query results.
    """
    session = AsyncMock()
    session.add = MagicMock()
    session.expunge = MagicMock()
    session.flush = AsyncMock()
    session.commit = AsyncMock()
    session.rollback = AsyncMock()
    return session


# ---------------------------------------------------------------------------
# User fixtures
# ---------------------------------------------------------------------------


def _make_user(name: str, email: str, role: UserRole = UserRole.USER) -> User:
    user = MagicMock(spec=User)
    user.id = uuid.uuid4()
    user.name = name
    user.email = email
    user.role = role
    user.phone = ""
    user.bio = ""
    user.profile_photo = ""
    user.is_active = True
    user.is_verified = True
    user.is_banned = False
    user.rating = 0.0
    user.rating_count = 0
    user.is_admin = role in (UserRole.ADMIN, UserRole.SUPERADMIN)
    user.created_at = datetime(2025, 1, 15, 10, 0, 0, tzinfo=timezone.utc)
    return user


@pytest.fixture
def poster() -> User:
    """A verified student who posts jobs."""
    return _make_user("Asha Poster", "asha@vitstudent.ac.in")


@pytest.fixture
def worker() -> User:
    """A verified student who accepts jobs."""
    return _make_user("Ben Worker", "ben@vitstudent.ac.in")


@pytest.fixture
def outsider() -> User:
    return _make_user("Chen Outsider", "chen@vitstudent.ac.in")


@pytest.fixture
def superadmin() -> User:
    return _make_user("Root", "root@vit.ac.in", UserRole.SUPERADMIN)


# ---------------------------------------------------------------------------
# Job fixtures
# ---------------------------------------------------------------------------


@pytest.fixture
def open_job(poster) -> Job:
    """An open job posted by ``poster``."""
    job = MagicMock(spec=Job)
    job.id = uuid.uuid4()
    job.title = "Fix my laptop"
    job.description = "Windows will not boot"
    job.payment_amount = 500.0
    job.category = JobCategory.TECH
    job.expected_duration = ExpectedDuration.ONE_TO_TWO_HOURS
    job.deadline = None
    job.status = JobStatus.OPEN
    job.posted_by_id = poster.id
    job.accepted_by_id = None
    job.worker_rating = None
    job.poster = poster
    job.worker = None
    return job


@pytest.fixture
def accepted_job(open_job, worker) -> Job:
    """The same job after ``worker`` accepted it."""
    open_job.status = JobStatus.IN_PROGRESS
    open_job.accepted_by_id = worker.id
    open_job.worker = worker
    return open_job
