"""
Job Event Emission
==================

Event records for job lifecycle changes.  Each emitter logs the event and
returns its payload dict so callers (and tests) can inspect it.  There is
no transport behind these yet; they form the audit trail in the logs.

Events emitted:
  - job.created
  - job.status_changed
  - job.reviewed
  - job.review_removed
  - job.deleted
"""

from __future__ import annotations

import logging
import uuid
from datetime import datetime, timezone
from typing import Any

logger = logging.getLogger(__name__)


def _build_event(
    event_type: str,
    job_id: uuid.UUID,
    *,
    data: dict[str, Any] | None = None,
    actor_id: uuid.UUID | None = None,
) -> dict[str, Any]:
    """Construct a standardised event payload."""
    return {
        "event_type": event_type,
        "job_id": str(job_id),
        "actor_id": str(actor_id) if actor_id else None,
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "data": data or {},
    }


def emit_job_created(
    job_id: uuid.UUID,
    poster_id: uuid.UUID,
    category: str,
    payment_amount: float,
) -> dict[str, Any]:
    event = _build_event(
        "job.created",
        job_id,
        actor_id=poster_id,
        data={"category": category, "payment_amount": payment_amount},
    )
    logger.info("Event emitted: %s for job %s", event["event_type"], job_id)
    return event


def emit_job_status_changed(
    job_id: uuid.UUID,
    old_status: str,
    new_status: str,
    actor_id: uuid.UUID | None = None,
) -> dict[str, Any]:
    """Emit event when a job transitions between states."""
    event = _build_event(
        "job.status_changed",
        job_id,
        actor_id=actor_id,
        data={"old_status": old_status, "new_status": new_status},
    )
    logger.info(
        "Event emitted: %s for job %s (%s -> %s)",
        event["event_type"], job_id, old_status, new_status,
    )
    return event


def emit_job_reviewed(
    job_id: uuid.UUID,
    reviewer_id: uuid.UUID,
    worker_id: uuid.UUID | None,
    rating: int,
) -> dict[str, Any]:
    event = _build_event(
        "job.reviewed",
        job_id,
        actor_id=reviewer_id,
        data={"worker_id": str(worker_id) if worker_id else None, "rating": rating},
    )
    logger.info("Event emitted: %s for job %s rating=%d", event["event_type"], job_id, rating)
    return event


def emit_review_removed(
    job_id: uuid.UUID,
    admin_id: uuid.UUID,
    rating: int,
) -> dict[str, Any]:
    event = _build_event(
        "job.review_removed",
        job_id,
        actor_id=admin_id,
        data={"rating": rating},
    )
    logger.info("Event emitted: %s for job %s", event["event_type"], job_id)
    return event


def emit_job_deleted(
    job_id: uuid.UUID,
    actor_id: uuid.UUID,
    reason: str = "owner",
) -> dict[str, Any]:
    event = _build_event(
        "job.deleted",
        job_id,
        actor_id=actor_id,
        data={"reason": reason},
    )
    logger.info("Event emitted: %s for job %s (%s)", event["event_type"], job_id, reason)
    return event
