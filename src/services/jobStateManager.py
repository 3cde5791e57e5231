"""
Job State Manager
=================

State machine governing job status transitions.  Every status change MUST
go through ``validate_transition`` before being persisted.

State machine overview::

    open --accept--> in-progress --complete--> completed

Guards enforce who may trigger each transition:

  - accept:   anybody except the poster (the job gains a worker)
  - complete: only the assigned worker
"""

from __future__ import annotations

import enum
from dataclasses import dataclass

from src.models.job import JobStatus


# ---------------------------------------------------------------------------
# Actor roles relative to a given job
# ---------------------------------------------------------------------------

class JobActor(str, enum.Enum):
    POSTER = "poster"
    WORKER = "worker"
    OTHER = "other"


# ---------------------------------------------------------------------------
# Transition guard result
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class TransitionResult:
    """Result of a transition validation attempt."""
    allowed: bool
    reason: str | None = None


# ---------------------------------------------------------------------------
# Transition definitions
# ---------------------------------------------------------------------------

VALID_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.OPEN: {JobStatus.IN_PROGRESS},
    JobStatus.IN_PROGRESS: {JobStatus.COMPLETED},
    JobStatus.COMPLETED: set(),  # terminal
}

_ALLOWED_ACTORS: dict[JobStatus, frozenset[JobActor]] = {
    JobStatus.IN_PROGRESS: frozenset({JobActor.OTHER}),
    JobStatus.COMPLETED: frozenset({JobActor.WORKER}),
}

_STATUS_ERRORS: dict[JobStatus, str] = {
    JobStatus.IN_PROGRESS: "Job is no longer available",
    JobStatus.COMPLETED: "Job must be in-progress to complete",
}

_ACTOR_ERRORS: dict[JobStatus, str] = {
    JobStatus.IN_PROGRESS: "Cannot accept your own job",
    JobStatus.COMPLETED: "Only the assigned worker can complete this job",
}


def actor_for(job, user_id) -> JobActor:
    """Classify ``user_id`` relative to ``job``."""
    if user_id == job.posted_by_id:
        return JobActor.POSTER
    if job.accepted_by_id is not None and user_id == job.accepted_by_id:
        return JobActor.WORKER
    return JobActor.OTHER


def validate_transition(
    current: JobStatus,
    target: JobStatus,
    actor: JobActor | None = None,
) -> TransitionResult:
    """Check whether ``current -> target`` is legal for ``actor``.

    The actor guard is skipped when ``actor`` is None (administrative
    edits).
    """
    if target not in VALID_TRANSITIONS.get(current, set()):
        return TransitionResult(
            allowed=False,
            reason=_STATUS_ERRORS.get(
                target, f"Cannot move job from '{current.value}' to '{target.value}'"
            ),
        )
    if actor is not None and actor not in _ALLOWED_ACTORS.get(target, frozenset()):
        return TransitionResult(allowed=False, reason=_ACTOR_ERRORS.get(target))
    return TransitionResult(allowed=True)


def get_valid_transitions(current: JobStatus) -> set[JobStatus]:
    """Return the set of statuses reachable from ``current``."""
    return set(VALID_TRANSITIONS.get(current, set()))


def is_terminal(status: JobStatus) -> bool:
    return not VALID_TRANSITIONS.get(status)
