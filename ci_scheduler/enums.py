"""Enumerations shared across the scheduler and its backends."""

from enum import Enum


class CheckRunStatus(str, Enum):
    """GitHub check run status values."""

    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    WAITING = "waiting"
    REQUESTED = "requested"
    PENDING = "pending"


class CheckRunConclusion(str, Enum):
    """GitHub check run conclusion values (only set once completed)."""

    SUCCESS = "success"
    FAILURE = "failure"
    NEUTRAL = "neutral"
    CANCELLED = "cancelled"
    SKIPPED = "skipped"
    TIMED_OUT = "timed_out"
    ACTION_REQUIRED = "action_required"
    STALE = "stale"


class BuildStatus(str, Enum):
    """Buildbucket v2 build status values as they appear on the wire."""

    STATUS_UNSPECIFIED = "STATUS_UNSPECIFIED"
    SCHEDULED = "SCHEDULED"
    STARTED = "STARTED"
    ENDED_MASK = "ENDED_MASK"
    SUCCESS = "SUCCESS"
    FAILURE = "FAILURE"
    INFRA_FAILURE = "INFRA_FAILURE"
    CANCELED = "CANCELED"


# Terminal states that make a presubmit target eligible for retry.
FAILED_BUILD_STATUSES = frozenset({BuildStatus.FAILURE, BuildStatus.INFRA_FAILURE, BuildStatus.CANCELED})


class TaskStatus(str, Enum):
    """Lifecycle status of a postsubmit task record."""

    NEW = "New"
    IN_PROGRESS = "In Progress"
    SUCCEEDED = "Succeeded"
    FAILED = "Failed"
    INFRA_FAILURE = "Infra Failure"
    CANCELLED = "Cancelled"
    SKIPPED = "Skipped"
