"""
Domain models for the scheduler.

Persisted entities (``Commit``, ``Task``) are plain dataclasses with a
stable ``key`` and ``to_dict``/``from_dict`` helpers used by datastore
implementations. ``Builder`` and ``CheckRun`` are in-memory views of
configuration and of the check-reporting backend.

Example:
    Creating a commit and one of its tasks::

        commit = Commit(
            repository="flutter/flutter",
            branch="master",
            sha="abc123",
            timestamp=1620000000000,
            author="dash",
            author_avatar_url="https://avatars.example.com/dash",
            message="Roll engine",
        )
        task = Task.for_builder(commit, builder)
        assert task.commit_key == commit.key
"""

import uuid
from dataclasses import asdict, dataclass, field
from typing import Any, ClassVar

from ci_scheduler.enums import CheckRunConclusion, CheckRunStatus, TaskStatus


@dataclass(frozen=True)
class Commit:
    """A commit that landed on a branch of a supported repository.

    Identity is ``(repository, branch, sha)``; the record is never
    mutated once stored.
    """

    KIND: ClassVar[str] = "Commit"

    repository: str
    """Repository full name, e.g. ``flutter/flutter``."""

    branch: str
    """Branch the commit landed on."""

    sha: str
    """Source-control hash."""

    timestamp: int = 0
    """Commit (or merge) time in milliseconds since the epoch."""

    author: str = ""
    """Login of the commit author."""

    author_avatar_url: str = ""

    message: str = ""
    """Commit message, or the pull request title for merged PRs."""

    @property
    def key(self) -> str:
        """Datastore key: ``{repository}/{branch}/{sha}``."""
        return f"{self.repository}/{self.branch}/{self.sha}"

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Commit":
        return cls(**data)


@dataclass
class Task:
    """One postsubmit execution of a builder against a commit.

    Tasks are created in the same transaction as their commit with status
    ``New``; downstream status updates happen outside this package.
    """

    KIND: ClassVar[str] = "Task"

    commit_key: str
    """Key of the owning commit."""

    name: str
    """Task name shown on the dashboard (target or legacy task name)."""

    builder_name: str
    """Builder that executes the task."""

    create_timestamp: int
    """Inherited from the owning commit's timestamp."""

    status: TaskStatus = TaskStatus.NEW
    attempts: int = 0
    is_flaky: bool = False
    stage_name: str = "luci"
    timeout_in_minutes: int = 0
    id: str = field(default_factory=lambda: uuid.uuid4().hex)

    @property
    def key(self) -> str:
        """Datastore key: ``{commit_key}/tasks/{id}``."""
        return f"{self.commit_key}/tasks/{self.id}"

    @classmethod
    def for_builder(cls, commit: Commit, builder: "Builder") -> "Task":
        """Create the initial task record for ``builder`` on ``commit``."""
        return cls(
            commit_key=commit.key,
            name=builder.task_name or builder.name,
            builder_name=builder.name,
            create_timestamp=commit.timestamp,
            is_flaky=builder.flaky,
            timeout_in_minutes=builder.timeout,
        )

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["status"] = self.status.value
        return data

    @classmethod
    def from_dict(cls, data: dict[str, Any]) -> "Task":
        values = dict(data)
        values["status"] = TaskStatus(values.get("status", TaskStatus.NEW.value))
        return cls(**values)


@dataclass(frozen=True)
class Builder:
    """A schedulable builder selected for a commit or pull request.

    Produced both from the static legacy builder lists in settings and
    from ``.ci.yaml`` targets. ``name`` is the backend builder name and is
    also used as the check run name.
    """

    name: str
    repo: str = ""
    task_name: str | None = None
    flaky: bool = False
    timeout: int = 0
    properties: dict[str, str] = field(default_factory=dict, hash=False, compare=False)


@dataclass(frozen=True)
class CheckRunOutput:
    """Text attached to a check run in the reporting UI."""

    title: str
    summary: str
    text: str | None = None

    def to_dict(self) -> dict[str, str]:
        data = {"title": self.title, "summary": self.summary}
        if self.text is not None:
            data["text"] = self.text
        return data


@dataclass
class CheckRun:
    """A check run as reported by the check-reporting backend."""

    id: int
    name: str
    head_sha: str = ""
    status: CheckRunStatus = CheckRunStatus.QUEUED
    conclusion: CheckRunConclusion | None = None
    check_suite_id: int | None = None
    external_id: str | None = None
