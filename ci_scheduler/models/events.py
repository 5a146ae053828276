"""
Decoded webhook event payloads.

Each event kind the scheduler reacts to has an explicit model. Decoding
fails loudly (``EventDecodeError``) on missing required fields, wrong
types, or an ``action`` value outside the documented set; fields the
scheduler does not read are ignored.

Example:
    >>> event = decode_event("check_suite", payload)
    >>> if isinstance(event, CheckSuiteEvent) and event.action == CheckSuiteAction.REREQUESTED:
    ...     await scheduler.retry_presubmit_targets(...)
"""

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from ci_scheduler.exceptions import EventDecodeError
from ci_scheduler.models.domain import Commit


class _Payload(BaseModel):
    model_config = ConfigDict(extra="ignore", frozen=True)


class PullRequestAction(str, Enum):
    ASSIGNED = "assigned"
    AUTO_MERGE_DISABLED = "auto_merge_disabled"
    AUTO_MERGE_ENABLED = "auto_merge_enabled"
    CLOSED = "closed"
    CONVERTED_TO_DRAFT = "converted_to_draft"
    DEMILESTONED = "demilestoned"
    DEQUEUED = "dequeued"
    EDITED = "edited"
    ENQUEUED = "enqueued"
    LABELED = "labeled"
    LOCKED = "locked"
    MILESTONED = "milestoned"
    OPENED = "opened"
    READY_FOR_REVIEW = "ready_for_review"
    REOPENED = "reopened"
    REVIEW_REQUEST_REMOVED = "review_request_removed"
    REVIEW_REQUESTED = "review_requested"
    SYNCHRONIZE = "synchronize"
    UNASSIGNED = "unassigned"
    UNLABELED = "unlabeled"
    UNLOCKED = "unlocked"


class CheckRunAction(str, Enum):
    CREATED = "created"
    COMPLETED = "completed"
    REREQUESTED = "rerequested"
    REQUESTED_ACTION = "requested_action"


class CheckSuiteAction(str, Enum):
    COMPLETED = "completed"
    REQUESTED = "requested"
    REREQUESTED = "rerequested"


class Repository(_Payload):
    full_name: str
    name: str | None = None


class User(_Payload):
    login: str
    avatar_url: str = ""


class PullRequestRef(_Payload):
    ref: str
    sha: str | None = None
    repo: Repository | None = None


class PullRequest(_Payload):
    """The ``pull_request`` object of a pull request event."""

    number: int
    title: str = ""
    merged: bool = False
    merge_commit_sha: str | None = None
    merged_at: datetime | None = None
    user: User
    base: PullRequestRef
    head: PullRequestRef | None = None

    def to_merge_commit(self) -> Commit:
        """Commit record for the merge commit of a merged pull request."""
        if not self.merged or not self.merge_commit_sha:
            raise ValueError(f"Pull request #{self.number} is not merged")
        if self.base.repo is None:
            raise ValueError(f"Pull request #{self.number} has no base repository")
        timestamp = int(self.merged_at.timestamp() * 1000) if self.merged_at else 0
        return Commit(
            repository=self.base.repo.full_name,
            branch=self.base.ref,
            sha=self.merge_commit_sha,
            timestamp=timestamp,
            author=self.user.login,
            author_avatar_url=self.user.avatar_url,
            message=self.title,
        )


class PullRequestEvent(_Payload):
    action: PullRequestAction
    number: int
    pull_request: PullRequest
    repository: Repository


class PushCommitAuthor(_Payload):
    name: str = ""
    email: str = ""
    username: str | None = None


class PushCommit(_Payload):
    id: str
    message: str = ""
    timestamp: datetime
    author: PushCommitAuthor


class PushEvent(_Payload):
    ref: str
    repository: Repository
    commits: list[PushCommit] = Field(default_factory=list)
    sender: User | None = None

    @property
    def branch(self) -> str | None:
        """Branch name for branch pushes, None for tags."""
        prefix = "refs/heads/"
        return self.ref[len(prefix) :] if self.ref.startswith(prefix) else None

    def to_commits(self) -> list[Commit]:
        """Commit records for every pushed commit, in payload order."""
        branch = self.branch
        if branch is None:
            return []
        commits = []
        for pushed in self.commits:
            login = pushed.author.username or pushed.author.name
            avatar = self.sender.avatar_url if self.sender and self.sender.login == login else ""
            commits.append(
                Commit(
                    repository=self.repository.full_name,
                    branch=branch,
                    sha=pushed.id,
                    timestamp=int(pushed.timestamp.timestamp() * 1000),
                    author=login,
                    author_avatar_url=avatar,
                    message=pushed.message,
                )
            )
        return commits


class PullRequestLink(_Payload):
    number: int


class CheckSuite(_Payload):
    id: int
    head_sha: str
    head_branch: str | None = None
    pull_requests: list[PullRequestLink] = Field(default_factory=list)


class CheckRunPayload(_Payload):
    id: int
    name: str
    head_sha: str
    status: str | None = None
    conclusion: str | None = None
    external_id: str | None = None
    check_suite: CheckSuite | None = None
    pull_requests: list[PullRequestLink] = Field(default_factory=list)


class CheckRunEvent(_Payload):
    action: CheckRunAction
    check_run: CheckRunPayload
    repository: Repository


class CheckSuiteEvent(_Payload):
    action: CheckSuiteAction
    check_suite: CheckSuite
    repository: Repository


WebhookEvent = PushEvent | PullRequestEvent | CheckRunEvent | CheckSuiteEvent

EVENT_TYPES: dict[str, type[BaseModel]] = {
    "push": PushEvent,
    "pull_request": PullRequestEvent,
    "check_run": CheckRunEvent,
    "check_suite": CheckSuiteEvent,
}


def decode_event(event_name: str, payload: dict[str, Any]) -> WebhookEvent:
    """Decode a webhook payload into its event model.

    Args:
        event_name: Value of the ``X-GitHub-Event`` header
        payload: JSON-decoded request body

    Returns:
        The decoded event

    Raises:
        EventDecodeError: Unknown event name or payload not matching the schema
    """
    model = EVENT_TYPES.get(event_name)
    if model is None:
        raise EventDecodeError(f"Unsupported event type: {event_name}", event_name=event_name)
    try:
        return model.model_validate(payload)  # type: ignore[return-value]
    except ValidationError as e:
        raise EventDecodeError(f"Invalid {event_name} payload: {e}", event_name=event_name) from e
