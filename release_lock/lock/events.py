"""Normalized webhook events the release lock reacts to."""

from dataclasses import dataclass
from enum import Enum


class CheckRunStatus(str, Enum):
    QUEUED = "queued"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class CheckRunConclusion(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"


class WorkflowAction(str, Enum):
    REQUESTED = "requested"
    COMPLETED = "completed"


class WorkflowConclusion(str, Enum):
    SUCCESS = "success"
    FAILURE = "failure"
    NONE = "none"


@dataclass(frozen=True)
class RepositoryEvent:
    """Fields shared by every lock event."""

    owner: str
    repo: str
    installation_id: int

    @property
    def full_name(self) -> str:
        return f"{self.owner}/{self.repo}"


@dataclass(frozen=True)
class PRSynchronized(RepositoryEvent):
    """New commits were pushed to a pull request (``pull_request.synchronize``)."""

    head_sha: str
    pull_number: int | None = None


@dataclass(frozen=True)
class CommentPosted(RepositoryEvent):
    """A comment was created on a pull request conversation."""

    issue_number: int
    comment_id: int
    comment_body: str
    commenter: str


@dataclass(frozen=True)
class CheckRunActionInvoked(RepositoryEvent):
    """Someone pressed an action button on one of the app's check runs."""

    check_run_id: int | None
    action_identifier: str
    affected_pr_numbers: tuple[int, ...] = ()


@dataclass(frozen=True)
class CheckSuiteEvent(RepositoryEvent):
    """GitHub asked the app to run its checks for a commit."""

    head_sha: str


@dataclass(frozen=True)
class WorkflowRunEvent(RepositoryEvent):
    """A GitHub Actions workflow run was requested or completed."""

    workflow_path: str
    action: WorkflowAction
    conclusion: WorkflowConclusion = WorkflowConclusion.NONE


LockEvent = (
    PRSynchronized | CommentPosted | CheckRunActionInvoked | CheckSuiteEvent | WorkflowRunEvent
)


@dataclass(frozen=True)
class IgnoredEvent:
    """Sentinel for deliveries that carry nothing the lock cares about.

    ``noop`` marks deliveries of a handled kind and action that still call
    for no change, such as a check run button other than the override.
    """

    event_kind: str
    action: str | None
    reason: str
    noop: bool = False
