"""Release lock coordination: events, policy, resolution and reconciliation."""

from .coordinator import DeliveryOutcome, OutcomeStatus, ReleaseLockCoordinator
from .events import (
    CheckRunActionInvoked,
    CheckRunConclusion,
    CheckRunStatus,
    CheckSuiteEvent,
    CommentPosted,
    IgnoredEvent,
    LockEvent,
    PRSynchronized,
    WorkflowAction,
    WorkflowConclusion,
    WorkflowRunEvent,
)
from .exceptions import (
    AuthResolutionError,
    EventTimeoutError,
    LockError,
    MalformedEvent,
    RemoteStateError,
)
from .gateway import (
    CheckRunAction,
    CheckRunGateway,
    CheckRunSnapshot,
    GitHubCheckRunGateway,
    PullRequestRef,
)
from .normalizer import normalize_event
from .override import OverrideGate
from .policy import LockPolicy
from .reconciler import ChangeKind, CheckRunChange, Reconciler, ReconcileResult
from .resolver import LockScope, LockTransition, PolicyNoop, resolve_transition

__all__ = [
    "AuthResolutionError",
    "ChangeKind",
    "CheckRunAction",
    "CheckRunActionInvoked",
    "CheckRunChange",
    "CheckRunConclusion",
    "CheckRunGateway",
    "CheckRunSnapshot",
    "CheckRunStatus",
    "CheckSuiteEvent",
    "CommentPosted",
    "DeliveryOutcome",
    "EventTimeoutError",
    "GitHubCheckRunGateway",
    "IgnoredEvent",
    "LockError",
    "LockEvent",
    "LockPolicy",
    "LockScope",
    "LockTransition",
    "MalformedEvent",
    "OutcomeStatus",
    "OverrideGate",
    "PRSynchronized",
    "PolicyNoop",
    "PullRequestRef",
    "ReconcileResult",
    "Reconciler",
    "ReleaseLockCoordinator",
    "RemoteStateError",
    "WorkflowAction",
    "WorkflowConclusion",
    "WorkflowRunEvent",
    "normalize_event",
    "resolve_transition",
]
