"""Lock State Resolver: maps a lock event to the check run state it calls for.

Resolution is a pure lookup with one rule per event variant:

================================  =========================================
Event                             Result
================================  =========================================
PRSynchronized                    completed/failure on the head SHA,
                                  created if missing, with override button
CheckSuiteEvent                   in_progress on the head SHA, created if
                                  missing
WorkflowRunEvent requested        in_progress on every open pull request
WorkflowRunEvent completed ok     completed/success on every open pull request
WorkflowRunEvent completed fail   completed/failure on every open pull request
CommentPosted ``/override``       completed/success on the commented PR
CheckRunActionInvoked override    completed/success on that check run
================================  =========================================

Workflow events only count when their path equals the policy's deploy
workflow path exactly. Anything else resolves to :class:`PolicyNoop`.
"""

from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from enum import Enum
from typing import Any

from .events import (
    CheckRunActionInvoked,
    CheckRunConclusion,
    CheckRunStatus,
    CheckSuiteEvent,
    CommentPosted,
    LockEvent,
    PRSynchronized,
    WorkflowAction,
    WorkflowConclusion,
    WorkflowRunEvent,
)
from .exceptions import MalformedEvent
from .override import is_override_action, is_override_command
from .policy import LockPolicy

TITLE_PENDING_RELEASE = "Release locked due to pending release"
TITLE_PENDING_DEPLOYMENT = "Release locked due to pending deployment"
TITLE_UNLOCKED = "Release unlocked"
TITLE_FAILED_DEPLOYMENT = "Release locked due to failed deployment"
TITLE_OVERRIDDEN = "Release lock manually overridden"


class LockScope(str, Enum):
    """Which check runs a transition applies to."""

    HEAD_SHA = "head_sha"
    OPEN_PULL_REQUESTS = "open_pull_requests"
    PULL_REQUEST = "pull_request"
    CHECK_RUN = "check_run"


@dataclass(frozen=True)
class LockTransition:
    """Desired check run state and where to apply it.

    ``target_shas`` is filled for :attr:`LockScope.HEAD_SHA`; the other
    scopes are expanded to SHAs by the Reconciler, except
    :attr:`LockScope.CHECK_RUN` which addresses ``check_run_id`` directly.
    """

    scope: LockScope
    status: CheckRunStatus
    conclusion: CheckRunConclusion | None
    output_title: str
    output_summary: str = ""
    allow_create: bool = False
    offer_override: bool = False
    target_shas: tuple[str, ...] = ()
    pull_number: int | None = None
    check_run_id: int | None = None

    def with_targets(self, shas: Iterable[str]) -> "LockTransition":
        """Pin the transition to concrete head SHAs, keeping their order."""
        return replace(self, scope=LockScope.HEAD_SHA, target_shas=tuple(shas))


@dataclass(frozen=True)
class PolicyNoop:
    """The event was understood but calls for no change."""

    reason: str


def _pr_synchronized(event: PRSynchronized, policy: LockPolicy) -> LockTransition:
    return LockTransition(
        scope=LockScope.HEAD_SHA,
        status=CheckRunStatus.COMPLETED,
        conclusion=CheckRunConclusion.FAILURE,
        output_title=TITLE_PENDING_RELEASE,
        output_summary=(
            "Merging is blocked until the pending release is deployed. "
            f"Comment `{policy.override_command}` or use "
            f"'{policy.override_action_label}' to clear the lock."
        ),
        allow_create=True,
        offer_override=True,
        target_shas=(event.head_sha,),
    )


def _check_suite(event: CheckSuiteEvent, policy: LockPolicy) -> LockTransition:
    return LockTransition(
        scope=LockScope.HEAD_SHA,
        status=CheckRunStatus.IN_PROGRESS,
        conclusion=None,
        output_title=TITLE_PENDING_RELEASE,
        output_summary="Merging is blocked until the pending release is deployed.",
        allow_create=True,
        target_shas=(event.head_sha,),
    )


def _workflow_run(event: WorkflowRunEvent, policy: LockPolicy) -> LockTransition | PolicyNoop:
    if event.workflow_path != policy.deploy_workflow_path:
        return PolicyNoop(f"workflow '{event.workflow_path}' is not the deploy workflow")

    if event.action is WorkflowAction.REQUESTED:
        return LockTransition(
            scope=LockScope.OPEN_PULL_REQUESTS,
            status=CheckRunStatus.IN_PROGRESS,
            conclusion=None,
            output_title=TITLE_PENDING_DEPLOYMENT,
            output_summary=f"Waiting for `{policy.deploy_workflow_path}` to finish.",
        )

    if event.conclusion is WorkflowConclusion.SUCCESS:
        return LockTransition(
            scope=LockScope.OPEN_PULL_REQUESTS,
            status=CheckRunStatus.COMPLETED,
            conclusion=CheckRunConclusion.SUCCESS,
            output_title=TITLE_UNLOCKED,
            output_summary=f"`{policy.deploy_workflow_path}` completed successfully.",
        )

    if event.conclusion is WorkflowConclusion.FAILURE:
        return LockTransition(
            scope=LockScope.OPEN_PULL_REQUESTS,
            status=CheckRunStatus.COMPLETED,
            conclusion=CheckRunConclusion.FAILURE,
            output_title=TITLE_FAILED_DEPLOYMENT,
            output_summary=(
                f"`{policy.deploy_workflow_path}` failed. "
                f"Comment `{policy.override_command}` to clear the lock anyway."
            ),
        )

    return PolicyNoop("deploy workflow completed without a success or failure conclusion")


def _override(summary: str, **target: Any) -> LockTransition:
    return LockTransition(
        status=CheckRunStatus.COMPLETED,
        conclusion=CheckRunConclusion.SUCCESS,
        output_title=TITLE_OVERRIDDEN,
        output_summary=summary,
        **target,
    )


def _comment_posted(event: CommentPosted, policy: LockPolicy) -> LockTransition | PolicyNoop:
    if not is_override_command(event.comment_body, policy):
        return PolicyNoop("comment is not an override command")
    return _override(
        f"Overridden by comment from @{event.commenter or 'unknown'}.",
        scope=LockScope.PULL_REQUEST,
        pull_number=event.issue_number,
    )


def _check_run_action(
    event: CheckRunActionInvoked, policy: LockPolicy
) -> LockTransition | PolicyNoop:
    if not is_override_action(event.action_identifier, policy):
        return PolicyNoop(f"action '{event.action_identifier}' is not the override action")
    if event.check_run_id is None:
        raise MalformedEvent(
            "override action without a check run id",
            context={"owner": event.owner, "repo": event.repo},
        )
    return _override(
        "Overridden from the check run action.",
        scope=LockScope.CHECK_RUN,
        check_run_id=event.check_run_id,
    )


_RULES: dict[type, Callable[[Any, LockPolicy], LockTransition | PolicyNoop]] = {
    PRSynchronized: _pr_synchronized,
    CheckSuiteEvent: _check_suite,
    WorkflowRunEvent: _workflow_run,
    CommentPosted: _comment_posted,
    CheckRunActionInvoked: _check_run_action,
}


def resolve_transition(event: LockEvent, policy: LockPolicy) -> LockTransition | PolicyNoop:
    """Return the transition ``event`` calls for under ``policy``.

    Raises:
        MalformedEvent: If an override action names no check run
    """
    rule = _RULES.get(type(event))
    if rule is None:
        raise TypeError(f"no lock rule for {type(event).__name__}")
    return rule(event, policy)
