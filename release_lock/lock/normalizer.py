"""Turns raw webhook payloads into :mod:`release_lock.lock.events` values.

Normalization is pure. Event kinds and actions the lock does not react to
become an :class:`IgnoredEvent` instead of an error; relevant events with a
broken repository name or a missing installation id, SHA or identifier
raise :class:`MalformedEvent`.
"""

from collections.abc import Callable
from typing import Any

from .events import (
    CheckRunActionInvoked,
    CheckSuiteEvent,
    CommentPosted,
    IgnoredEvent,
    LockEvent,
    PRSynchronized,
    WorkflowAction,
    WorkflowConclusion,
    WorkflowRunEvent,
)
from .exceptions import MalformedEvent
from .policy import DEFAULT_OVERRIDE_ACTION_ID

PULL_REQUEST_ACTIONS = frozenset({"synchronize", "opened", "reopened"})
CHECK_SUITE_ACTIONS = frozenset({"requested", "rerequested"})
FAILED_WORKFLOW_CONCLUSIONS = frozenset({"failure", "timed_out", "startup_failure"})


def split_full_name(full_name: Any) -> tuple[str, str]:
    """Split ``owner/repo`` into its two segments.

    Raises:
        MalformedEvent: Unless the name has exactly two non-empty segments
    """
    parts = full_name.split("/") if isinstance(full_name, str) else []
    if len(parts) != 2 or not all(parts):
        raise MalformedEvent(
            f"invalid repo name '{full_name}'", context={"full_name": full_name}
        )
    return parts[0], parts[1]


def _section(payload: dict[str, Any], key: str) -> dict[str, Any]:
    value = payload.get(key)
    return value if isinstance(value, dict) else {}


def _require_int(value: Any, field: str, context: dict[str, Any]) -> int:
    # bool is an int subclass but never a valid id
    if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
        raise MalformedEvent(f"missing or invalid {field}", context=context)
    return value


def _require_str(value: Any, field: str, context: dict[str, Any]) -> str:
    if not isinstance(value, str) or not value:
        raise MalformedEvent(f"missing {field}", context=context)
    return value


def _repository_fields(payload: dict[str, Any]) -> tuple[str, str, int, dict[str, Any]]:
    owner, repo = split_full_name(_section(payload, "repository").get("full_name"))
    context: dict[str, Any] = {"owner": owner, "repo": repo}
    installation_id = _require_int(
        _section(payload, "installation").get("id"), "installation id", context
    )
    context["installation_id"] = installation_id
    return owner, repo, installation_id, context


def _pull_request(payload: dict[str, Any]) -> LockEvent:
    owner, repo, installation_id, context = _repository_fields(payload)
    pull_request = _section(payload, "pull_request")
    # synchronize carries the new head as "after"; opened/reopened only in the PR body
    head_sha = payload.get("after") or _section(pull_request, "head").get("sha")
    number = pull_request.get("number", payload.get("number"))
    return PRSynchronized(
        owner=owner,
        repo=repo,
        installation_id=installation_id,
        head_sha=_require_str(head_sha, "head SHA", context),
        pull_number=number if isinstance(number, int) else None,
    )


def _issue_comment(payload: dict[str, Any]) -> LockEvent | IgnoredEvent:
    issue = _section(payload, "issue")
    if "pull_request" not in issue:
        return IgnoredEvent(
            "issue_comment", payload.get("action"), "comment is not on a pull request"
        )

    owner, repo, installation_id, context = _repository_fields(payload)
    comment = _section(payload, "comment")
    body = comment.get("body")
    return CommentPosted(
        owner=owner,
        repo=repo,
        installation_id=installation_id,
        issue_number=_require_int(issue.get("number"), "issue number", context),
        comment_id=_require_int(comment.get("id"), "comment id", context),
        comment_body=body if isinstance(body, str) else "",
        commenter=str(_section(comment, "user").get("login") or ""),
    )


def _check_run(
    payload: dict[str, Any], override_action_id: str = DEFAULT_OVERRIDE_ACTION_ID
) -> LockEvent | IgnoredEvent:
    identifier = _section(payload, "requested_action").get("identifier")
    if identifier != override_action_id:
        return IgnoredEvent(
            "check_run",
            payload.get("action"),
            f"action '{identifier}' is not the override action",
            noop=True,
        )

    owner, repo, installation_id, _ = _repository_fields(payload)
    check_run = _section(payload, "check_run")
    # only required once the identifier turns out to be the override action
    check_run_id = check_run.get("id")
    if isinstance(check_run_id, bool) or not isinstance(check_run_id, int) or check_run_id <= 0:
        check_run_id = None
    pull_requests = check_run.get("pull_requests")
    numbers = tuple(
        pr["number"]
        for pr in (pull_requests if isinstance(pull_requests, list) else [])
        if isinstance(pr, dict) and isinstance(pr.get("number"), int)
    )
    return CheckRunActionInvoked(
        owner=owner,
        repo=repo,
        installation_id=installation_id,
        check_run_id=check_run_id,
        action_identifier=identifier,
        affected_pr_numbers=numbers,
    )


def _check_suite(payload: dict[str, Any]) -> LockEvent:
    owner, repo, installation_id, context = _repository_fields(payload)
    head_sha = _section(payload, "check_suite").get("head_sha")
    return CheckSuiteEvent(
        owner=owner,
        repo=repo,
        installation_id=installation_id,
        head_sha=_require_str(head_sha, "head SHA", context),
    )


def _workflow_run(payload: dict[str, Any]) -> LockEvent:
    owner, repo, installation_id, context = _repository_fields(payload)
    workflow_run = _section(payload, "workflow_run")
    path = workflow_run.get("path") or _section(payload, "workflow").get("path")

    raw_conclusion = workflow_run.get("conclusion")
    if raw_conclusion == "success":
        conclusion = WorkflowConclusion.SUCCESS
    elif raw_conclusion in FAILED_WORKFLOW_CONCLUSIONS:
        conclusion = WorkflowConclusion.FAILURE
    else:
        conclusion = WorkflowConclusion.NONE

    return WorkflowRunEvent(
        owner=owner,
        repo=repo,
        installation_id=installation_id,
        workflow_path=_require_str(path, "workflow path", context),
        action=WorkflowAction(payload["action"]),
        conclusion=conclusion,
    )


# (event kind) -> (relevant actions, builder)
_BUILDERS: dict[str, tuple[frozenset[str], Callable[[dict[str, Any]], Any]]] = {
    "pull_request": (PULL_REQUEST_ACTIONS, _pull_request),
    "issue_comment": (frozenset({"created"}), _issue_comment),
    "check_run": (frozenset({"requested_action"}), _check_run),
    "check_suite": (CHECK_SUITE_ACTIONS, _check_suite),
    "workflow_run": (frozenset(action.value for action in WorkflowAction), _workflow_run),
}


def normalize_event(
    event_kind: str, payload: Any, override_action_id: str = DEFAULT_OVERRIDE_ACTION_ID
) -> LockEvent | IgnoredEvent:
    """Normalize one webhook delivery.

    Args:
        event_kind: Value of the ``X-GitHub-Event`` header
        payload: Decoded JSON body
        override_action_id: Check run button identifier that clears the lock;
            other buttons become no-ops before the rest of the payload is read

    Returns:
        The matching lock event, or an :class:`IgnoredEvent`

    Raises:
        MalformedEvent: If a relevant event lacks required fields
    """
    if not isinstance(payload, dict):
        raise MalformedEvent(
            f"{event_kind} payload is not a JSON object", context={"event_kind": event_kind}
        )

    action = payload.get("action")
    action = action if isinstance(action, str) else None
    entry = _BUILDERS.get(event_kind)
    if entry is None:
        return IgnoredEvent(event_kind, action, "event kind not handled")

    actions, builder = entry
    if action not in actions:
        return IgnoredEvent(event_kind, action, "action not handled")

    if builder is _check_run:
        return _check_run(payload, override_action_id)
    result: LockEvent | IgnoredEvent = builder(payload)
    return result
