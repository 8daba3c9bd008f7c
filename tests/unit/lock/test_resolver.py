"""
Unit tests for lock state resolution.

Why: The resolver is the whole lock policy; each event variant must map
     to exactly one desired check run state.

What: Tests each rule of resolve_transition and the cases that resolve
      to PolicyNoop.

How: Builds normalized events directly and inspects the transitions.
"""

import pytest

from release_lock.lock.events import (
    CheckRunActionInvoked,
    CheckRunConclusion,
    CheckRunStatus,
    CheckSuiteEvent,
    CommentPosted,
    PRSynchronized,
    WorkflowAction,
    WorkflowConclusion,
    WorkflowRunEvent,
)
from release_lock.lock.exceptions import MalformedEvent
from release_lock.lock.policy import LockPolicy
from release_lock.lock.resolver import (
    TITLE_FAILED_DEPLOYMENT,
    TITLE_OVERRIDDEN,
    TITLE_PENDING_DEPLOYMENT,
    TITLE_PENDING_RELEASE,
    TITLE_UNLOCKED,
    LockScope,
    LockTransition,
    PolicyNoop,
    resolve_transition,
)

REPO = {"owner": "octo-org", "repo": "service", "installation_id": 4242}


def workflow(
    action: WorkflowAction,
    conclusion: WorkflowConclusion = WorkflowConclusion.NONE,
    path: str = ".github/workflows/deploy.yaml",
) -> WorkflowRunEvent:
    return WorkflowRunEvent(**REPO, workflow_path=path, action=action, conclusion=conclusion)


class TestPullRequestRule:
    """Tests for PRSynchronized resolution."""

    def test_locks_head_with_override_button(self, policy: LockPolicy) -> None:
        """
        Why: A new commit must be blocked until the pending release ships
        What: Tests completed/failure on the head SHA with create and override allowed
        How: Resolves a PRSynchronized event and checks every transition field
        """
        transition = resolve_transition(PRSynchronized(**REPO, head_sha="abc123"), policy)

        assert isinstance(transition, LockTransition)
        assert transition.scope is LockScope.HEAD_SHA
        assert transition.target_shas == ("abc123",)
        assert transition.status is CheckRunStatus.COMPLETED
        assert transition.conclusion is CheckRunConclusion.FAILURE
        assert transition.output_title == TITLE_PENDING_RELEASE
        assert transition.allow_create is True
        assert transition.offer_override is True
        assert "/override" in transition.output_summary


class TestCheckSuiteRule:
    def test_marks_head_in_progress(self, policy: LockPolicy) -> None:
        transition = resolve_transition(CheckSuiteEvent(**REPO, head_sha="abc123"), policy)

        assert isinstance(transition, LockTransition)
        assert transition.status is CheckRunStatus.IN_PROGRESS
        assert transition.conclusion is None
        assert transition.target_shas == ("abc123",)
        assert transition.allow_create is True
        assert transition.offer_override is False


class TestWorkflowRunRule:
    """Tests for deploy workflow resolution."""

    def test_requested_marks_all_open_prs_pending(self, policy: LockPolicy) -> None:
        transition = resolve_transition(workflow(WorkflowAction.REQUESTED), policy)

        assert isinstance(transition, LockTransition)
        assert transition.scope is LockScope.OPEN_PULL_REQUESTS
        assert transition.status is CheckRunStatus.IN_PROGRESS
        assert transition.conclusion is None
        assert transition.output_title == TITLE_PENDING_DEPLOYMENT
        assert transition.allow_create is False

    def test_success_unlocks(self, policy: LockPolicy) -> None:
        transition = resolve_transition(
            workflow(WorkflowAction.COMPLETED, WorkflowConclusion.SUCCESS), policy
        )

        assert isinstance(transition, LockTransition)
        assert transition.scope is LockScope.OPEN_PULL_REQUESTS
        assert transition.status is CheckRunStatus.COMPLETED
        assert transition.conclusion is CheckRunConclusion.SUCCESS
        assert transition.output_title == TITLE_UNLOCKED
        assert transition.allow_create is False

    def test_failure_keeps_lock(self, policy: LockPolicy) -> None:
        transition = resolve_transition(
            workflow(WorkflowAction.COMPLETED, WorkflowConclusion.FAILURE), policy
        )

        assert isinstance(transition, LockTransition)
        assert transition.conclusion is CheckRunConclusion.FAILURE
        assert transition.output_title == TITLE_FAILED_DEPLOYMENT

    def test_completed_without_conclusion_is_noop(self, policy: LockPolicy) -> None:
        decision = resolve_transition(workflow(WorkflowAction.COMPLETED), policy)

        assert isinstance(decision, PolicyNoop)

    @pytest.mark.parametrize(
        "path",
        [
            ".github/workflows/ci.yaml",
            ".github/workflows/deploy.yml",
            ".github/workflows/Deploy.yaml",
            "./.github/workflows/deploy.yaml",
        ],
    )
    def test_other_workflow_paths_are_noop(self, policy: LockPolicy, path: str) -> None:
        """
        Why: Only the configured deploy workflow may move the lock
        What: Tests that near-miss paths are not matched
        How: Resolves workflow events with differently spelled paths
        """
        decision = resolve_transition(
            workflow(WorkflowAction.COMPLETED, WorkflowConclusion.SUCCESS, path=path), policy
        )

        assert isinstance(decision, PolicyNoop)

    def test_per_repository_workflow_path(self) -> None:
        policy = LockPolicy(deploy_workflow_path=".github/workflows/release.yml")

        decision = resolve_transition(
            workflow(
                WorkflowAction.COMPLETED,
                WorkflowConclusion.SUCCESS,
                path=".github/workflows/release.yml",
            ),
            policy,
        )

        assert isinstance(decision, LockTransition)


class TestOverrideRules:
    """Tests for comment and button overrides."""

    def comment(self, body: str) -> CommentPosted:
        return CommentPosted(
            **REPO, issue_number=42, comment_id=9001, comment_body=body, commenter="dev"
        )

    @pytest.mark.parametrize("body", ["/override", "/override please", "/overrides"])
    def test_override_comment_unlocks_pull_request(self, policy: LockPolicy, body: str) -> None:
        transition = resolve_transition(self.comment(body), policy)

        assert isinstance(transition, LockTransition)
        assert transition.scope is LockScope.PULL_REQUEST
        assert transition.pull_number == 42
        assert transition.status is CheckRunStatus.COMPLETED
        assert transition.conclusion is CheckRunConclusion.SUCCESS
        assert transition.output_title == TITLE_OVERRIDDEN
        assert transition.allow_create is False

    @pytest.mark.parametrize("body", ["not an override", " /override", "please /override", ""])
    def test_other_comments_are_noop(self, policy: LockPolicy, body: str) -> None:
        assert isinstance(resolve_transition(self.comment(body), policy), PolicyNoop)

    def test_override_action_unlocks_check_run(self, policy: LockPolicy) -> None:
        event = CheckRunActionInvoked(
            **REPO, check_run_id=555, action_identifier="override_rel_lock"
        )

        transition = resolve_transition(event, policy)

        assert isinstance(transition, LockTransition)
        assert transition.scope is LockScope.CHECK_RUN
        assert transition.check_run_id == 555
        assert transition.conclusion is CheckRunConclusion.SUCCESS

    @pytest.mark.parametrize("check_run_id", [555, None])
    def test_other_action_is_noop(self, policy: LockPolicy, check_run_id: int | None) -> None:
        event = CheckRunActionInvoked(
            **REPO, check_run_id=check_run_id, action_identifier="rerun"
        )

        assert isinstance(resolve_transition(event, policy), PolicyNoop)

    def test_override_action_without_check_run_raises(self, policy: LockPolicy) -> None:
        event = CheckRunActionInvoked(
            **REPO, check_run_id=None, action_identifier="override_rel_lock"
        )

        with pytest.raises(MalformedEvent, match="check run id"):
            resolve_transition(event, policy)


class TestLockTransition:
    def test_with_targets_pins_shas_in_order(self) -> None:
        transition = LockTransition(
            scope=LockScope.OPEN_PULL_REQUESTS,
            status=CheckRunStatus.IN_PROGRESS,
            conclusion=None,
            output_title=TITLE_PENDING_DEPLOYMENT,
        )

        pinned = transition.with_targets(iter(["b", "a", "c"]))

        assert pinned.scope is LockScope.HEAD_SHA
        assert pinned.target_shas == ("b", "a", "c")
        assert transition.target_shas == ()
