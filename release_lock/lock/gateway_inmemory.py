"""In-memory Check Run Gateway for deterministic tests."""

from dataclasses import dataclass, field, replace
from typing import Any

from .events import CheckRunConclusion, CheckRunStatus
from .exceptions import RemoteStateError
from .gateway import CheckRunAction, CheckRunGateway, CheckRunSnapshot, PullRequestRef


@dataclass
class RecordedCall:
    operation: str
    args: dict[str, Any] = field(default_factory=dict)


class InMemoryCheckRunGateway(CheckRunGateway):
    """Keeps check runs, pull requests and reactions in dictionaries.

    ``fail_on`` maps an operation name to the 1-based call numbers that
    should raise :class:`RemoteStateError`, e.g. ``{"update_check_run": {2}}``
    fails the second update only.
    """

    def __init__(
        self,
        pull_requests: list[PullRequestRef] | None = None,
        closed_pull_requests: list[PullRequestRef] | None = None,
        fail_on: dict[str, set[int]] | None = None,
    ) -> None:
        self.open_pull_requests: list[PullRequestRef] = list(pull_requests or [])
        self.closed_pull_requests: list[PullRequestRef] = list(closed_pull_requests or [])
        self.check_runs: dict[tuple[str, str], list[CheckRunSnapshot]] = {}
        self.check_run_app_ids: dict[int, int | None] = {}
        self.check_run_actions: dict[int, list[CheckRunAction]] = {}
        self.reactions: list[tuple[str, int, str]] = []
        self.calls: list[RecordedCall] = []
        self.fail_on = fail_on or {}
        self._call_counts: dict[str, int] = {}
        self._next_id = 1000

    # Helpers for arranging and inspecting state in tests

    def seed_check_run(
        self,
        owner: str,
        repo: str,
        head_sha: str,
        name: str,
        status: CheckRunStatus = CheckRunStatus.COMPLETED,
        conclusion: CheckRunConclusion | None = CheckRunConclusion.FAILURE,
        output_title: str | None = None,
        app_id: int | None = None,
    ) -> CheckRunSnapshot:
        snapshot = CheckRunSnapshot(
            id=self._allocate_id(),
            head_sha=head_sha,
            name=name,
            status=status,
            conclusion=conclusion,
            output_title=output_title,
        )
        self.check_runs.setdefault((f"{owner}/{repo}", head_sha), []).append(snapshot)
        self.check_run_app_ids[snapshot.id] = app_id
        return snapshot

    def runs_for(self, owner: str, repo: str, head_sha: str) -> list[CheckRunSnapshot]:
        return list(self.check_runs.get((f"{owner}/{repo}", head_sha), []))

    def get_check_run(self, check_run_id: int) -> CheckRunSnapshot | None:
        for runs in self.check_runs.values():
            for run in runs:
                if run.id == check_run_id:
                    return run
        return None

    @property
    def mutations(self) -> list[RecordedCall]:
        mutating = {"create_check_run", "update_check_run", "add_comment_reaction"}
        return [call for call in self.calls if call.operation in mutating]

    def _allocate_id(self) -> int:
        self._next_id += 1
        return self._next_id

    def _record(self, operation: str, **args: Any) -> None:
        self.calls.append(RecordedCall(operation, args))
        count = self._call_counts.get(operation, 0) + 1
        self._call_counts[operation] = count
        if count in self.fail_on.get(operation, set()):
            raise RemoteStateError(
                f"injected failure for {operation} call {count}",
                operation=operation,
                context=dict(args),
            )

    # CheckRunGateway

    async def list_check_runs(
        self, owner: str, repo: str, sha: str, name: str, app_id: int | None
    ) -> list[CheckRunSnapshot]:
        self._record("list_check_runs", owner=owner, repo=repo, sha=sha, name=name)
        return [
            run
            for run in self.runs_for(owner, repo, sha)
            if run.name == name
            and (app_id is None or self.check_run_app_ids.get(run.id) in (None, app_id))
        ]

    async def create_check_run(
        self,
        owner: str,
        repo: str,
        name: str,
        head_sha: str,
        status: CheckRunStatus,
        conclusion: CheckRunConclusion | None,
        output_title: str,
        output_summary: str,
        actions: list[CheckRunAction],
    ) -> CheckRunSnapshot:
        self._record(
            "create_check_run",
            owner=owner,
            repo=repo,
            sha=head_sha,
            status=status,
            conclusion=conclusion,
            output_title=output_title,
        )
        snapshot = self.seed_check_run(
            owner,
            repo,
            head_sha,
            name,
            status=status,
            conclusion=conclusion if status is CheckRunStatus.COMPLETED else None,
            output_title=output_title,
        )
        self.check_run_actions[snapshot.id] = list(actions)
        return snapshot

    async def update_check_run(
        self,
        owner: str,
        repo: str,
        check_run_id: int,
        name: str,
        status: CheckRunStatus,
        conclusion: CheckRunConclusion | None,
        output_title: str,
        output_summary: str,
        actions: list[CheckRunAction] | None = None,
    ) -> CheckRunSnapshot:
        self._record(
            "update_check_run",
            owner=owner,
            repo=repo,
            check_run_id=check_run_id,
            status=status,
            conclusion=conclusion,
            output_title=output_title,
        )
        for runs in self.check_runs.values():
            for index, run in enumerate(runs):
                if run.id == check_run_id:
                    if actions is not None:
                        self.check_run_actions[run.id] = list(actions)
                    runs[index] = replace(
                        run,
                        name=name,
                        status=status,
                        conclusion=conclusion if status is CheckRunStatus.COMPLETED else None,
                        output_title=output_title,
                    )
                    return runs[index]
        raise RemoteStateError(
            f"check run {check_run_id} not found",
            operation="update_check_run",
            context={"owner": owner, "repo": repo, "check_run_id": check_run_id},
        )

    async def list_open_pull_requests(self, owner: str, repo: str) -> list[PullRequestRef]:
        self._record("list_open_pull_requests", owner=owner, repo=repo)
        return list(self.open_pull_requests)

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequestRef:
        self._record("get_pull_request", owner=owner, repo=repo, number=number)
        for pr in [*self.open_pull_requests, *self.closed_pull_requests]:
            if pr.number == number:
                return pr
        raise RemoteStateError(
            f"pull request #{number} not found",
            operation="get_pull_request",
            context={"owner": owner, "repo": repo, "pull_number": number},
        )

    async def add_comment_reaction(
        self, owner: str, repo: str, comment_id: int, content: str
    ) -> None:
        self._record("add_comment_reaction", owner=owner, repo=repo, comment_id=comment_id)
        self.reactions.append((f"{owner}/{repo}", comment_id, content))
