"""Check Run Gateway: the remote check run resource the lock lives in.

Nothing about the lock is stored locally; the check runs on GitHub are the
only state. :class:`GitHubCheckRunGateway` talks to the REST API through an
installation-scoped :class:`~release_lock.github.client.GitHubClient` and
wraps every failure in :class:`RemoteStateError` with the operation and
identifying context.
"""

import logging
from abc import ABC, abstractmethod
from collections.abc import Awaitable
from dataclasses import dataclass
from typing import Any, TypeVar

from release_lock.github.client import GitHubClient
from release_lock.github.exceptions import GitHubError

from .events import CheckRunConclusion, CheckRunStatus
from .exceptions import RemoteStateError

logger = logging.getLogger(__name__)

T = TypeVar("T")


@dataclass(frozen=True)
class CheckRunSnapshot:
    """Remote state of one check run."""

    id: int
    head_sha: str
    name: str
    status: CheckRunStatus
    conclusion: CheckRunConclusion | None = None
    output_title: str | None = None
    started_at: str | None = None

    @classmethod
    def from_api(cls, data: dict[str, Any]) -> "CheckRunSnapshot":
        conclusion = data.get("conclusion")
        output = data.get("output") or {}
        return cls(
            id=int(data["id"]),
            head_sha=str(data.get("head_sha", "")),
            name=str(data.get("name", "")),
            status=CheckRunStatus(data.get("status", CheckRunStatus.QUEUED.value)),
            # neutral, cancelled, skipped... are not lock states
            conclusion=(
                CheckRunConclusion(conclusion)
                if conclusion in {c.value for c in CheckRunConclusion}
                else None
            ),
            output_title=output.get("title"),
            started_at=data.get("started_at"),
        )


@dataclass(frozen=True)
class PullRequestRef:
    number: int
    head_sha: str


@dataclass(frozen=True)
class CheckRunAction:
    """A button rendered on the check run page."""

    label: str
    description: str
    identifier: str

    def to_api(self) -> dict[str, str]:
        return {
            "label": self.label,
            "description": self.description,
            "identifier": self.identifier,
        }


class CheckRunGateway(ABC):
    """Operations the Reconciler and Coordinator need from GitHub."""

    async def __aenter__(self) -> "CheckRunGateway":
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def close(self) -> None:
        """Release transport resources."""

    @abstractmethod
    async def list_check_runs(
        self, owner: str, repo: str, sha: str, name: str, app_id: int | None
    ) -> list[CheckRunSnapshot]:
        """List check runs named ``name`` on ``sha``, in API order."""

    @abstractmethod
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
        """Create a check run on ``head_sha``."""

    @abstractmethod
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
        """Overwrite status, conclusion and output of an existing check run.

        ``actions`` replaces the run's buttons; ``None`` leaves them as they are.
        """

    @abstractmethod
    async def list_open_pull_requests(self, owner: str, repo: str) -> list[PullRequestRef]:
        """List open pull requests with their head SHAs."""

    @abstractmethod
    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequestRef:
        """Fetch one pull request's head SHA."""

    @abstractmethod
    async def add_comment_reaction(
        self, owner: str, repo: str, comment_id: int, content: str
    ) -> None:
        """React to an issue comment."""


def check_run_body(
    status: CheckRunStatus,
    conclusion: CheckRunConclusion | None,
    output_title: str,
    output_summary: str,
) -> dict[str, Any]:
    """Request body fields shared by create and update.

    GitHub rejects a conclusion on a check run that is not completed.
    """
    body: dict[str, Any] = {
        "status": status.value,
        "output": {"title": output_title, "summary": output_summary or output_title},
    }
    if status is CheckRunStatus.COMPLETED and conclusion is not None:
        body["conclusion"] = conclusion.value
    return body


class GitHubCheckRunGateway(CheckRunGateway):
    """Gateway backed by the GitHub REST API."""

    def __init__(self, client: GitHubClient):
        """Initialize the gateway.

        Args:
            client: Client authenticated as the app installation
        """
        self.client = client

    async def close(self) -> None:
        await self.client.close()

    async def _call(self, operation: str, context: dict[str, Any], call: Awaitable[T]) -> T:
        try:
            return await call
        except GitHubError as e:
            logger.error(f"GitHub call {operation} failed for {context}: {e}")
            raise RemoteStateError(
                f"couldn't {operation}: {e}",
                operation=operation,
                context={**context, "status_code": e.status_code},
            ) from e

    async def list_check_runs(
        self, owner: str, repo: str, sha: str, name: str, app_id: int | None
    ) -> list[CheckRunSnapshot]:
        paginator = self.client.list_check_runs_for_ref(
            owner, repo, sha, check_name=name, app_id=app_id
        )
        items = await self._call(
            "list check runs",
            {"owner": owner, "repo": repo, "sha": sha, "check_name": name},
            paginator.collect_all(),
        )
        return [CheckRunSnapshot.from_api(item) for item in items]

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
        body = {
            "name": name,
            "head_sha": head_sha,
            **check_run_body(status, conclusion, output_title, output_summary),
        }
        if actions:
            body["actions"] = [action.to_api() for action in actions]

        data = await self._call(
            "create check run",
            {"owner": owner, "repo": repo, "sha": head_sha, "check_name": name},
            self.client.create_check_run(owner, repo, body),
        )
        return CheckRunSnapshot.from_api(data)

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
        body = {"name": name, **check_run_body(status, conclusion, output_title, output_summary)}
        if actions is not None:
            body["actions"] = [action.to_api() for action in actions]
        data = await self._call(
            "update check run",
            {"owner": owner, "repo": repo, "check_run_id": check_run_id},
            self.client.update_check_run(owner, repo, check_run_id, body),
        )
        return CheckRunSnapshot.from_api(data)

    async def list_open_pull_requests(self, owner: str, repo: str) -> list[PullRequestRef]:
        items = await self._call(
            "list pull requests",
            {"owner": owner, "repo": repo},
            self.client.list_pulls(owner, repo, state="open").collect_all(),
        )
        return [
            PullRequestRef(number=int(item["number"]), head_sha=str(item["head"]["sha"]))
            for item in items
        ]

    async def get_pull_request(self, owner: str, repo: str, number: int) -> PullRequestRef:
        data = await self._call(
            "get pull request",
            {"owner": owner, "repo": repo, "pull_number": number},
            self.client.get_pull(owner, repo, number),
        )
        return PullRequestRef(number=int(data["number"]), head_sha=str(data["head"]["sha"]))

    async def add_comment_reaction(
        self, owner: str, repo: str, comment_id: int, content: str
    ) -> None:
        await self._call(
            "create reaction",
            {"owner": owner, "repo": repo, "comment_id": comment_id},
            self.client.create_comment_reaction(owner, repo, comment_id, content),
        )
