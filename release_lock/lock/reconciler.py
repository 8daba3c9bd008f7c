"""Reconciler: applies a :class:`LockTransition` to the remote check runs.

Each target SHA costs one list call and at most one mutation. Updates
overwrite status, conclusion and output wholesale, so applying the same
transition again converges on the same remote state. Fan-out across open
pull requests is a plain sequence: the first failure stops the loop, and
updates made before it stay in place.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum

from .exceptions import RemoteStateError
from .gateway import CheckRunAction, CheckRunGateway, CheckRunSnapshot
from .policy import LockPolicy
from .resolver import LockScope, LockTransition

logger = logging.getLogger(__name__)


class ChangeKind(str, Enum):
    CREATED = "created"
    UPDATED = "updated"
    SKIPPED = "skipped"


@dataclass(frozen=True)
class CheckRunChange:
    """What happened to one target."""

    kind: ChangeKind
    head_sha: str | None
    check_run_id: int | None = None


@dataclass
class ReconcileResult:
    """Changes made for one transition, in the order they were applied."""

    changes: list[CheckRunChange] = field(default_factory=list)

    @property
    def applied(self) -> list[CheckRunChange]:
        return [c for c in self.changes if c.kind is not ChangeKind.SKIPPED]

    @property
    def skipped(self) -> list[CheckRunChange]:
        return [c for c in self.changes if c.kind is ChangeKind.SKIPPED]

    def summary(self) -> dict[str, int]:
        counts = {kind.value: 0 for kind in ChangeKind}
        for change in self.changes:
            counts[change.kind.value] += 1
        return counts


def select_authoritative(runs: list[CheckRunSnapshot]) -> CheckRunSnapshot | None:
    """Pick the check run to update when a SHA carries several with our name.

    The last one in listing order wins. GitHub does not document that order,
    so "last" is not guaranteed to be the most recent run.
    """
    return runs[-1] if runs else None


def override_actions(
    transition: LockTransition, policy: LockPolicy
) -> list[CheckRunAction] | None:
    """Buttons for a run written by ``transition``.

    ``None`` when the transition offers no override, so an update keeps
    whatever buttons the run already has.
    """
    if not transition.offer_override:
        return None
    return [
        CheckRunAction(
            label=policy.override_action_label,
            description=policy.override_action_description,
            identifier=policy.override_action_id,
        )
    ]


class Reconciler:
    """Drives the Check Run Gateway towards a transition's desired state."""

    async def resolve_targets(
        self,
        gateway: CheckRunGateway,
        owner: str,
        repo: str,
        transition: LockTransition,
    ) -> LockTransition:
        """Expand pull request scopes into concrete head SHAs."""
        if transition.scope is LockScope.OPEN_PULL_REQUESTS:
            pulls = await gateway.list_open_pull_requests(owner, repo)
            logger.debug(f"{owner}/{repo}: fanning out to {len(pulls)} open pull requests")
            return transition.with_targets(pr.head_sha for pr in pulls)

        if transition.scope is LockScope.PULL_REQUEST:
            if transition.pull_number is None:
                raise ValueError("pull request scope without a pull number")
            pull = await gateway.get_pull_request(owner, repo, transition.pull_number)
            return transition.with_targets([pull.head_sha])

        return transition

    async def apply(
        self,
        gateway: CheckRunGateway,
        owner: str,
        repo: str,
        transition: LockTransition,
        policy: LockPolicy,
        result: ReconcileResult | None = None,
    ) -> ReconcileResult:
        """Apply ``transition`` for ``owner/repo``.

        Args:
            result: Records each change as soon as it is applied; pass one in
                to keep the record when this call is cancelled

        Raises:
            RemoteStateError: On the first failing gateway call; ``partial``
                carries the changes applied before it
        """
        if result is None:
            result = ReconcileResult()

        if transition.scope is LockScope.CHECK_RUN:
            if transition.check_run_id is None:
                raise ValueError("check run scope without a check run id")
            await self._update(gateway, owner, repo, transition.check_run_id, transition, policy)
            result.changes.append(
                CheckRunChange(ChangeKind.UPDATED, None, transition.check_run_id)
            )
            return result

        transition = await self.resolve_targets(gateway, owner, repo, transition)
        for sha in transition.target_shas:
            try:
                change = await self._apply_to_sha(gateway, owner, repo, sha, transition, policy)
            except RemoteStateError as e:
                e.partial = result
                e.context.setdefault("sha", sha)
                logger.error(
                    f"{owner}/{repo}: giving up after {len(result.applied)} applied "
                    f"change(s); {sha} failed: {e}"
                )
                raise
            result.changes.append(change)

        return result

    async def _apply_to_sha(
        self,
        gateway: CheckRunGateway,
        owner: str,
        repo: str,
        sha: str,
        transition: LockTransition,
        policy: LockPolicy,
    ) -> CheckRunChange:
        runs = await gateway.list_check_runs(owner, repo, sha, policy.check_name, policy.app_id)
        existing = select_authoritative(runs)
        if len(runs) > 1:
            logger.warning(
                f"{owner}/{repo}@{sha}: {len(runs)} '{policy.check_name}' check runs, "
                f"using {existing.id if existing else None}"
            )

        if existing is not None:
            await self._update(gateway, owner, repo, existing.id, transition, policy)
            return CheckRunChange(ChangeKind.UPDATED, sha, existing.id)

        if not transition.allow_create:
            logger.debug(f"{owner}/{repo}@{sha}: no lock check run to update")
            return CheckRunChange(ChangeKind.SKIPPED, sha)

        created = await gateway.create_check_run(
            owner,
            repo,
            name=policy.check_name,
            head_sha=sha,
            status=transition.status,
            conclusion=transition.conclusion,
            output_title=transition.output_title,
            output_summary=transition.output_summary,
            actions=override_actions(transition, policy) or [],
        )
        logger.info(
            f"{owner}/{repo}@{sha}: created check run {created.id} ({transition.output_title})"
        )
        return CheckRunChange(ChangeKind.CREATED, sha, created.id)

    async def _update(
        self,
        gateway: CheckRunGateway,
        owner: str,
        repo: str,
        check_run_id: int,
        transition: LockTransition,
        policy: LockPolicy,
    ) -> None:
        await gateway.update_check_run(
            owner,
            repo,
            check_run_id,
            name=policy.check_name,
            status=transition.status,
            conclusion=transition.conclusion,
            output_title=transition.output_title,
            output_summary=transition.output_summary,
            actions=override_actions(transition, policy),
        )
        logger.info(
            f"{owner}/{repo}: check run {check_run_id} -> {transition.status.value}"
            f"/{transition.conclusion.value if transition.conclusion else '-'} "
            f"({transition.output_title})"
        )
