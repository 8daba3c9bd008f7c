"""Effective release lock policy for one repository."""

from dataclasses import dataclass

DEFAULT_CHECK_NAME = "Example Release Check"
DEFAULT_DEPLOY_WORKFLOW_PATH = ".github/workflows/deploy.yaml"
DEFAULT_OVERRIDE_COMMAND = "/override"
DEFAULT_OVERRIDE_ACTION_ID = "override_rel_lock"


@dataclass(frozen=True)
class LockPolicy:
    """Names and triggers the lock is evaluated against.

    ``app_id`` restricts check run lookups to runs created by this app, so a
    check with the same name from another integration is never touched.
    """

    check_name: str = DEFAULT_CHECK_NAME
    deploy_workflow_path: str = DEFAULT_DEPLOY_WORKFLOW_PATH
    app_id: int | None = None
    override_command: str = DEFAULT_OVERRIDE_COMMAND
    override_action_id: str = DEFAULT_OVERRIDE_ACTION_ID
    override_action_label: str = "Override Lock"
    override_action_description: str = "Override the release lock"
