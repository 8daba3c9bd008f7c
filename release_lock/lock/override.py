"""Override Gate: decides which manual triggers may clear the lock.

Only two triggers are recognised, a comment starting with the override
command and the override button on the check run. Neither checks who
triggered it; any commenter or anyone able to press the button can clear
the lock.
"""

import logging
from typing import TYPE_CHECKING

from .events import CheckRunActionInvoked, CommentPosted, LockEvent
from .policy import LockPolicy

if TYPE_CHECKING:
    from .resolver import LockTransition

logger = logging.getLogger(__name__)


def is_override_command(body: str, policy: LockPolicy) -> bool:
    """Literal prefix match, so ``/override please`` and ``/overrides`` both count."""
    return body.startswith(policy.override_command)


def is_override_action(identifier: str, policy: LockPolicy) -> bool:
    return identifier == policy.override_action_id


class OverrideGate:
    """Last check before a manual trigger reaches the Reconciler."""

    def admit(
        self, event: LockEvent, transition: "LockTransition", policy: LockPolicy
    ) -> bool:
        """Return whether ``transition`` may be applied for ``event``.

        Events that are not manual triggers pass through untouched.
        """
        if isinstance(event, CommentPosted):
            if not is_override_command(event.comment_body, policy):
                return False
            logger.info(
                f"Override accepted from comment {event.comment_id} by "
                f"'{event.commenter}' on {event.full_name}#{event.issue_number} "
                f"(commenter permissions are not checked)"
            )
            return True

        if isinstance(event, CheckRunActionInvoked):
            if not is_override_action(event.action_identifier, policy):
                return False
            logger.info(
                f"Override accepted from action button on check run "
                f"{event.check_run_id} in {event.full_name}"
            )
            return True

        return True
