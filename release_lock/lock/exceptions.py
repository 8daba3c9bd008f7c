"""Errors raised while coordinating the release lock.

None of these are fatal to the process; each one fails a single delivery.
"""

from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .reconciler import ReconcileResult


class LockError(Exception):
    """Base class carrying the identifying context of the failed event."""

    def __init__(self, message: str, context: dict[str, Any] | None = None):
        super().__init__(message)
        self.context = dict(context or {})


class MalformedEvent(LockError):
    """Payload could not be normalized; dropped without retry."""


class AuthResolutionError(LockError):
    """Installation credential could not be obtained for the event."""


class RemoteStateError(LockError):
    """A Check Run Gateway call failed.

    ``partial`` holds the changes already applied when a fan-out was
    abandoned part way; they are left in place.
    """

    def __init__(
        self,
        message: str,
        operation: str,
        context: dict[str, Any] | None = None,
        partial: "ReconcileResult | None" = None,
    ):
        super().__init__(message, context)
        self.operation = operation
        self.partial = partial


class EventTimeoutError(RemoteStateError):
    """Handling the event exceeded its time budget; remaining work was cancelled."""
