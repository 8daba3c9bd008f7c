"""Release Lock Coordinator: handles one webhook delivery end to end.

Pipeline per delivery::

    normalize -> resolve -> override gate -> credential -> reconcile

Deliveries share no in-process state, so any number may be handled
concurrently. Duplicate and out-of-order deliveries are tolerated because
every remote write is a whole-state overwrite; the last write wins.
"""

import asyncio
import logging
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any, Protocol

from release_lock.github.auth import AuthToken
from release_lock.github.exceptions import GitHubAuthenticationError
from release_lock.logging_config import DeliveryLogAdapter

from .events import CommentPosted, IgnoredEvent, LockEvent
from .exceptions import (
    AuthResolutionError,
    EventTimeoutError,
    MalformedEvent,
    RemoteStateError,
)
from .gateway import CheckRunGateway
from .normalizer import normalize_event
from .override import OverrideGate
from .policy import DEFAULT_OVERRIDE_ACTION_ID, LockPolicy
from .reconciler import Reconciler, ReconcileResult
from .resolver import LockTransition, PolicyNoop, resolve_transition

logger = logging.getLogger(__name__)

ACKNOWLEDGE_REACTION = "eyes"


class CredentialProvider(Protocol):
    async def resolve_credential(self, installation_id: int) -> AuthToken: ...


GatewayFactory = Callable[[AuthToken], CheckRunGateway]
PolicyProvider = Callable[[str, str], LockPolicy]


class OutcomeStatus(str, Enum):
    IGNORED = "ignored"
    NOOP = "noop"
    APPLIED = "applied"


@dataclass
class DeliveryOutcome:
    """Result of a delivery that did not fail."""

    delivery_id: str
    event_kind: str
    status: OutcomeStatus
    reason: str = ""
    result: ReconcileResult | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "delivery_id": self.delivery_id,
            "event": self.event_kind,
            "status": self.status.value,
        }
        if self.reason:
            data["reason"] = self.reason
        if self.result is not None:
            data["changes"] = self.result.summary()
        return data


class ReleaseLockCoordinator:
    """Turns webhook deliveries into check run transitions."""

    def __init__(
        self,
        credentials: CredentialProvider,
        gateway_factory: GatewayFactory,
        policy_provider: PolicyProvider,
        event_timeout: float = 30.0,
        gate: OverrideGate | None = None,
        reconciler: Reconciler | None = None,
        override_action_id: str = DEFAULT_OVERRIDE_ACTION_ID,
    ) -> None:
        """Initialize the coordinator.

        Args:
            credentials: Exchanges installation ids for API tokens
            gateway_factory: Builds a gateway acting with a given token
            policy_provider: Returns the lock policy for ``(owner, repo)``
            event_timeout: Seconds allowed for the remote work of one delivery
            gate: Override gate
            reconciler: Reconciler
            override_action_id: Check run button identifier that clears the lock
        """
        self.credentials = credentials
        self.gateway_factory = gateway_factory
        self.policy_provider = policy_provider
        self.event_timeout = event_timeout
        self.override_action_id = override_action_id
        self.gate = gate or OverrideGate()
        self.reconciler = reconciler or Reconciler()

    async def handle(self, delivery_id: str, event_kind: str, payload: Any) -> DeliveryOutcome:
        """Handle one delivery.

        Returns:
            Outcome for ignored, no-op and applied deliveries

        Raises:
            MalformedEvent: Payload could not be normalized
            AuthResolutionError: Installation token could not be obtained
            RemoteStateError: A gateway call failed or the time budget ran out
        """
        log = DeliveryLogAdapter(logger, {"delivery_id": delivery_id, "event_kind": event_kind})

        try:
            event = normalize_event(event_kind, payload, self.override_action_id)
        except MalformedEvent as e:
            log.warning(f"Dropping malformed {event_kind} event: {e}")
            raise

        if isinstance(event, IgnoredEvent):
            log.debug(f"Ignoring {event_kind}.{event.action}: {event.reason}")
            status = OutcomeStatus.NOOP if event.noop else OutcomeStatus.IGNORED
            return DeliveryOutcome(delivery_id, event_kind, status, event.reason)

        log = log.bind(
            owner=event.owner, repo=event.repo, installation_id=event.installation_id
        )
        policy = self.policy_provider(event.owner, event.repo)

        try:
            decision = resolve_transition(event, policy)
        except MalformedEvent as e:
            log.warning(f"Dropping malformed {event_kind} event: {e}")
            raise
        if isinstance(decision, PolicyNoop):
            log.debug(f"No lock change: {decision.reason}")
            return DeliveryOutcome(delivery_id, event_kind, OutcomeStatus.NOOP, decision.reason)

        if not self.gate.admit(event, decision, policy):
            log.info("Override trigger rejected by gate")
            return DeliveryOutcome(
                delivery_id, event_kind, OutcomeStatus.NOOP, "override not admitted"
            )

        result = ReconcileResult()
        try:
            async with asyncio.timeout(self.event_timeout):
                await self._apply(event, decision, policy, result, log)
        except TimeoutError as e:
            log.error(
                f"Gave up after {self.event_timeout}s; {len(result.applied)} change(s) "
                f"left applied, remaining updates cancelled"
            )
            raise EventTimeoutError(
                f"event handling exceeded {self.event_timeout}s",
                operation="handle event",
                context={"owner": event.owner, "repo": event.repo, "delivery_id": delivery_id},
                partial=result,
            ) from e

        log.info(f"{decision.output_title}: {result.summary()}")
        return DeliveryOutcome(
            delivery_id, event_kind, OutcomeStatus.APPLIED, decision.output_title, result
        )

    async def _apply(
        self,
        event: LockEvent,
        transition: LockTransition,
        policy: LockPolicy,
        result: ReconcileResult,
        log: DeliveryLogAdapter,
    ) -> ReconcileResult:
        token = await self._resolve_credential(event, log)

        async with self.gateway_factory(token) as gateway:
            if isinstance(event, CommentPosted):
                await self._acknowledge(gateway, event, log)

            try:
                return await self.reconciler.apply(
                    gateway, event.owner, event.repo, transition, policy, result
                )
            except RemoteStateError as e:
                applied = len(e.partial.applied) if e.partial else 0
                log.error(
                    f"{e.operation} failed ({e.context}); {applied} change(s) left applied"
                )
                raise

    async def _resolve_credential(self, event: LockEvent, log: DeliveryLogAdapter) -> AuthToken:
        try:
            return await self.credentials.resolve_credential(event.installation_id)
        except GitHubAuthenticationError as e:
            log.error(f"couldn't get install token: {e}")
            raise AuthResolutionError(
                f"couldn't get install token for {event.full_name}: {e}",
                context={
                    "owner": event.owner,
                    "repo": event.repo,
                    "installation_id": event.installation_id,
                },
            ) from e

    async def _acknowledge(
        self, gateway: CheckRunGateway, event: CommentPosted, log: DeliveryLogAdapter
    ) -> None:
        """React to the override comment; failures only get logged."""
        try:
            await gateway.add_comment_reaction(
                event.owner, event.repo, event.comment_id, ACKNOWLEDGE_REACTION
            )
        except RemoteStateError as e:
            log.warning(f"couldn't add reaction to comment {event.comment_id}: {e}")
