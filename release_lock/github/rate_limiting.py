"""Rate limit bookkeeping and a circuit breaker for the GitHub client."""

import logging
import time
from collections.abc import Mapping
from dataclasses import dataclass
from enum import Enum

from .exceptions import GitHubRateLimitError

logger = logging.getLogger(__name__)


@dataclass
class RateLimitInfo:
    """Quota of one rate limit resource as last reported by GitHub."""

    limit: int
    remaining: int
    reset: int
    resource: str = "core"

    @classmethod
    def from_headers(cls, headers: Mapping[str, str]) -> "RateLimitInfo | None":
        """Parse the ``X-RateLimit-*`` headers; ``None`` if absent or garbled."""
        if "X-RateLimit-Limit" not in headers:
            return None
        try:
            return cls(
                limit=int(headers["X-RateLimit-Limit"]),
                remaining=int(headers.get("X-RateLimit-Remaining", 0)),
                reset=int(headers.get("X-RateLimit-Reset", 0)),
                resource=headers.get("X-RateLimit-Resource", "core"),
            )
        except (TypeError, ValueError):
            return None

    @property
    def seconds_until_reset(self) -> float:
        return max(0, self.reset - time.time())


class RateLimitManager:
    """Refuses requests locally once a resource's quota falls to ``buffer``.

    A fan-out across many open pull requests then stops short of exhausting
    the installation quota until the window resets.
    """

    def __init__(self, buffer: int = 50) -> None:
        self.buffer = buffer
        self._limits: dict[str, RateLimitInfo] = {}

    def get_rate_limit(self, resource: str = "core") -> RateLimitInfo | None:
        return self._limits.get(resource)

    def update_rate_limit(self, headers: Mapping[str, str]) -> None:
        info = RateLimitInfo.from_headers(headers)
        if info is not None:
            self._limits[info.resource] = info

    def check_rate_limit(self, resource: str = "core") -> None:
        """Raise if ``resource`` is inside the buffer and has not reset yet.

        Raises:
            GitHubRateLimitError: If the buffer has been reached
        """
        info = self._limits.get(resource)
        if info is None or info.remaining > self.buffer:
            return

        wait = info.seconds_until_reset
        if wait > 0:
            raise GitHubRateLimitError(
                f"Rate limit approaching for {resource}: {info.remaining} left, "
                f"resets in {wait:.0f}s",
                reset_time=info.reset,
                remaining=info.remaining,
                limit=info.limit,
            )


class BreakerState(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half_open"


class CircuitBreaker:
    """Stops calling GitHub after repeated transient failures.

    After ``failure_threshold`` consecutive failures the breaker opens and
    requests fail fast. Once ``recovery_timeout`` seconds have passed one
    trial request is let through; its success closes the breaker, its failure
    reopens it.
    """

    def __init__(self, failure_threshold: int = 5, recovery_timeout: int = 60):
        self.failure_threshold = failure_threshold
        self.recovery_timeout = recovery_timeout
        self.state = BreakerState.CLOSED
        self._failures = 0
        self._opened_at: float | None = None

    @property
    def is_open(self) -> bool:
        return self.state is BreakerState.OPEN

    def record_success(self) -> None:
        if self.state is not BreakerState.CLOSED:
            logger.info("GitHub circuit breaker closed")
        self.state = BreakerState.CLOSED
        self._failures = 0
        self._opened_at = None

    def record_failure(self) -> None:
        self._failures += 1
        if self.state is BreakerState.HALF_OPEN or self._failures >= self.failure_threshold:
            if self.state is not BreakerState.OPEN:
                logger.warning(f"GitHub circuit breaker open after {self._failures} failures")
            self.state = BreakerState.OPEN
            self._opened_at = time.time()

    def can_attempt_request(self) -> bool:
        if self.state is not BreakerState.OPEN:
            return True
        if self.get_wait_time() > 0:
            return False
        self.state = BreakerState.HALF_OPEN
        return True

    def get_wait_time(self) -> float:
        """Seconds until the next trial request is allowed; 0 unless open."""
        if self.state is not BreakerState.OPEN or self._opened_at is None:
            return 0
        return max(0, self.recovery_timeout - (time.time() - self._opened_at))
