"""GitHub API client exceptions.

Each subclass corresponds to one class of HTTP outcome. ``is_transient``
tells the client whether repeating the identical request may succeed.
"""

from collections.abc import Mapping
from typing import Any


class GitHubError(Exception):
    """Base exception for GitHub API errors."""

    is_transient = False

    def __init__(
        self,
        message: str,
        status_code: int | None = None,
        response_data: dict[str, Any] | None = None,
    ):
        """Initialize GitHub error.

        Args:
            message: Error message
            status_code: HTTP status code, when a response was received
            response_data: Decoded error body from GitHub
        """
        super().__init__(message)
        self.status_code = status_code
        self.response_data = response_data or {}


class GitHubAuthenticationError(GitHubError):
    """Credentials were rejected or lack the needed permission (401/403)."""


class GitHubRateLimitError(GitHubError):
    """The rate limit is exhausted, or the local buffer has been reached."""

    def __init__(
        self,
        message: str,
        reset_time: int | None = None,
        remaining: int = 0,
        limit: int = 0,
    ):
        super().__init__(message, status_code=403)
        self.reset_time = reset_time
        self.remaining = remaining
        self.limit = limit


class GitHubNotFoundError(GitHubError):
    """404; also what GitHub answers for resources the token cannot see."""


class GitHubValidationError(GitHubError):
    """422, e.g. a check run body GitHub refuses."""


class GitHubServerError(GitHubError):
    is_transient = True


class GitHubConnectionError(GitHubError):
    is_transient = True


class GitHubTimeoutError(GitHubError):
    is_transient = True


def _int_header(headers: Mapping[str, str], name: str) -> int | None:
    try:
        return int(headers[name])
    except (KeyError, ValueError):
        return None


def error_for_status(
    status: int, body: dict[str, Any], headers: Mapping[str, str]
) -> GitHubError:
    """Build the exception matching an unsuccessful response."""
    message = str(body.get("message") or f"HTTP {status}")

    if status == 429 or (status == 403 and "rate limit" in message.lower()):
        return GitHubRateLimitError(
            message,
            reset_time=_int_header(headers, "X-RateLimit-Reset"),
            remaining=_int_header(headers, "X-RateLimit-Remaining") or 0,
            limit=_int_header(headers, "X-RateLimit-Limit") or 0,
        )
    if status in (401, 403):
        return GitHubAuthenticationError(message, status, body)
    if status == 404:
        return GitHubNotFoundError(message, status, body)
    if status == 422:
        return GitHubValidationError(message, status, body)
    if 500 <= status < 600:
        return GitHubServerError(message, status, body)
    return GitHubError(message, status, body)
