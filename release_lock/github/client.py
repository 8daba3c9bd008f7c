"""Async GitHub REST client used by the release lock.

Only the endpoints the lock needs are wrapped: check runs, pull requests,
comment reactions and the app installation endpoints. Every call goes
through :meth:`GitHubClient._request`, which owns retries, the circuit
breaker and rate limit bookkeeping.
"""

import asyncio
import json
import logging
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any
from urllib.parse import urljoin

import aiohttp

from .auth import AuthProvider
from .exceptions import (
    GitHubConnectionError,
    GitHubError,
    GitHubServerError,
    GitHubTimeoutError,
    error_for_status,
)
from .pagination import AsyncPaginator, PaginatedResponse
from .rate_limiting import CircuitBreaker, RateLimitManager

logger = logging.getLogger(__name__)

API_VERSION = "2022-11-28"
SUCCESS_STATUSES = frozenset({200, 201, 204})


@dataclass
class GitHubClientConfig:
    """Connection settings shared by the app client and installation clients."""

    base_url: str = "https://api.github.com"
    timeout: int = 15
    max_retries: int = 2
    retry_backoff_factor: float = 2.0
    rate_limit_buffer: int = 50
    user_agent: str = "release-lock/1.0"
    max_concurrent_requests: int = 10


@dataclass
class GitHubResponse:
    """Status, headers and decoded body of a completed request."""

    status: int
    headers: dict[str, str]
    data: Any


async def _read_error_body(response: aiohttp.ClientResponse) -> dict[str, Any]:
    try:
        body = await response.json(content_type=None)
    except (json.JSONDecodeError, aiohttp.ContentTypeError, ValueError):
        body = None
    if isinstance(body, dict):
        return body
    return {"message": await response.text()}


class GitHubClient:
    """Async GitHub API client.

    Bodies are decoded while the connection is still held, so callers get a
    plain :class:`GitHubResponse` back. Only transient failures (connection
    errors, timeouts, 5xx) are retried; 4xx responses are raised at once.
    """

    def __init__(self, auth: AuthProvider, config: GitHubClientConfig | None = None) -> None:
        self.auth = auth
        self.config = config or GitHubClientConfig()
        self.rate_limiter = RateLimitManager(buffer=self.config.rate_limit_buffer)
        self.circuit_breaker = CircuitBreaker()

        # Created lazily so the client can be built outside a running loop
        self._session: aiohttp.ClientSession | None = None
        self._session_lock = asyncio.Lock()
        self._slots = asyncio.Semaphore(self.config.max_concurrent_requests)

    async def __aenter__(self) -> "GitHubClient":
        await self._get_session()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.close()

    async def _get_session(self) -> aiohttp.ClientSession:
        async with self._session_lock:
            if self._session is None or self._session.closed:
                self._session = aiohttp.ClientSession(
                    timeout=aiohttp.ClientTimeout(total=self.config.timeout),
                    headers={
                        "User-Agent": self.config.user_agent,
                        "Accept": "application/vnd.github+json",
                        "X-GitHub-Api-Version": API_VERSION,
                    },
                )
            return self._session

    async def close(self) -> None:
        """Close the underlying HTTP session, if one was opened."""
        if self._session is not None and not self._session.closed:
            await self._session.close()
        self._session = None

    def _url(self, path: str) -> str:
        return urljoin(self.config.base_url.rstrip("/") + "/", path.lstrip("/"))

    async def _request(
        self,
        method: str,
        url: str,
        params: Mapping[str, Any] | None = None,
        body: dict[str, Any] | None = None,
    ) -> GitHubResponse:
        """Send a request, retrying transient failures with exponential backoff.

        Raises:
            GitHubConnectionError: If the circuit breaker is open or the
                connection keeps failing
            GitHubRateLimitError: If the local rate limit buffer is reached
                or GitHub reports the limit exhausted
            GitHubError: The status-specific subclass for any other failure
        """
        if not self.circuit_breaker.can_attempt_request():
            raise GitHubConnectionError(
                f"Circuit breaker open. Wait {self.circuit_breaker.get_wait_time():.1f}s "
                "before retry."
            )
        self.rate_limiter.check_rate_limit()

        request_id = uuid.uuid4().hex[:8]
        headers = (await self.auth.get_token()).to_header()
        attempts = self.config.max_retries + 1

        for attempt in range(1, attempts + 1):
            try:
                return await self._send(request_id, method, url, params, body, headers)
            except GitHubError as e:
                if not e.is_transient or attempt == attempts:
                    raise
                delay = self.config.retry_backoff_factor ** (attempt - 1)
                logger.warning(
                    f"{method} {url} [{request_id}] attempt {attempt}/{attempts} failed, "
                    f"retrying in {delay:.1f}s: {e}"
                )
                await asyncio.sleep(delay)

        raise GitHubError(f"{method} {url} failed after {attempts} attempts")

    async def _send(
        self,
        request_id: str,
        method: str,
        url: str,
        params: Mapping[str, Any] | None,
        body: dict[str, Any] | None,
        headers: dict[str, str],
    ) -> GitHubResponse:
        """One attempt; every failure comes back as a :class:`GitHubError`."""
        session = await self._get_session()
        kwargs: dict[str, Any] = {"params": params, "headers": headers}
        if body is not None:
            kwargs["json"] = body

        started = time.monotonic()
        try:
            async with self._slots, session.request(method, url, **kwargs) as response:
                response_headers = dict(response.headers)
                self.rate_limiter.update_rate_limit(response_headers)
                logger.debug(
                    f"{method} {url} [{request_id}] -> {response.status} "
                    f"in {time.monotonic() - started:.2f}s"
                )

                if response.status in SUCCESS_STATUSES:
                    self.circuit_breaker.record_success()
                    data = None
                    if response.status != 204:
                        data = await response.json(content_type=None)
                    return GitHubResponse(response.status, response_headers, data)

                error_body = await _read_error_body(response)
        except TimeoutError as e:
            self.circuit_breaker.record_failure()
            raise GitHubTimeoutError(f"Request timeout for {method} {url}") from e
        except aiohttp.ClientError as e:
            self.circuit_breaker.record_failure()
            raise GitHubConnectionError(f"Connection error for {method} {url}: {e}") from e

        error = error_for_status(response.status, error_body, response_headers)
        if isinstance(error, GitHubServerError):
            self.circuit_breaker.record_failure()
        logger.warning(f"{method} {url} [{request_id}] -> {response.status}: {error}")
        raise error

    async def get(self, path: str, params: Mapping[str, Any] | None = None) -> Any:
        return (await self._request("GET", self._url(path), params)).data

    async def post(self, path: str, data: dict[str, Any] | None = None) -> Any:
        return (await self._request("POST", self._url(path), body=data)).data

    async def patch(self, path: str, data: dict[str, Any] | None = None) -> Any:
        return (await self._request("PATCH", self._url(path), body=data)).data

    async def _fetch_paginated(
        self,
        url: str,
        params: Mapping[str, Any] | None = None,
        items_key: str | None = None,
    ) -> PaginatedResponse:
        """Fetch one page for :class:`AsyncPaginator`."""
        response = await self._request("GET", url, params)
        return PaginatedResponse(response.data, response.headers, url, items_key)

    def paginate(
        self,
        path: str,
        params: Mapping[str, Any] | None = None,
        per_page: int = 100,
        max_pages: int | None = None,
        items_key: str | None = None,
    ) -> AsyncPaginator:
        """Iterate a list endpoint across its Link header pages.

        Args:
            path: API path
            params: Query parameters for the first page
            per_page: Page size, capped at 100
            max_pages: Stop after this many pages
            items_key: Field holding the items when pages are JSON objects
        """
        return AsyncPaginator(
            client=self,
            initial_url=self._url(path),
            params=params,
            per_page=per_page,
            max_pages=max_pages,
            items_key=items_key,
        )

    # Pull requests

    def list_pulls(self, owner: str, repo: str, state: str = "open") -> AsyncPaginator:
        return self.paginate(f"/repos/{owner}/{repo}/pulls", params={"state": state})

    async def get_pull(self, owner: str, repo: str, pull_number: int) -> dict[str, Any]:
        pull: dict[str, Any] = await self.get(f"/repos/{owner}/{repo}/pulls/{pull_number}")
        return pull

    # Check runs

    def list_check_runs_for_ref(
        self,
        owner: str,
        repo: str,
        ref: str,
        check_name: str | None = None,
        app_id: int | None = None,
    ) -> AsyncPaginator:
        """List check runs on a commit, optionally narrowed by name and app.

        GitHub applies both filters server side; the listing wraps each page
        in ``{"total_count": ..., "check_runs": [...]}``.
        """
        params: dict[str, Any] = {}
        if check_name is not None:
            params["check_name"] = check_name
        if app_id is not None:
            params["app_id"] = app_id
        return self.paginate(
            f"/repos/{owner}/{repo}/commits/{ref}/check-runs",
            params=params,
            items_key="check_runs",
        )

    async def create_check_run(
        self, owner: str, repo: str, data: dict[str, Any]
    ) -> dict[str, Any]:
        check_run: dict[str, Any] = await self.post(f"/repos/{owner}/{repo}/check-runs", data)
        return check_run

    async def update_check_run(
        self, owner: str, repo: str, check_run_id: int, data: dict[str, Any]
    ) -> dict[str, Any]:
        check_run: dict[str, Any] = await self.patch(
            f"/repos/{owner}/{repo}/check-runs/{check_run_id}", data
        )
        return check_run

    # Reactions

    async def create_comment_reaction(
        self, owner: str, repo: str, comment_id: int, content: str
    ) -> dict[str, Any]:
        """Add a reaction (``+1``, ``eyes``, ...) to an issue comment."""
        reaction: dict[str, Any] = await self.post(
            f"/repos/{owner}/{repo}/issues/comments/{comment_id}/reactions",
            {"content": content},
        )
        return reaction

    # App installation endpoints (app JWT auth)

    async def get_repo_installation(self, owner: str, repo: str) -> dict[str, Any]:
        installation: dict[str, Any] = await self.get(f"/repos/{owner}/{repo}/installation")
        return installation

    async def create_installation_token(self, installation_id: int) -> dict[str, Any]:
        token: dict[str, Any] = await self.post(
            f"/app/installations/{installation_id}/access_tokens"
        )
        return token
