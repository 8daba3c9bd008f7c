"""Installation access token exchange for the GitHub App."""

import asyncio
import logging
from datetime import datetime

from .auth import AuthToken, GitHubAppAuth, TokenAuth
from .client import GitHubClient, GitHubClientConfig
from .exceptions import GitHubAuthenticationError, GitHubError

logger = logging.getLogger(__name__)

# Tokens are replaced this many seconds before GitHub's stated expiry.
TOKEN_REFRESH_MARGIN = 120


class InstallationTokenProvider:
    """Hands out short-lived installation credentials.

    Tokens are kept per installation id until shortly before they expire.
    Concurrent requests for one installation share a single exchange.
    Every failure, whether the installation is unknown or the transport
    broke, surfaces as :class:`GitHubAuthenticationError`.
    """

    def __init__(
        self,
        app_auth: GitHubAppAuth,
        config: GitHubClientConfig | None = None,
    ) -> None:
        """Initialize the provider.

        Args:
            app_auth: App-level JWT authentication
            config: Client configuration shared with installation clients
        """
        self.config = config or GitHubClientConfig()
        self._app_client = GitHubClient(auth=app_auth, config=self.config)
        self._tokens: dict[int, AuthToken] = {}
        # one lock per installation; exchanges for different installations run concurrently
        self._locks: dict[int, asyncio.Lock] = {}

    async def close(self) -> None:
        await self._app_client.close()

    async def resolve_credential(self, installation_id: int) -> AuthToken:
        """Return a valid installation token for ``installation_id``.

        Raises:
            GitHubAuthenticationError: If the token cannot be obtained
        """
        async with self._locks.setdefault(installation_id, asyncio.Lock()):
            cached = self._tokens.get(installation_id)
            if cached is not None and not cached.expires_within(TOKEN_REFRESH_MARGIN):
                return cached

            try:
                payload = await self._app_client.create_installation_token(installation_id)
            except GitHubError as e:
                raise GitHubAuthenticationError(
                    f"couldn't create installation token for installation "
                    f"{installation_id}: {e}",
                    status_code=e.status_code,
                    response_data=e.response_data,
                ) from e

            token = _parse_token(payload, installation_id)
            self._tokens[installation_id] = token
            logger.debug(f"Issued installation token for installation {installation_id}")
            return token

    async def resolve_credential_for_repo(self, owner: str, repo: str) -> AuthToken:
        """Look up the installation covering ``owner/repo`` and return its token."""
        try:
            installation = await self._app_client.get_repo_installation(owner, repo)
        except GitHubError as e:
            raise GitHubAuthenticationError(
                f"couldn't find installation for {owner}/{repo}: {e}",
                status_code=e.status_code,
                response_data=e.response_data,
            ) from e

        installation_id = installation.get("id") if isinstance(installation, dict) else None
        if not isinstance(installation_id, int):
            raise GitHubAuthenticationError(
                f"installation lookup for {owner}/{repo} returned no id"
            )
        return await self.resolve_credential(installation_id)

    def installation_client(self, token: AuthToken) -> GitHubClient:
        """Build a client acting as the installation behind ``token``."""
        return GitHubClient(auth=TokenAuth(token.token), config=self.config)


def _parse_token(payload: object, installation_id: int) -> AuthToken:
    if not isinstance(payload, dict) or not payload.get("token"):
        raise GitHubAuthenticationError(
            f"token exchange for installation {installation_id} returned no token"
        )

    expires_at: int | None = None
    raw_expiry = payload.get("expires_at")
    if raw_expiry:
        try:
            expires_at = int(
                datetime.fromisoformat(str(raw_expiry).replace("Z", "+00:00")).timestamp()
            )
        except ValueError:
            logger.warning(
                f"Unparseable expires_at {raw_expiry!r} for installation {installation_id}"
            )

    return AuthToken(token=str(payload["token"]), token_type="token", expires_at=expires_at)
